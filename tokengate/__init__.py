"""Token Gate: Discord role gating for wallet-verified NFT holders."""

__version__ = "0.1.0"
