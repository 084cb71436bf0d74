"""On-chain ownership checks against the configured token contract.

Every query is live; balances are never cached. Any failure (bad
address, RPC error, timeout, revert, malformed response) is logged and
reported as "does not hold". A flaky endpoint therefore denies access
rather than granting it.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from web3 import AsyncHTTPProvider, AsyncWeb3

from tokengate.config import (
    MONAD_RPC_URL,
    NFT_CONTRACT_ADDRESS,
    RPC_TIMEOUT_SECONDS,
    TOKEN_IDS,
    TOKEN_STANDARD,
)
from tokengate.verification.models import OwnershipResult

log = logging.getLogger(__name__)

ERC721 = "erc721"
ERC1155 = "erc1155"

ERC721_ABI = [
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

ERC1155_ABI = [
    {
        "name": "balanceOfBatch",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "accounts", "type": "address[]"},
            {"name": "ids", "type": "uint256[]"},
        ],
        "outputs": [{"name": "", "type": "uint256[]"}],
    },
]


class OwnershipOracle(ABC):
    """Answers whether an address holds a qualifying token."""

    contract_address: str = ""

    @abstractmethod
    async def holds(self, address: str) -> OwnershipResult:
        """Check the configured collection for `address`."""
        ...

    @abstractmethod
    async def holds_any(self, address: str, token_ids: Sequence[int]) -> OwnershipResult:
        """Check whether `address` holds any of `token_ids` (multi-token collections)."""
        ...


class Web3OwnershipOracle(OwnershipOracle):
    """Ownership oracle backed by read-only contract calls over JSON-RPC."""

    def __init__(
        self,
        contract_address: str,
        rpc_url: str = "",
        *,
        standard: str = ERC721,
        token_ids: Sequence[int] = (),
        timeout: float = RPC_TIMEOUT_SECONDS,
        w3: Optional[AsyncWeb3] = None,
    ) -> None:
        """Initialize oracle.

        Args:
            contract_address: Token contract to query
            rpc_url: JSON-RPC endpoint (ignored when `w3` is given)
            standard: "erc721" (balanceOf) or "erc1155" (balanceOfBatch)
            token_ids: Qualifying ids for erc1155 collections
            timeout: Per-call timeout in seconds
            w3: Preconfigured AsyncWeb3 instance
        """
        if standard not in (ERC721, ERC1155):
            raise ValueError(f"Unsupported token standard: {standard}")

        self.contract_address = contract_address
        self.standard = standard
        self.token_ids = tuple(token_ids)
        self._timeout = timeout
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._contract = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(contract_address),
            abi=ERC1155_ABI if standard == ERC1155 else ERC721_ABI,
        )

    async def holds(self, address: str) -> OwnershipResult:
        if self.standard == ERC1155:
            return await self.holds_any(address, self.token_ids)

        try:
            owner = AsyncWeb3.to_checksum_address(address)
            balance = await asyncio.wait_for(
                self._contract.functions.balanceOf(owner).call(),
                timeout=self._timeout,
            )
            held = int(balance) > 0
        except Exception as e:
            return self._failed(address, "balanceOf", e)

        return OwnershipResult(held=held, address=address)

    async def holds_any(self, address: str, token_ids: Sequence[int]) -> OwnershipResult:
        ids = [int(t) for t in token_ids]
        if not ids:
            log.warning("Ownership check skipped: no token ids configured")
            return OwnershipResult(held=False, address=address, error="no token ids")

        try:
            owner = AsyncWeb3.to_checksum_address(address)
            balances = await asyncio.wait_for(
                self._contract.functions.balanceOfBatch([owner] * len(ids), ids).call(),
                timeout=self._timeout,
            )
            if len(balances) != len(ids):
                raise ValueError(f"expected {len(ids)} balances, got {len(balances)}")
            matched = [tid for tid, bal in zip(ids, balances) if int(bal) > 0]
        except Exception as e:
            return self._failed(address, "balanceOfBatch", e)

        return OwnershipResult(held=bool(matched), address=address, matched_token_ids=matched)

    def _failed(self, address: str, call: str, exc: Exception) -> OwnershipResult:
        if isinstance(exc, asyncio.TimeoutError):
            reason = f"{call} timed out after {self._timeout}s"
        else:
            reason = f"{call} failed: {type(exc).__name__}: {exc}"
        log.warning(f"Ownership check for {address} denied: {reason}")
        return OwnershipResult(held=False, address=address, error=reason)


# Global oracle instance
_oracle: OwnershipOracle | None = None


def get_ownership_oracle() -> OwnershipOracle:
    """Get the global ownership oracle, built from configuration."""
    global _oracle

    if _oracle is None:
        _oracle = Web3OwnershipOracle(
            NFT_CONTRACT_ADDRESS,
            MONAD_RPC_URL,
            standard=TOKEN_STANDARD,
            token_ids=TOKEN_IDS,
        )
        log.info(f"Ownership oracle ready ({TOKEN_STANDARD} at {NFT_CONTRACT_ADDRESS})")

    return _oracle


def reset_ownership_oracle() -> None:
    """Reset the global oracle (for testing)."""
    global _oracle
    _oracle = None
