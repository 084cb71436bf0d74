"""Configuration for the Token Gate service.

Environment-based configuration with sensible defaults. Values are read
once at import time; call validate_config() at startup to surface
missing or inconsistent settings.
"""

import os

# Discord
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN", "")
DISCORD_APPLICATION_ID = os.getenv("DISCORD_APPLICATION_ID", "")
DISCORD_PUBLIC_KEY = os.getenv("DISCORD_PUBLIC_KEY", "")
DISCORD_API_URL = os.getenv("DISCORD_API_URL", "https://discord.com/api/v10")
PLATFORM_TIMEOUT_SECONDS = float(os.getenv("PLATFORM_TIMEOUT_SECONDS", "10.0"))

# Community and role being gated
GUILD_ID = os.getenv("GUILD_ID", "")
VERIFIED_ROLE_ID = os.getenv("VERIFIED_ROLE_ID", "")

# Chain
MONAD_RPC_URL = os.getenv("MONAD_RPC_URL", "")
NFT_CONTRACT_ADDRESS = os.getenv("NFT_CONTRACT_ADDRESS", "")
RPC_TIMEOUT_SECONDS = float(os.getenv("RPC_TIMEOUT_SECONDS", "10.0"))

# erc721 checks balanceOf(owner); erc1155 checks balanceOfBatch over TOKEN_IDS
TOKEN_STANDARD = os.getenv("TOKEN_STANDARD", "erc721").lower()


def _parse_token_ids() -> tuple[int, ...]:
    """Parse comma-separated ERC-1155 token ids from environment.

    Environment variable format:
        TOKEN_IDS=1,2,7

    Returns:
        tuple of token ids (empty when unset).
    """
    env_value = os.getenv("TOKEN_IDS", "")
    return tuple(int(t.strip()) for t in env_value.split(",") if t.strip())


TOKEN_IDS: tuple[int, ...] = _parse_token_ids()

# HTTP server
PORT = int(os.getenv("PORT", "3000"))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", f"http://localhost:{PORT}").rstrip("/")

# Verification protocol
# The wallet signs this exact text. It is never taken from the request.
VERIFY_MESSAGE = os.getenv("VERIFY_MESSAGE", "Verify NFT for Discord")
CHALLENGE_TTL_SECONDS = int(os.getenv("CHALLENGE_TTL_SECONDS", "600"))  # 10 minutes
CHALLENGE_CLEANUP_INTERVAL_SECONDS = int(os.getenv("CHALLENGE_CLEANUP_INTERVAL_SECONDS", "60"))
REVERIFY_INTERVAL_SECONDS = int(os.getenv("REVERIFY_INTERVAL_SECONDS", "3600"))  # 1 hour

# Logging
LOG_LEVEL = os.getenv("TOKENGATE_LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("TOKENGATE_LOG_FILE", "")

# Version tracking (injected at deploy time)
GIT_SHA = os.getenv("GIT_SHA", "unknown")


def validate_config() -> list[str]:
    """Validate configuration and return list of issues."""
    issues = []

    required = {
        "DISCORD_TOKEN": DISCORD_TOKEN,
        "GUILD_ID": GUILD_ID,
        "VERIFIED_ROLE_ID": VERIFIED_ROLE_ID,
        "MONAD_RPC_URL": MONAD_RPC_URL,
        "NFT_CONTRACT_ADDRESS": NFT_CONTRACT_ADDRESS,
    }
    for name, value in required.items():
        if not value:
            issues.append(f"{name} is required")

    if TOKEN_STANDARD not in ("erc721", "erc1155"):
        issues.append(f"Invalid TOKEN_STANDARD: {TOKEN_STANDARD}")
    elif TOKEN_STANDARD == "erc1155" and not TOKEN_IDS:
        issues.append("TOKEN_IDS required when TOKEN_STANDARD is erc1155")

    if CHALLENGE_TTL_SECONDS <= 0:
        issues.append("CHALLENGE_TTL_SECONDS must be positive")
    if REVERIFY_INTERVAL_SECONDS <= 0:
        issues.append("REVERIFY_INTERVAL_SECONDS must be positive")
    if CHALLENGE_CLEANUP_INTERVAL_SECONDS <= 0:
        issues.append("CHALLENGE_CLEANUP_INTERVAL_SECONDS must be positive")

    return issues
