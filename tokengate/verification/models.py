"""Data types shared by the verification components."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def redact(value: str, head: int = 6, tail: int = 4) -> str:
    """Shorten an address to its first and last few characters.

    >>> redact("0x1234567890abcdef1234567890abcdef12345678")
    '0x1234...5678'
    """
    if len(value) <= head + tail:
        return value
    return f"{value[:head]}...{value[-tail:]}"


@dataclass
class Challenge:
    """A pending verification challenge.

    Attributes:
        token: Opaque single-use lookup key
        identity_id: Platform identity that requested verification
        community_id: Community in which the role will be granted
        issued_at: Ledger clock reading at issuance
        expires_at: Ledger clock reading after which the token is dead
    """

    token: str
    identity_id: str
    community_id: str
    issued_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class OwnershipResult:
    """Outcome of a live ownership query.

    `error` is set when the query itself failed; `held` is then False.
    Truthiness follows `held`.
    """

    held: bool
    address: str
    matched_token_ids: list[int] = field(default_factory=list)
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.held


@dataclass
class RoleGrantConfirmation:
    """Returned after a successful verification."""

    identity_id: str
    community_id: str
    role_id: str
    wallet: str  # redacted


@dataclass
class WalletCheck:
    """Result of an ad hoc wallet lookup (the checkwallet command)."""

    address: str
    holds: bool
    contract: str  # redacted
    error: Optional[str] = None  # set when the ownership query failed


@dataclass
class WalletRecord:
    """Last verified wallet for an identity within a community."""

    identity_id: str
    community_id: str
    address: str
    verified_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
