"""Identity-to-wallet mapping used by re-verification.

Filled on each successful verification. The in-memory registry is
volatile: after a restart, holders verified earlier have no known wallet
and are skipped by the scheduler until they verify again.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

from tokengate.verification.models import WalletRecord

log = logging.getLogger(__name__)


class WalletRegistry(ABC):
    """Abstract interface for wallet mapping storage."""

    @abstractmethod
    async def record(self, identity_id: str, community_id: str, address: str) -> WalletRecord:
        """Remember `address` as the verified wallet, replacing any previous one."""
        ...

    @abstractmethod
    async def lookup(self, identity_id: str, community_id: str) -> WalletRecord | None:
        ...

    @abstractmethod
    async def forget(self, identity_id: str, community_id: str) -> bool:
        """Drop the mapping. Returns True if one existed."""
        ...


class InMemoryWalletRegistry(WalletRegistry):
    """Process-local wallet registry (one wallet per identity per community)."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], WalletRecord] = {}
        self._lock = asyncio.Lock()

    async def record(self, identity_id: str, community_id: str, address: str) -> WalletRecord:
        rec = WalletRecord(identity_id=identity_id, community_id=community_id, address=address)
        async with self._lock:
            self._records[(community_id, identity_id)] = rec
        return rec

    async def lookup(self, identity_id: str, community_id: str) -> WalletRecord | None:
        async with self._lock:
            return self._records.get((community_id, identity_id))

    async def forget(self, identity_id: str, community_id: str) -> bool:
        async with self._lock:
            return self._records.pop((community_id, identity_id), None) is not None

    @property
    def size(self) -> int:
        return len(self._records)


# Global registry instance
_registry: WalletRegistry | None = None


def get_wallet_registry() -> WalletRegistry:
    """Get the global wallet registry instance."""
    global _registry

    if _registry is None:
        _registry = InMemoryWalletRegistry()
        log.info("Initialized in-memory wallet registry")

    return _registry


def reset_wallet_registry() -> None:
    """Reset the global registry (for testing)."""
    global _registry
    _registry = None
