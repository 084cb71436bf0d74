"""Pending verification challenges.

Challenges live in a ledger keyed by an opaque token. A token can be
consumed at most once; it dies on consumption or after its TTL.

Note: The default InMemoryChallengeLedger is per-process and pending
challenges are lost on restart. For multi-instance deployments, implement
a ledger backed by an expiring key-value store.
"""

import asyncio
import logging
import secrets
import time
from abc import ABC, abstractmethod
from typing import Callable

from tokengate.config import CHALLENGE_TTL_SECONDS
from tokengate.verification.models import Challenge

log = logging.getLogger(__name__)


# =============================================================================
# LEDGER INTERFACE
# =============================================================================


class ChallengeLedger(ABC):
    """Abstract interface for challenge storage.

    Implementations must make consume() atomic: for any token, at most
    one concurrent caller receives the challenge.
    """

    @abstractmethod
    async def issue(self, identity_id: str, community_id: str) -> str:
        """Create a challenge and return its token.

        Args:
            identity_id: Platform identity requesting verification
            community_id: Community the role will be granted in

        Returns:
            A cryptographically random token unique among pending tokens
        """
        ...

    @abstractmethod
    async def consume(self, token: str) -> Challenge | None:
        """Look up and remove a challenge in one step.

        Returns None if the token was never issued, was already
        consumed, or has expired.
        """
        ...

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """Remove all expired challenges.

        Returns:
            Number of challenges removed
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release timers and pending state on shutdown."""
        ...

    @property
    @abstractmethod
    def pending_count(self) -> int:
        """Number of pending challenges (for monitoring)."""
        ...


# =============================================================================
# IN-MEMORY LEDGER
# =============================================================================


class InMemoryChallengeLedger(ChallengeLedger):
    """In-memory challenge ledger with per-token eviction timers.

    Expiry is enforced twice: a loop timer removes the entry after the
    TTL, and consume() re-checks the timestamp so a timer that has not
    fired yet cannot produce a late success.
    """

    TOKEN_BYTES = 32  # 256 bits

    def __init__(
        self,
        ttl_seconds: int = CHALLENGE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._challenges: dict[str, Challenge] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._lock = asyncio.Lock()

    async def issue(self, identity_id: str, community_id: str) -> str:
        now = self._clock()
        loop = asyncio.get_running_loop()

        async with self._lock:
            token = secrets.token_urlsafe(self.TOKEN_BYTES)
            while token in self._challenges:
                token = secrets.token_urlsafe(self.TOKEN_BYTES)

            self._challenges[token] = Challenge(
                token=token,
                identity_id=identity_id,
                community_id=community_id,
                issued_at=now,
                expires_at=now + self._ttl,
            )
            self._timers[token] = loop.call_later(self._ttl, self._evict, token)

        log.debug(f"Issued challenge {token[:8]}... for {identity_id} in {community_id}")
        return token

    async def consume(self, token: str) -> Challenge | None:
        async with self._lock:
            challenge = self._challenges.pop(token, None)
            handle = self._timers.pop(token, None)

        if handle is not None:
            handle.cancel()

        if challenge is None:
            return None

        if challenge.is_expired(self._clock()):
            log.debug(f"Challenge {token[:8]}... consumed after expiry")
            return None

        return challenge

    def _evict(self, token: str) -> None:
        # Runs as a loop callback. Lock holders never await inside their
        # critical section, so this cannot interleave with issue/consume.
        self._timers.pop(token, None)
        if self._challenges.pop(token, None) is not None:
            log.debug(f"Challenge {token[:8]}... expired")

    async def cleanup_expired(self) -> int:
        now = self._clock()

        async with self._lock:
            expired = [t for t, c in self._challenges.items() if c.is_expired(now)]
            for token in expired:
                del self._challenges[token]
                handle = self._timers.pop(token, None)
                if handle is not None:
                    handle.cancel()

        if expired:
            log.info(f"Cleaned up {len(expired)} expired challenges")

        return len(expired)

    async def close(self) -> None:
        async with self._lock:
            for handle in self._timers.values():
                handle.cancel()
            count = len(self._challenges)
            self._timers.clear()
            self._challenges.clear()

        if count:
            log.info(f"Discarded {count} pending challenges on shutdown")

    @property
    def pending_count(self) -> int:
        return len(self._challenges)


# Global ledger instance
_ledger: ChallengeLedger | None = None


def get_challenge_ledger() -> ChallengeLedger:
    """Get the global challenge ledger instance."""
    global _ledger

    if _ledger is None:
        _ledger = InMemoryChallengeLedger()
        log.info("Initialized in-memory challenge ledger")

    return _ledger


def reset_challenge_ledger() -> None:
    """Reset the global ledger (for testing)."""
    global _ledger
    _ledger = None
