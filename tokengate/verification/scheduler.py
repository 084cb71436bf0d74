"""Periodic re-verification of role holders.

Each tick reads the live set of role holders, looks up the wallet each
one last verified with, and revokes the role when that wallet no longer
holds a qualifying token. Holders without a known wallet are skipped.
A failed ownership query leaves the member untouched for that tick.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from tokengate.audit import AuditLogger, get_audit_logger
from tokengate.config import GUILD_ID, REVERIFY_INTERVAL_SECONDS, VERIFIED_ROLE_ID
from tokengate.platform.gateway import MemberNotFound, RoleGateway
from tokengate.verification.models import redact
from tokengate.verification.ownership import OwnershipOracle
from tokengate.verification.wallets import WalletRegistry

log = logging.getLogger(__name__)


@dataclass
class TickReport:
    """What a single re-verification pass did."""

    checked: int = 0
    retained: list[str] = field(default_factory=list)
    revoked: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)  # no known wallet
    departed: list[str] = field(default_factory=list)  # no longer in the community
    errors: list[str] = field(default_factory=list)
    listing_failed: bool = False


class ReVerificationScheduler:
    """Runs re-verification ticks on a fixed interval."""

    def __init__(
        self,
        oracle: OwnershipOracle,
        gateway: RoleGateway,
        community_id: str = GUILD_ID,
        role_id: str = VERIFIED_ROLE_ID,
        *,
        wallet_registry: Optional[WalletRegistry] = None,
        interval_seconds: float = REVERIFY_INTERVAL_SECONDS,
        audit: Optional[AuditLogger] = None,
    ):
        self.oracle = oracle
        self.gateway = gateway
        self.community_id = community_id
        self.role_id = role_id
        self.wallet_registry = wallet_registry
        self.interval_seconds = interval_seconds
        self.audit = audit or get_audit_logger()
        self._task: Optional[asyncio.Task] = None
        self._tick_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start the background loop. Idempotent."""
        if not self.running:
            self._task = asyncio.create_task(self._loop())
            log.info(f"Re-verification scheduler started (interval: {self.interval_seconds}s)")
        return self._task

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        log.info("Re-verification scheduler stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception as e:
                log.error(f"Re-verification tick error: {e}", exc_info=True)

    async def run_once(self) -> Optional[TickReport]:
        """Run one tick. Returns None if a tick is already in progress."""
        if self._tick_lock.locked():
            log.warning("Re-verification tick still running, skipping this one")
            return None

        async with self._tick_lock:
            report = await self._tick()

        log.info(
            f"Re-verification tick: checked={report.checked} retained={len(report.retained)} "
            f"revoked={len(report.revoked)} skipped={len(report.skipped)} "
            f"departed={len(report.departed)} errors={len(report.errors)}"
        )
        return report

    async def _tick(self) -> TickReport:
        report = TickReport()

        try:
            holders = await self.gateway.list_holders_of(self.community_id, self.role_id)
        except Exception as e:
            log.error(f"Could not list holders of role {self.role_id}: {e}")
            report.listing_failed = True
            return report

        for identity_id in holders:
            report.checked += 1
            try:
                await self._check_member(identity_id, report)
            except Exception as e:
                log.error(f"Re-verification failed for {identity_id}: {e}")
                report.errors.append(identity_id)

        return report

    async def _check_member(self, identity_id: str, report: TickReport) -> None:
        record = None
        if self.wallet_registry is not None:
            record = await self.wallet_registry.lookup(identity_id, self.community_id)

        if record is None:
            log.info(f"No known wallet for role holder {identity_id}, skipping")
            report.skipped.append(identity_id)
            return

        ownership = await self.oracle.holds(record.address)
        if ownership.error:
            log.warning(f"Ownership query failed for {identity_id}, leaving role in place")
            report.errors.append(identity_id)
            return

        if ownership.held:
            report.retained.append(identity_id)
            return

        try:
            await self.gateway.revoke(self.community_id, identity_id, self.role_id)
        except MemberNotFound:
            log.info(f"{identity_id} has left {self.community_id}, dropping wallet record")
            await self.wallet_registry.forget(identity_id, self.community_id)
            report.departed.append(identity_id)
            return

        await self.wallet_registry.forget(identity_id, self.community_id)
        self.audit.log_role_revoked(identity_id, self.community_id, redact(record.address))
        report.revoked.append(identity_id)


# Global scheduler instance
_scheduler: Optional[ReVerificationScheduler] = None


async def get_scheduler() -> ReVerificationScheduler:
    """Get or create the global scheduler wired from configuration."""
    global _scheduler

    if _scheduler is None:
        from tokengate.platform.gateway import get_role_gateway
        from tokengate.verification.ownership import get_ownership_oracle
        from tokengate.verification.wallets import get_wallet_registry

        _scheduler = ReVerificationScheduler(
            oracle=get_ownership_oracle(),
            gateway=await get_role_gateway(),
            wallet_registry=get_wallet_registry(),
        )

    return _scheduler


def reset_scheduler() -> None:
    """Reset the global scheduler (for testing)."""
    global _scheduler
    _scheduler = None
