"""Audit logging for security-relevant verification events.

Records challenge issuance, verification outcomes and role revocations.
Wallets appear only in redacted form and tokens only as a short prefix.
"""

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

log = logging.getLogger("audit")


@dataclass
class AuditEvent:
    """Structured audit event."""

    action: str  # e.g., "challenge.issued", "verification.denied"
    principal: str = "anonymous"  # platform identity id
    resource: str | None = None  # e.g., "community:<id>"
    status: str = "success"  # "success", "denied", "revoked", "error"
    details: dict[str, Any] | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class AuditLogger:
    """Audit logger for verification operations.

    Logs events through Python's logging module and keeps an in-memory
    ring buffer for recent event retrieval.
    """

    MAX_BUFFER_SIZE = 1000

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._buffer: deque[dict] = deque(maxlen=self.MAX_BUFFER_SIZE)

    def log(self, event: AuditEvent) -> None:
        """Write an audit event to the log."""
        if not self.enabled:
            return

        self._buffer.append(asdict(event))

        extra = {
            "type": "audit",
            "principal": event.principal,
            "action": event.action,
            "status": event.status,
        }
        if event.resource:
            extra["resource"] = event.resource
        if event.details:
            extra["details"] = event.details

        if event.status in ("denied", "revoked", "error"):
            log.warning(f"audit: {event.action} {event.status}", extra=extra)
        else:
            log.info(f"audit: {event.action} {event.status}", extra=extra)

    def get_recent_events(
        self,
        limit: int = 100,
        action_filter: str | None = None,
        status_filter: str | None = None,
    ) -> list[dict]:
        """Get recent audit events from buffer, newest first.

        Args:
            limit: Max events to return
            action_filter: Filter by action prefix (e.g., "verification.")
            status_filter: Filter by status (e.g., "denied")
        """
        events = list(self._buffer)
        events.reverse()

        if action_filter:
            events = [e for e in events if e["action"].startswith(action_filter)]
        if status_filter:
            events = [e for e in events if e["status"] == status_filter]

        return events[:limit]

    def log_challenge_issued(self, identity_id: str, community_id: str) -> None:
        self.log(
            AuditEvent(
                action="challenge.issued",
                principal=identity_id,
                resource=f"community:{community_id}",
            )
        )

    def log_verification(
        self,
        identity_id: str,
        community_id: str | None,
        status: str,
        code: str | None = None,
        wallet: str | None = None,
    ) -> None:
        """Log the outcome of a verification submission.

        Args:
            identity_id: Identity bound to the consumed challenge, or
                "anonymous" when the token was unknown
            community_id: Community of the challenge, if known
            status: "success", "denied" or "error"
            code: ErrorCode for failed attempts
            wallet: Redacted wallet address
        """
        details = {}
        if code:
            details["code"] = code
        if wallet:
            details["wallet"] = wallet
        self.log(
            AuditEvent(
                action="verification.success" if status == "success" else "verification.denied",
                principal=identity_id,
                resource=f"community:{community_id}" if community_id else None,
                status=status,
                details=details or None,
            )
        )

    def log_role_revoked(self, identity_id: str, community_id: str, wallet: str) -> None:
        self.log(
            AuditEvent(
                action="role.revoked",
                principal=identity_id,
                resource=f"community:{community_id}",
                status="revoked",
                details={"wallet": wallet, "reason": "ownership_lapsed"},
            )
        )


# Global logger instance
_audit_logger: AuditLogger | None = None


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger instance."""
    global _audit_logger

    if _audit_logger is None:
        _audit_logger = AuditLogger()

    return _audit_logger


def reset_audit_logger() -> None:
    """Reset the global logger (for testing)."""
    global _audit_logger
    _audit_logger = None
