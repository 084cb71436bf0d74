"""End-to-end verification flow.

A challenge moves Issued -> Consumed-Success | Consumed-Failure | Expired.
The token is consumed before any check runs, so a failed attempt can
never be retried with the same token and no path puts it back.
"""

import logging
from typing import Optional

from tokengate.audit import AuditLogger, get_audit_logger
from tokengate.config import VERIFIED_ROLE_ID, VERIFY_MESSAGE
from tokengate.exceptions import (
    ExpiredOrInvalidToken,
    NoQualifyingAsset,
    RoleNotConfigured,
    SignatureMismatch,
    UpstreamUnavailable,
    VerificationError,
)
from tokengate.platform.gateway import (
    MemberNotFound,
    RoleGateway,
    RoleGatewayError,
    RoleNotFound,
    get_role_gateway,
)
from tokengate.verification.ledger import ChallengeLedger, get_challenge_ledger
from tokengate.verification.models import (
    Challenge,
    RoleGrantConfirmation,
    WalletCheck,
    redact,
)
from tokengate.verification.ownership import OwnershipOracle, get_ownership_oracle
from tokengate.verification.signature import SignatureVerifier
from tokengate.verification.wallets import WalletRegistry, get_wallet_registry

log = logging.getLogger(__name__)


class VerificationCoordinator:
    """Issues challenges and turns valid submissions into role grants."""

    def __init__(
        self,
        ledger: ChallengeLedger,
        signature_verifier: SignatureVerifier,
        oracle: OwnershipOracle,
        gateway: RoleGateway,
        role_id: str,
        *,
        wallet_registry: Optional[WalletRegistry] = None,
        message: str = VERIFY_MESSAGE,
        audit: Optional[AuditLogger] = None,
    ):
        self.ledger = ledger
        self.signature_verifier = signature_verifier
        self.oracle = oracle
        self.gateway = gateway
        self.role_id = role_id
        self.wallet_registry = wallet_registry
        self.message = message
        self.audit = audit or get_audit_logger()

    async def request_challenge(self, identity_id: str, community_id: str) -> str:
        """Mint a single-use token for `identity_id` in `community_id`."""
        token = await self.ledger.issue(identity_id, community_id)
        self.audit.log_challenge_issued(identity_id, community_id)
        return token

    async def submit(self, token: str, address: str, signature: str) -> RoleGrantConfirmation:
        """Consume `token` and grant the role if the wallet qualifies.

        Raises:
            ExpiredOrInvalidToken: Token unknown, already used, or expired
            SignatureMismatch: Signature does not recover to `address`
            NoQualifyingAsset: Wallet holds nothing from the collection
                (including when the chain query fails)
            RoleNotConfigured: Role missing from the community
            UpstreamUnavailable: Role grant failed for another reason
        """
        challenge = await self.ledger.consume(token)
        if challenge is None:
            log.info(f"Rejected submission for unknown or expired token {token[:8]}...")
            self.audit.log_verification("anonymous", None, "denied", ExpiredOrInvalidToken.code)
            raise ExpiredOrInvalidToken()

        try:
            confirmation = await self._verify_consumed(challenge, address, signature)
        except VerificationError as e:
            status = "error" if e.http_status >= 500 else "denied"
            self.audit.log_verification(
                challenge.identity_id, challenge.community_id, status, e.code
            )
            raise

        self.audit.log_verification(
            challenge.identity_id,
            challenge.community_id,
            "success",
            wallet=confirmation.wallet,
        )
        return confirmation

    async def _verify_consumed(
        self, challenge: Challenge, address: str, signature: str
    ) -> RoleGrantConfirmation:
        identity_id = challenge.identity_id
        community_id = challenge.community_id

        if not self.signature_verifier.verify(self.message, signature, address):
            log.info(f"Signature mismatch for {identity_id} claiming {redact(address)}")
            raise SignatureMismatch()

        ownership = await self.oracle.holds(address)
        if not ownership.held:
            if ownership.error:
                log.warning(f"Ownership query failed for {identity_id}: {ownership.error}")
            raise NoQualifyingAsset()

        try:
            await self.gateway.grant(community_id, identity_id, self.role_id)
        except RoleNotFound as e:
            log.error(f"Role grant failed for {identity_id}: {e}")
            raise RoleNotConfigured()
        except MemberNotFound as e:
            log.warning(f"Role grant failed, {identity_id} is not in {community_id}: {e}")
            raise UpstreamUnavailable()
        except RoleGatewayError as e:
            log.error(f"Role grant failed for {identity_id}: {e}")
            raise UpstreamUnavailable()

        if self.wallet_registry is not None:
            await self.wallet_registry.record(identity_id, community_id, address)

        log.info(f"Verified {identity_id} in {community_id} with wallet {redact(address)}")
        return RoleGrantConfirmation(
            identity_id=identity_id,
            community_id=community_id,
            role_id=self.role_id,
            wallet=redact(address),
        )

    async def check_wallet(self, address: str) -> WalletCheck:
        """Ad hoc ownership lookup for any address (no role change)."""
        ownership = await self.oracle.holds(address)
        return WalletCheck(
            address=address,
            holds=ownership.held,
            contract=redact(self.oracle.contract_address, head=8, tail=6),
            error=ownership.error,
        )


# Global coordinator instance
_coordinator: Optional[VerificationCoordinator] = None


async def get_coordinator() -> VerificationCoordinator:
    """Get or create the global coordinator wired from configuration."""
    global _coordinator

    if _coordinator is None:
        _coordinator = VerificationCoordinator(
            ledger=get_challenge_ledger(),
            signature_verifier=SignatureVerifier(),
            oracle=get_ownership_oracle(),
            gateway=await get_role_gateway(),
            role_id=VERIFIED_ROLE_ID,
            wallet_registry=get_wallet_registry(),
        )

    return _coordinator


def reset_coordinator() -> None:
    """Reset the global coordinator (for testing)."""
    global _coordinator
    _coordinator = None
