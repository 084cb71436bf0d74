"""Pytest fixtures for Token Gate tests."""
from typing import AsyncGenerator, Sequence

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from httpx import ASGITransport, AsyncClient

from tokengate.audit import AuditLogger
from tokengate.platform.gateway import MemberNotFound, RoleGateway, RoleGatewayError, RoleNotFound
from tokengate.verification.coordinator import VerificationCoordinator
from tokengate.verification.ledger import InMemoryChallengeLedger, reset_challenge_ledger
from tokengate.verification.models import OwnershipResult
from tokengate.verification.ownership import OwnershipOracle
from tokengate.verification.signature import SignatureVerifier
from tokengate.verification.wallets import InMemoryWalletRegistry

# =============================================================================
# Test constants
# =============================================================================

MESSAGE = "Verify NFT for Discord"
GUILD = "G1"
USER = "U1"
ROLE = "R-verified"
CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"

# Deterministic test wallets
HOLDER_KEY = "0x" + "11" * 32
EMPTY_KEY = "0x" + "22" * 32
HOLDER = Account.from_key(HOLDER_KEY)
EMPTY = Account.from_key(EMPTY_KEY)


def sign(account, message: str = MESSAGE) -> str:
    """personal_sign `message` with `account`, returned as 0x-prefixed hex."""
    signed = account.sign_message(encode_defunct(text=message))
    return "0x" + bytes(signed.signature).hex()


# =============================================================================
# Fakes
# =============================================================================


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeOracle(OwnershipOracle):
    """Ownership oracle answering from an in-memory balance table."""

    def __init__(self, balances: dict[str, int] | None = None, contract_address: str = CONTRACT):
        self.balances = {k.lower(): v for k, v in (balances or {}).items()}
        self.failing: set[str] = set()
        self.contract_address = contract_address
        self.calls: list[str] = []

    async def holds(self, address: str) -> OwnershipResult:
        self.calls.append(address)
        if address.lower() in self.failing:
            return OwnershipResult(held=False, address=address, error="rpc unavailable")
        return OwnershipResult(held=self.balances.get(address.lower(), 0) > 0, address=address)

    async def holds_any(self, address: str, token_ids: Sequence[int]) -> OwnershipResult:
        return await self.holds(address)


class FakeGateway(RoleGateway):
    """Role gateway keeping membership in memory."""

    def __init__(self, roles: set[str] | None = None):
        self.roles = roles if roles is not None else {ROLE}
        self.members: dict[tuple[str, str], set[str]] = {}
        self.fail_grant = False
        self.fail_listing = False
        self.fail_revoke_for: set[str] = set()
        self.departed: set[str] = set()
        self.revoked: list[tuple[str, str, str]] = []
        self.edits: list[tuple[str, str, dict]] = []
        self.fail_edit = False

    def holders(self, community_id: str, role_id: str) -> set[str]:
        return self.members.setdefault((community_id, role_id), set())

    async def grant(self, community_id: str, identity_id: str, role_id: str) -> None:
        if role_id not in self.roles:
            raise RoleNotFound(f"role {role_id} missing")
        if self.fail_grant:
            raise RoleGatewayError("platform timed out")
        self.holders(community_id, role_id).add(identity_id)

    async def revoke(self, community_id: str, identity_id: str, role_id: str) -> None:
        if identity_id in self.departed:
            raise MemberNotFound(f"member {identity_id} missing")
        if identity_id in self.fail_revoke_for:
            raise RoleGatewayError("platform timed out")
        self.holders(community_id, role_id).discard(identity_id)
        self.revoked.append((community_id, identity_id, role_id))

    async def list_holders_of(self, community_id: str, role_id: str) -> list[str]:
        if self.fail_listing:
            raise RoleGatewayError("platform timed out")
        return sorted(self.holders(community_id, role_id))

    async def edit_original_response(
        self, application_id: str, interaction_token: str, message: dict
    ) -> None:
        if self.fail_edit:
            raise RoleGatewayError("webhook unavailable")
        self.edits.append((application_id, interaction_token, message))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def ledger(clock: FakeClock) -> AsyncGenerator[InMemoryChallengeLedger, None]:
    ledger = InMemoryChallengeLedger(ttl_seconds=600, clock=clock)
    yield ledger
    await ledger.close()


@pytest.fixture
def oracle() -> FakeOracle:
    return FakeOracle({HOLDER.address: 1, EMPTY.address: 0})


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def wallets() -> InMemoryWalletRegistry:
    return InMemoryWalletRegistry()


@pytest.fixture
def audit() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def coordinator(ledger, oracle, gateway, wallets, audit) -> VerificationCoordinator:
    return VerificationCoordinator(
        ledger=ledger,
        signature_verifier=SignatureVerifier(),
        oracle=oracle,
        gateway=gateway,
        role_id=ROLE,
        wallet_registry=wallets,
        message=MESSAGE,
        audit=audit,
    )


@pytest.fixture
async def client(
    coordinator: VerificationCoordinator, gateway: FakeGateway
) -> AsyncGenerator[AsyncClient, None]:
    """API client with the coordinator and gateway replaced by fakes.

    ASGITransport does not run the lifespan, so no configuration or
    network access is needed.
    """
    from tokengate.main import app
    from tokengate.platform.gateway import get_role_gateway
    from tokengate.verification.coordinator import get_coordinator

    reset_challenge_ledger()
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    app.dependency_overrides[get_role_gateway] = lambda: gateway

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as async_client:
        yield async_client

    app.dependency_overrides.clear()
    reset_challenge_ledger()
