"""Wallet verification protocol: challenges, signatures, ownership checks."""

from tokengate.verification.coordinator import VerificationCoordinator, get_coordinator
from tokengate.verification.ledger import ChallengeLedger, InMemoryChallengeLedger
from tokengate.verification.models import (
    Challenge,
    OwnershipResult,
    RoleGrantConfirmation,
    WalletCheck,
    WalletRecord,
)
from tokengate.verification.ownership import OwnershipOracle, Web3OwnershipOracle
from tokengate.verification.scheduler import ReVerificationScheduler, TickReport
from tokengate.verification.signature import SignatureVerifier
from tokengate.verification.wallets import InMemoryWalletRegistry, WalletRegistry

__all__ = [
    "Challenge",
    "ChallengeLedger",
    "InMemoryChallengeLedger",
    "InMemoryWalletRegistry",
    "OwnershipOracle",
    "OwnershipResult",
    "ReVerificationScheduler",
    "RoleGrantConfirmation",
    "SignatureVerifier",
    "TickReport",
    "VerificationCoordinator",
    "WalletCheck",
    "WalletRecord",
    "WalletRegistry",
    "Web3OwnershipOracle",
    "get_coordinator",
]
