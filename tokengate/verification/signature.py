"""Wallet signature verification (EIP-191 personal_sign).

The message is fixed by configuration, never supplied by the caller, so
a signature only ever proves control of a wallet for this one text.
Replay protection comes from single-use challenge tokens.
"""

import logging

from eth_account import Account
from eth_account.messages import encode_defunct

log = logging.getLogger(__name__)


def recover_signer(message: str, signature: str) -> str:
    """Recover the checksummed address that signed `message`.

    Raises:
        ValueError (or another eth_account error) for malformed signatures.
    """
    signable = encode_defunct(text=message)
    return Account.recover_message(signable, signature=signature)


class SignatureVerifier:
    """Checks that a personal_sign signature was produced by a claimed wallet."""

    def verify(self, message: str, signature: str, claimed_address: str) -> bool:
        """Return True iff `signature` over `message` recovers to `claimed_address`.

        Addresses compare case-insensitively. Malformed input yields False.
        """
        if not signature or not claimed_address:
            return False

        try:
            recovered = recover_signer(message, signature)
        except Exception as e:
            log.debug(f"Signature recovery failed: {type(e).__name__}: {e}")
            return False

        return recovered.lower() == claimed_address.strip().lower()
