"""Verification failure taxonomy.

Each error carries a stable code, a user-readable message and the HTTP
status the API answers with. Messages never include upstream error text;
the underlying cause is logged by whoever raises.
"""


class ErrorCode:
    """Error code constants returned alongside user-facing errors."""

    EXPIRED_OR_INVALID_TOKEN = "EXPIRED_OR_INVALID_TOKEN"
    SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"
    NO_QUALIFYING_ASSET = "NO_QUALIFYING_ASSET"
    ROLE_NOT_CONFIGURED = "ROLE_NOT_CONFIGURED"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    MALFORMED_REQUEST = "MALFORMED_REQUEST"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class VerificationError(Exception):
    """Base exception for a failed verification attempt."""

    code: str = ErrorCode.INTERNAL_ERROR
    http_status: int = 500
    default_message: str = "Verification failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ExpiredOrInvalidToken(VerificationError):
    """Token was never issued, already consumed, or past its TTL."""

    code = ErrorCode.EXPIRED_OR_INVALID_TOKEN
    http_status = 400
    default_message = "Invalid or expired verification token"


class SignatureMismatch(VerificationError):
    """Signature does not recover to the claimed wallet address."""

    code = ErrorCode.SIGNATURE_MISMATCH
    http_status = 400
    default_message = "Invalid signature"


class NoQualifyingAsset(VerificationError):
    """Wallet holds no token from the configured collection."""

    code = ErrorCode.NO_QUALIFYING_ASSET
    http_status = 400
    default_message = "Wallet does not hold required NFT"


class RoleNotConfigured(VerificationError):
    """The configured role does not exist in the community."""

    code = ErrorCode.ROLE_NOT_CONFIGURED
    http_status = 500
    default_message = "Role not found"


class UpstreamUnavailable(VerificationError):
    """A platform call failed or timed out after the checks passed."""

    code = ErrorCode.UPSTREAM_UNAVAILABLE
    http_status = 500
    default_message = "Verification failed"


class MalformedRequest(VerificationError):
    """Submission payload is missing fields or is not valid JSON."""

    code = ErrorCode.MALFORMED_REQUEST
    http_status = 400
    default_message = "Missing token, walletAddress or signature"
