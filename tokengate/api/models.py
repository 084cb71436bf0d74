"""API models for the Token Gate service.

Pydantic models for API requests and responses.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Request Models
# =============================================================================


class VerifySubmission(BaseModel):
    """Wallet proof submitted by the verification page."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(..., min_length=1, description="Challenge token from the verify link")
    wallet_address: str = Field(
        ..., alias="walletAddress", min_length=1, description="Claimed wallet address"
    )
    signature: str = Field(..., min_length=1, description="personal_sign signature (hex)")


# =============================================================================
# Response Models
# =============================================================================


class VerifySuccessResponse(BaseModel):
    """Response after a successful verification."""

    success: bool = True
    message: str
    wallet: str = Field(..., description="Redacted wallet address")


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    code: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    ok: bool
    service: str = "tokengate"
    pending_challenges: int = 0
    scheduler_running: bool = False
