"""Verification page and submission endpoints."""
import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from tokengate.api.models import ErrorResponse, VerifySubmission, VerifySuccessResponse
from tokengate.config import VERIFY_MESSAGE
from tokengate.exceptions import ErrorCode, MalformedRequest, VerificationError
from tokengate.verification.coordinator import VerificationCoordinator, get_coordinator

log = logging.getLogger(__name__)
router = APIRouter(tags=["verify"])

templates = Jinja2Templates(directory=str(Path(__file__).parent.parent / "templates"))

SUCCESS_MESSAGE = "Verification successful! Check Discord for your new role."


def _error_response(error: VerificationError) -> JSONResponse:
    return JSONResponse(
        status_code=error.http_status,
        content=ErrorResponse(error=error.message, code=error.code).model_dump(),
    )


@router.get("/verify")
def verify_page(request: Request, token: str = ""):
    """Serve the wallet connection page for a verification link."""
    return templates.TemplateResponse(
        request,
        "verify.html",
        {"token": token, "message": VERIFY_MESSAGE},
    )


@router.post(
    "/api/verify",
    response_model=VerifySuccessResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def submit_verification(
    request: Request,
    coordinator: VerificationCoordinator = Depends(get_coordinator),
):
    """Consume a challenge token and grant the role if the wallet qualifies.

    Body: `{token, walletAddress, signature}`. Failures answer
    `{error, code}` with 400 (token, signature, asset, malformed body)
    or 500 (role configuration, platform failure).
    """
    try:
        body = VerifySubmission.model_validate(await request.json())
    except (ValueError, ValidationError):
        return _error_response(MalformedRequest())

    try:
        confirmation = await coordinator.submit(body.token, body.wallet_address, body.signature)
    except VerificationError as e:
        return _error_response(e)
    except Exception:
        log.exception("Unexpected verification failure")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Verification failed", code=ErrorCode.INTERNAL_ERROR
            ).model_dump(),
        )

    return VerifySuccessResponse(message=SUCCESS_MESSAGE, wallet=confirmation.wallet)
