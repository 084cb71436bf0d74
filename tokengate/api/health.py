"""Health check endpoints."""
import logging

from fastapi import APIRouter, Request

from tokengate.api.models import HealthResponse
from tokengate.config import GIT_SHA
from tokengate.verification.ledger import get_challenge_ledger

log = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/healthz", response_model=HealthResponse)
async def healthz(request: Request) -> HealthResponse:
    """Health check endpoint.

    Returns service status, pending challenge count and whether the
    re-verification loop is running.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    return HealthResponse(
        ok=True,
        pending_challenges=get_challenge_ledger().pending_count,
        scheduler_running=bool(scheduler and scheduler.running),
    )


@router.get("/version")
def version():
    # GIT_SHA is injected at deploy time
    return {"git_sha": GIT_SHA}
