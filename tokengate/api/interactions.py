"""Discord HTTP interactions endpoint."""
import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse

from tokengate.config import DISCORD_PUBLIC_KEY, PUBLIC_BASE_URL
from tokengate.platform.gateway import DiscordRoleGateway, get_role_gateway
from tokengate.platform.interactions import handle_interaction, verify_request_signature
from tokengate.verification.coordinator import VerificationCoordinator, get_coordinator

log = logging.getLogger(__name__)
router = APIRouter(tags=["interactions"])


def get_public_key() -> str:
    return DISCORD_PUBLIC_KEY


@router.post("/interactions")
async def interactions(
    request: Request,
    background_tasks: BackgroundTasks,
    public_key: str = Depends(get_public_key),
    coordinator: VerificationCoordinator = Depends(get_coordinator),
    gateway: DiscordRoleGateway = Depends(get_role_gateway),
):
    """Receive slash command invocations from Discord.

    Deferred command results are delivered by background tasks that run
    after this response has been sent.
    """
    if not public_key:
        return JSONResponse(status_code=404, content={"error": "Interactions endpoint disabled"})

    body = await request.body()
    signature = request.headers.get("X-Signature-Ed25519", "")
    timestamp = request.headers.get("X-Signature-Timestamp", "")
    if not signature or not verify_request_signature(public_key, signature, timestamp, body):
        log.warning("Rejected interaction with invalid signature")
        return JSONResponse(status_code=401, content={"error": "invalid request signature"})

    try:
        payload = json.loads(body)
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "invalid JSON"})
    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"error": "interaction must be a JSON object"})

    return await handle_interaction(
        payload, coordinator, gateway, PUBLIC_BASE_URL, background_tasks
    )
