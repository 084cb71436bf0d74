"""Discord slash commands delivered over HTTP interactions.

Discord signs every interaction request with Ed25519 over
`timestamp + body`; requests that fail verification must be rejected.

Commands:
- /verify: ephemeral reply with a time-limited verification link
- /checkwallet address:<str>: whether an address holds the collection;
  deferred, since the chain lookup can outlast Discord's 3 second window

Note: pysodium is imported lazily inside verify_request_signature() so
the rest of the module imports without libsodium present.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import BackgroundTasks

from tokengate.config import CHALLENGE_TTL_SECONDS, DISCORD_APPLICATION_ID
from tokengate.platform.gateway import DiscordRoleGateway, RoleGatewayError
from tokengate.verification.coordinator import VerificationCoordinator
from tokengate.verification.models import WalletCheck

log = logging.getLogger(__name__)


class InteractionType:
    PING = 1
    APPLICATION_COMMAND = 2


class ResponseType:
    PONG = 1
    CHANNEL_MESSAGE_WITH_SOURCE = 4
    DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE = 5


EPHEMERAL = 1 << 6

COLOR_SUCCESS = 0x10B981
COLOR_NEUTRAL = 0x6B7280

STRING_OPTION = 3

COMMANDS: list[dict] = [
    {
        "name": "verify",
        "description": "Get a link to verify your NFT ownership",
    },
    {
        "name": "checkwallet",
        "description": "Check if a wallet holds the required NFT",
        "options": [
            {
                "name": "address",
                "description": "Wallet address to check",
                "type": STRING_OPTION,
                "required": True,
            }
        ],
    },
]


def verify_request_signature(
    public_key_hex: str, signature_hex: str, timestamp: str, body: bytes
) -> bool:
    """Check Discord's Ed25519 signature over `timestamp + body`."""
    import pysodium

    try:
        pysodium.crypto_sign_verify_detached(
            bytes.fromhex(signature_hex),
            timestamp.encode() + body,
            bytes.fromhex(public_key_hex),
        )
    except Exception:
        return False
    return True


def _message(content: str | None = None, *, embeds=None, components=None, ephemeral=False) -> dict:
    data: dict[str, Any] = {}
    if content:
        data["content"] = content
    if embeds:
        data["embeds"] = embeds
    if components:
        data["components"] = components
    if ephemeral:
        data["flags"] = EPHEMERAL
    return {"type": ResponseType.CHANNEL_MESSAGE_WITH_SOURCE, "data": data}


def _invoking_user_id(payload: dict) -> str | None:
    # Guild invocations carry member.user; DMs carry user
    user = (payload.get("member") or {}).get("user") or payload.get("user") or {}
    return user.get("id")


def _option(payload: dict, name: str) -> str | None:
    for opt in payload.get("data", {}).get("options", []):
        if opt.get("name") == name:
            return opt.get("value")
    return None


async def handle_interaction(
    payload: dict,
    coordinator: VerificationCoordinator,
    gateway: DiscordRoleGateway,
    public_base_url: str,
    background: BackgroundTasks,
) -> dict:
    """Build the interaction response for a verified Discord payload.

    Commands that wait on the chain are answered with a deferred reply;
    the result is delivered later from `background` by editing that reply.
    """
    if payload.get("type") == InteractionType.PING:
        return {"type": ResponseType.PONG}

    if payload.get("type") != InteractionType.APPLICATION_COMMAND:
        log.warning(f"Unsupported interaction type: {payload.get('type')}")
        return _message("Unsupported interaction.", ephemeral=True)

    name = payload.get("data", {}).get("name")
    if name == "verify":
        return await _verify_command(payload, coordinator, public_base_url)
    if name == "checkwallet":
        return _checkwallet_command(payload, coordinator, gateway, background)

    log.warning(f"Unknown command: {name}")
    return _message("Unknown command.", ephemeral=True)


async def _verify_command(
    payload: dict, coordinator: VerificationCoordinator, public_base_url: str
) -> dict:
    user_id = _invoking_user_id(payload)
    guild_id = payload.get("guild_id")
    if not user_id or not guild_id:
        return _message("Run /verify inside the server you want the role in.", ephemeral=True)

    token = await coordinator.request_challenge(user_id, guild_id)
    verify_url = f"{public_base_url}/verify?token={token}"
    minutes = max(1, CHALLENGE_TTL_SECONDS // 60)

    embed = {
        "color": COLOR_SUCCESS,
        "title": "Verify Your NFT Ownership",
        "description": "Click the button below to connect your wallet and verify!",
        "fields": [
            {
                "name": "Instructions",
                "value": "1. Click \"Verify Now\"\n2. Connect your wallet\n"
                "3. Sign the message\n4. Get your role automatically!",
            },
            {"name": "Link Expires", "value": f"In {minutes} minutes", "inline": True},
            {"name": "Security", "value": "Ephemeral (only you can see this)", "inline": True},
        ],
        "footer": {"text": "The link works once"},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    button_row = {
        "type": 1,
        "components": [{"type": 2, "style": 5, "label": "Verify Now", "url": verify_url}],
    }
    return _message(embeds=[embed], components=[button_row], ephemeral=True)


def _checkwallet_command(
    payload: dict,
    coordinator: VerificationCoordinator,
    gateway: DiscordRoleGateway,
    background: BackgroundTasks,
) -> dict:
    address = (_option(payload, "address") or "").strip()
    if not address:
        return _message("Provide a wallet address.", ephemeral=True)

    background.add_task(complete_checkwallet, payload, address, coordinator, gateway)
    return {"type": ResponseType.DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE}


async def complete_checkwallet(
    payload: dict,
    address: str,
    coordinator: VerificationCoordinator,
    gateway: DiscordRoleGateway,
) -> None:
    """Run the ownership lookup and replace the deferred reply with the result."""
    check = await coordinator.check_wallet(address)
    application_id = payload.get("application_id") or DISCORD_APPLICATION_ID
    interaction_token = payload.get("token")
    if not application_id or not interaction_token:
        log.error("Cannot deliver /checkwallet result: interaction has no application id or token")
        return

    try:
        await gateway.edit_original_response(
            application_id, interaction_token, {"embeds": [_wallet_embed(address, check)]}
        )
    except RoleGatewayError as e:
        log.error(f"Could not deliver /checkwallet result: {e}")


def _wallet_embed(address: str, check: WalletCheck) -> dict:
    if check.error:
        holder = "Unknown (lookup failed, try again later)"
    else:
        holder = "Yes" if check.holds else "No"
    return {
        "color": COLOR_SUCCESS if check.holds else COLOR_NEUTRAL,
        "title": "Wallet Check",
        "description": f"Wallet: `{address}`",
        "fields": [
            {"name": "NFT Holder", "value": holder, "inline": True},
            {"name": "Contract", "value": f"`{check.contract}`", "inline": True},
        ],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
