"""Role gateway: grant, revoke and list role membership.

DiscordRoleGateway talks to the Discord REST API with an httpx async
client. Rate-limited responses (429) are retried after the advertised
`retry_after`, a bounded number of times.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from tokengate.config import DISCORD_API_URL, DISCORD_TOKEN, PLATFORM_TIMEOUT_SECONDS

log = logging.getLogger(__name__)


class RoleGatewayError(Exception):
    """A platform call failed, timed out, or returned an unexpected status."""


class RoleNotFound(RoleGatewayError):
    """The role does not exist in the community."""


class MemberNotFound(RoleGatewayError):
    """The identity is not a member of the community (never joined or left)."""


class RoleGateway(ABC):
    """Capability for mutating and reading role membership."""

    @abstractmethod
    async def grant(self, community_id: str, identity_id: str, role_id: str) -> None:
        """Add the role to the member.

        Raises:
            RoleNotFound: Role does not exist in the community
            MemberNotFound: Identity is not a member of the community
            RoleGatewayError: Any other platform failure
        """
        ...

    @abstractmethod
    async def revoke(self, community_id: str, identity_id: str, role_id: str) -> None:
        """Remove the role from the member. Same errors as grant()."""
        ...

    @abstractmethod
    async def list_holders_of(self, community_id: str, role_id: str) -> list[str]:
        """Return identity ids of all members currently holding the role."""
        ...


class DiscordRoleGateway(RoleGateway):
    """Role gateway over the Discord REST API (v10)."""

    MAX_RATE_LIMIT_RETRIES = 3
    MEMBER_PAGE_SIZE = 1000

    # Discord JSON error codes
    UNKNOWN_MEMBER = 10007
    UNKNOWN_ROLE = 10011

    def __init__(
        self,
        token: str = DISCORD_TOKEN,
        base_url: str = DISCORD_API_URL,
        timeout: float = PLATFORM_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize gateway.

        Args:
            token: Bot token
            base_url: Discord REST base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "DiscordRoleGateway":
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bot {self._token}",
                "User-Agent": "DiscordBot (tokengate, 0.1.0)",
            },
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if not self._client:
            raise RoleGatewayError("Client not initialized")

        for attempt in range(self.MAX_RATE_LIMIT_RETRIES + 1):
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.TimeoutException as e:
                raise RoleGatewayError(f"{method} {path} timed out") from e
            except httpx.HTTPError as e:
                raise RoleGatewayError(f"{method} {path} failed: {e}") from e

            if response.status_code != 429:
                return response

            # Never wait longer than a single request may take
            retry_after = min(
                float(_json_or_empty(response).get("retry_after", 1.0)), self._timeout
            )
            log.warning(f"Discord rate limited on {method} {path}, retrying in {retry_after}s")
            if attempt < self.MAX_RATE_LIMIT_RETRIES:
                await asyncio.sleep(retry_after)

        raise RoleGatewayError(f"{method} {path} still rate limited after retries")

    def _raise_for_status(self, response: httpx.Response, what: str) -> None:
        if response.is_success:
            return
        data = _json_or_empty(response)
        if response.status_code == 404:
            code = data.get("code")
            if code == self.UNKNOWN_ROLE:
                raise RoleNotFound(f"{what}: {data.get('message', 'Unknown Role')}")
            if code == self.UNKNOWN_MEMBER:
                raise MemberNotFound(f"{what}: {data.get('message', 'Unknown Member')}")
        raise RoleGatewayError(
            f"{what}: HTTP {response.status_code} {data.get('message', '')}".rstrip()
        )

    async def role_exists(self, community_id: str, role_id: str) -> bool:
        response = await self._request("GET", f"/guilds/{community_id}/roles")
        self._raise_for_status(response, f"list roles of {community_id}")
        return any(role.get("id") == role_id for role in response.json())

    async def grant(self, community_id: str, identity_id: str, role_id: str) -> None:
        if not await self.role_exists(community_id, role_id):
            raise RoleNotFound(f"role {role_id} does not exist in {community_id}")

        response = await self._request(
            "PUT", f"/guilds/{community_id}/members/{identity_id}/roles/{role_id}"
        )
        self._raise_for_status(response, f"grant {role_id} to {identity_id}")
        log.info(f"Granted role {role_id} to {identity_id} in {community_id}")

    async def revoke(self, community_id: str, identity_id: str, role_id: str) -> None:
        response = await self._request(
            "DELETE", f"/guilds/{community_id}/members/{identity_id}/roles/{role_id}"
        )
        self._raise_for_status(response, f"revoke {role_id} from {identity_id}")
        log.info(f"Revoked role {role_id} from {identity_id} in {community_id}")

    async def list_holders_of(self, community_id: str, role_id: str) -> list[str]:
        holders: list[str] = []
        after = "0"

        while True:
            response = await self._request(
                "GET",
                f"/guilds/{community_id}/members",
                params={"limit": self.MEMBER_PAGE_SIZE, "after": after},
            )
            self._raise_for_status(response, f"list members of {community_id}")
            page = response.json()

            for member in page:
                if role_id in member.get("roles", []):
                    holders.append(member["user"]["id"])

            if len(page) < self.MEMBER_PAGE_SIZE:
                return holders
            after = page[-1]["user"]["id"]

    async def register_commands(
        self, application_id: str, community_id: str, commands: list[dict]
    ) -> None:
        """Overwrite the guild's slash commands with `commands`."""
        response = await self._request(
            "PUT",
            f"/applications/{application_id}/guilds/{community_id}/commands",
            json=commands,
        )
        self._raise_for_status(response, "register commands")
        log.info(f"Registered {len(commands)} slash commands in {community_id}")

    async def edit_original_response(
        self, application_id: str, interaction_token: str, message: dict
    ) -> None:
        """Replace a deferred interaction reply with `message`."""
        response = await self._request(
            "PATCH",
            f"/webhooks/{application_id}/{interaction_token}/messages/@original",
            json=message,
        )
        self._raise_for_status(response, "edit interaction response")


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


# Global gateway instance
_gateway: Optional[DiscordRoleGateway] = None


async def get_role_gateway() -> DiscordRoleGateway:
    """Get or create the global Discord role gateway."""
    global _gateway
    if _gateway is None:
        _gateway = DiscordRoleGateway()
        await _gateway.__aenter__()
    return _gateway


async def close_role_gateway() -> None:
    """Close the global Discord role gateway."""
    global _gateway
    if _gateway is not None:
        await _gateway.__aexit__(None, None, None)
        _gateway = None
