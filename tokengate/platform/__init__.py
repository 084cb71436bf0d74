"""Discord adapters: role gateway and slash command interactions."""

from tokengate.platform.gateway import (
    DiscordRoleGateway,
    MemberNotFound,
    RoleGateway,
    RoleGatewayError,
    RoleNotFound,
    close_role_gateway,
    get_role_gateway,
)

__all__ = [
    "DiscordRoleGateway",
    "MemberNotFound",
    "RoleGateway",
    "RoleGatewayError",
    "RoleNotFound",
    "close_role_gateway",
    "get_role_gateway",
]
