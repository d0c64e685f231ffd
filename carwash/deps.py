from dataclasses import dataclass
from uuid import UUID

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger

from carwash.errors import Forbidden, Unauthorized
from carwash.models import Role
from carwash.security import decode_access_token

bearer_scheme = HTTPBearer(
    auto_error=False,
    description="Token returned by POST /users/login.",
)


@dataclass
class CurrentUser:
    id: UUID
    role: Role


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser:
    """
    Verify the bearer token and expose the caller's identity.
    The user is also stored on request.state so the rate limiter can key on it.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthorized("No token provided")

    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired") from None
    except jwt.InvalidTokenError:
        logger.info("Rejected invalid token from {}", client_host(request))
        raise Unauthorized("Invalid token") from None

    try:
        user = CurrentUser(id=UUID(payload["user_id"]), role=Role(payload["role"]))
    except (ValueError, TypeError):
        raise Unauthorized("Invalid token") from None

    request.state.user = user
    return user


def require_roles(*roles: Role):
    """
    Factory that returns a dependency restricting a route to the given roles.

    Usage:
        @router.get("/report")
        async def route(user = Depends(require_roles(Role.ADMIN))):
            ...
    """

    async def _dep(
        current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if current_user.role not in roles:
            raise Forbidden(
                f"Access denied: requires role {' or '.join(r.value for r in roles)}"
            )
        return current_user

    return _dep


async def require_admin(
    current_user: CurrentUser = Depends(require_roles(Role.ADMIN)),
) -> CurrentUser:
    """Shorthand for admin-only endpoints."""
    return current_user


def client_host(request: Request) -> str:
    """
    Peer address of the connection. Proxy headers are only applied by
    uvicorn for peers listed in FORWARDED_ALLOW_IPS.
    """
    return request.client.host if request.client else "unknown"
