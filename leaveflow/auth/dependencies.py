"""Request authentication (bearer JWT) and role gates."""

from __future__ import annotations

import uuid
from typing import Callable

from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.auth.principal import Principal
from leaveflow.common.constants import UserRole
from leaveflow.common.exceptions import ForbiddenException, UnauthorizedException
from leaveflow.config import settings
from leaveflow.database import get_db
from leaveflow.organization.models import User

_BEARER_PREFIX = "Bearer "


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    if not header.startswith(_BEARER_PREFIX):
        raise UnauthorizedException("Missing or invalid Authorization header.")
    return header[len(_BEARER_PREFIX):]


def _decode_subject(token: str) -> uuid.UUID:
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise UnauthorizedException("Token has expired.")
    except JWTError:
        raise UnauthorizedException("Invalid token.")

    if claims.get("type") != "access":
        raise UnauthorizedException("Invalid token type.")
    try:
        return uuid.UUID(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise UnauthorizedException("Invalid token subject.")


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Resolve the bearer token to a ``Principal``.

    Tokens are issued by the identity service; only the subject is trusted.
    Role, organization and manager come from the ``users`` row so a role
    change applies on the next request.
    """
    user_id = _decode_subject(_bearer_token(request))

    user = (
        await db.execute(select(User).where(User.id == user_id, User.is_active.is_(True)))
    ).scalars().first()
    if user is None:
        raise UnauthorizedException("User account is inactive or not found.")

    principal = Principal.from_user(user)
    request.state.principal = principal
    return principal


def require_role(*allowed_roles: UserRole) -> Callable:
    """Dependency factory: authenticate, then insist on one of *allowed_roles*."""

    async def _check(principal: Principal = Depends(get_current_user)) -> Principal:
        if principal.role not in allowed_roles:
            raise ForbiddenException()
        return principal

    return _check
