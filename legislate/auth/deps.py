from __future__ import annotations

from typing import Callable, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from legislate.db import connect
from legislate.errors import AuthenticationError, AuthorizationError, LegislateError
from legislate.models import Role, Status, User

from .crud import get_user_by_id


_bearer = HTTPBearer(auto_error=False)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> User:
    """Authenticate a request from its `Authorization: Bearer <jwt>` header.

    The token only proves identity. Role and status are read from the live user
    row, because an admin may have verified or rejected the account since the
    token was issued.
    """

    cfg = getattr(request.app.state, "cfg", None)
    signer = getattr(request.app.state, "signer", None)
    if cfg is None or signer is None:
        raise LegislateError("server_config_missing")

    token = credentials.credentials if credentials is not None else None
    if not token:
        raise AuthenticationError("missing_token")

    try:
        payload = signer.verify(token)
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("token_expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("token_invalid")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationError("token_invalid")

    with connect(cfg.DB_PATH) as conn:
        user = get_user_by_id(conn, user_id)
    if user is None:
        raise AuthenticationError("user_not_found")
    return user


def _check_verified(user: User) -> User:
    if user.status is not Status.VERIFIED:
        raise AuthorizationError("user_not_verified")
    return user


def require_role(*roles: Role) -> Callable[..., User]:
    """Dependency factory: 403 unless the authenticated user has one of `roles`."""
    allowed = frozenset(roles)

    def _require_role(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise AuthorizationError("forbidden")
        return user

    return _require_role


def require_verified(user: User = Depends(get_current_user)) -> User:
    return _check_verified(user)


def require_verified_role(*roles: Role) -> Callable[..., User]:
    """Role gate followed by the verified gate; the verified check only runs if the role passed."""
    role_gate = require_role(*roles)

    def _require_verified_role(user: User = Depends(role_gate)) -> User:
        return _check_verified(user)

    return _require_verified_role


require_admin = require_role(Role.ADMIN)
