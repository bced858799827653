from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param

from ..core.security import decode_token
from ..middlewares import principal_ctx_var


class AuthContext:
    def __init__(self, *, user_id: str, email: str, role: str) -> None:
        self.user_id = user_id
        self.email = email
        self.role = role


def _unauthorized(detail: str = "Unauthorized") -> None:
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _set_principal(request: Request, principal: str) -> None:
    principal_ctx_var.set(principal)
    request.state.principal = principal


async def require_user(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> AuthContext:
    scheme, credentials = get_authorization_scheme_param(authorization)
    if not authorization or scheme.lower() != "bearer" or not credentials:
        _unauthorized("Authentication token required")
    try:
        payload = decode_token(credentials, verify_type="access")
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    _set_principal(request, f"user:{payload.sub}")
    request.state.token_payload = payload
    return AuthContext(user_id=payload.sub, email=payload.email, role=payload.role)


def require_role(*roles: str):
    """Build a dependency that only admits users holding one of ``roles``."""

    allowed = set(roles)

    async def _require_role(context: AuthContext = Depends(require_user)) -> AuthContext:
        if context.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return context

    return _require_role
