"""FastAPI dependencies for authentication, authorization and tenancy.

Dependencies:
  get_current_user        → decode JWT (header or cookie), load user, return User
  require_permission(...) → restrict to specific granular permissions
  get_client_id           → resolve the effective client for the request
"""

from fastapi import Depends, Query, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockbook.auth.jwt import decode_token
from stockbook.auth.permissions import has_permission, resolve_permissions
from stockbook.config import settings
from stockbook.database import get_db
from stockbook.middleware.exceptions import (
    AuthenticationRequiredError,
    InvalidTokenError,
    PermissionDeniedError,
    UserNotFoundError,
)
from stockbook.models.public.user import User
from stockbook.tenancy import resolve_client_id, set_current_client

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# ── Core user dependency ────────────────────────────────────

async def get_current_user(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the JWT, load the user, and return it.

    The token comes from the Authorization header, falling back to the
    session cookie.  The decoded payload is stashed on the user as
    `_token_payload` so downstream deps can read claims without
    re-decoding.
    """
    token = token or request.cookies.get(settings.auth_cookie_name)
    if not token:
        raise AuthenticationRequiredError()

    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise InvalidTokenError()

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise UserNotFoundError()

    # Stash token payload for downstream deps
    user._token_payload = payload  # type: ignore[attr-defined]
    return user


# ── Permission-based access control ─────────────────────────

def effective_permissions(user: User) -> list[str]:
    """Permissions from the token claim, else resolved from the user row."""
    payload: dict = getattr(user, "_token_payload", {})
    if "permissions" in payload:
        return payload["permissions"]
    return resolve_permissions(user.role.value, user.custom_permissions)


def require_permission(*perms: str):
    """Dependency factory: restrict to users who hold ALL listed permissions.

    Usage:
        @router.delete("")
        async def delete(user: User = Depends(require_permission("invoice.delete"))):
            ...
    """
    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.can_access_any_client:
            return user

        user_perms = effective_permissions(user)
        missing = [p for p in perms if not has_permission(user_perms, p)]
        if missing:
            raise PermissionDeniedError(f"Missing permissions: {', '.join(missing)}")
        return user

    return _check


# ── Tenant resolution ───────────────────────────────────────

def resolve_request_client(
    request: Request,
    user: User,
    explicit: str | None = None,
) -> str:
    """Resolve and activate the client for this request.

    Precedence: explicit field > selectedClient cookie > user's default.
    Only super admins may act on a client other than their own.
    """
    client_id = resolve_client_id(
        explicit,
        request.cookies.get(settings.client_cookie_name),
        user.client_id,
    )
    if not user.can_access_any_client and client_id != user.client_id:
        raise PermissionDeniedError("You do not have access to this client")

    set_current_client(client_id)
    return client_id


async def get_client_id(
    request: Request,
    selected_client_id: str | None = Query(None, alias="selectedClientId"),
    user: User = Depends(get_current_user),
) -> str:
    """Client id for read endpoints, taken from the query string if given."""
    return resolve_request_client(request, user, selected_client_id)
