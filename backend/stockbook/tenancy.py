"""Multi-tenancy: row-level isolation by client id.

Key components:
  - _tenant_ctx              ContextVar holding the client id for the current request
  - set / clear helpers for the ContextVar
  - resolve_client_id()      precedence rule for picking the effective tenant
"""

from contextvars import ContextVar

from stockbook.middleware.exceptions import NoClientAccessError

# ── Request-scoped tenant context ───────────────────────────

_tenant_ctx: ContextVar[str | None] = ContextVar("_tenant_ctx", default=None)


def set_current_client(client_id: str) -> None:
    _tenant_ctx.set(client_id)


def clear_tenant_context() -> None:
    _tenant_ctx.set(None)


# ── Resolution ──────────────────────────────────────────────

def resolve_client_id(
    explicit: str | None,
    cookie: str | None,
    user_default: str | None,
) -> str:
    """Pick the effective tenant.

    Precedence: explicit request field > session cookie > user's default.
    Blank strings count as absent.
    """
    for candidate in (explicit, cookie, user_default):
        if candidate and candidate.strip():
            return candidate.strip()
    raise NoClientAccessError()
