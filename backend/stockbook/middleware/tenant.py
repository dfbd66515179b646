"""Tenant middleware: seeds the client context from the JWT on every request.

Flow:
  1. Extract the token from the Authorization header or the session cookie
  2. Decode JWT → get `client_id` claim
  3. Set ContextVar so downstream code can read it
  4. After the response, clear the ContextVar

The context set here is only the user's default client.  Endpoints that
accept an explicit client (body field, query param, selectedClient cookie)
re-resolve it through `resolve_request_client`.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from stockbook.auth.jwt import decode_token
from stockbook.config import settings
from stockbook.tenancy import clear_tenant_context, set_current_client

# Routes that never require auth, so a stale token is not rejected here
_PUBLIC_PREFIXES = ("/docs", "/openapi.json", "/health")


def _extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.cookies.get(settings.auth_cookie_name)


class TenantMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        token = _extract_token(request)
        path = request.url.path

        clear_tenant_context()
        if token:
            payload = decode_token(token)

            if not payload:
                # Token present but expired/malformed
                if not any(path.startswith(p) for p in _PUBLIC_PREFIXES):
                    return JSONResponse(
                        status_code=401,
                        content={"error": "Token expired or invalid", "code": "INVALID_TOKEN"},
                        headers={"WWW-Authenticate": "Bearer"},
                    )
            elif payload.get("client_id"):
                set_current_client(payload["client_id"])

        try:
            response = await call_next(request)
        finally:
            clear_tenant_context()

        return response
