"""JWT token creation and decoding.

Tokens are issued by the identity service; this module only needs to
verify them.  `create_access_token` exists for the CLI and the test suite.

Token claims:
  - sub:             user ID
  - role:            user role string
  - is_super_admin:  may act on any client
  - client_id:       the user's default client (tenant), if any
  - permissions:     optional list of effective permission strings
  - type:            "access"
  - exp:             expiry timestamp
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from stockbook.config import settings

ALGORITHM = settings.jwt_algorithm


def create_access_token(
    user_id: str,
    role: str,
    client_id: str | None = None,
    is_super_admin: bool = False,
    permissions: list[str] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": user_id,
        "role": role,
        "is_super_admin": is_super_admin,
        "type": "access",
        "exp": expire,
    }
    if client_id:
        payload["client_id"] = client_id
    if permissions is not None:
        payload["permissions"] = permissions
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}
