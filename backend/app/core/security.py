"""Bearer token helpers.

Residents, guards and managers sign in through the external identity
service; this API only verifies the tokens it receives. ``create_access_token``
exists for the seed tooling and the test suite.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import jwt

from app.core.config import get_settings


def create_access_token(
    subject: str, expires_delta: timedelta | None = None, **claims: Any
) -> str:
    """Sign ``subject`` plus extra claims (``role``, ``unit_id``, ``email``)."""
    settings = get_settings()
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    payload: dict[str, Any] = {"sub": subject, "exp": datetime.now(UTC) + lifetime}
    payload.update(claims)
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry; raises ``jose.JWTError`` on failure."""
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
