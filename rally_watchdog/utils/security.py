import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

from jose import jwt

from rally_watchdog.core.config import Settings, get_settings

ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 24 hours for operator convenience

OPERATOR_ROLES = ("admin", "operator")


def create_access_token(
    subject: Union[str, Any],
    role: str = "participant",
    expires_delta: Optional[timedelta] = None,
    settings: Optional[Settings] = None,
) -> str:
    settings = settings or get_settings()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"exp": expire, "sub": str(subject), "role": role}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Decode and verify a bearer token. Raises jose.JWTError when invalid."""
    settings = settings or get_settings()
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def generate_client_fingerprint() -> str:
    # 32 random bytes -> 43 url-safe characters
    return secrets.token_urlsafe(32)
