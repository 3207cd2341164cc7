import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from jose import JWTError

from rally_watchdog.core.config import Settings, get_settings
from rally_watchdog.utils.security import OPERATOR_ROLES, decode_access_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    """Who is calling. Passed explicitly to handlers instead of global flags."""

    user_id: Optional[str] = None
    role: Optional[str] = None
    fingerprint: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_operator(self) -> bool:
        return self.is_authenticated and self.role in OPERATOR_ROLES


async def get_session_context(
    authorization: Optional[str] = Header(None),
    x_client_fingerprint: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> SessionContext:
    """
    Builds the SessionContext from the Authorization header and the
    client fingerprint header. Anonymous callers are allowed; a malformed or
    expired bearer token is not.
    """
    fingerprint = x_client_fingerprint.strip() if x_client_fingerprint else None

    if not authorization:
        return SessionContext(fingerprint=fingerprint or None)

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not authorization.startswith("Bearer "):
        raise credentials_exception

    token = authorization.split(" ", 1)[1]
    try:
        payload = decode_access_token(token, settings)
    except JWTError:
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception

    return SessionContext(
        user_id=str(user_id),
        role=payload.get("role"),
        fingerprint=fingerprint or None,
    )


async def require_operator(
    context: SessionContext = Depends(get_session_context),
) -> SessionContext:
    if not context.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not context.is_operator:
        logger.warning(f"Permission denied: user {context.user_id} (role: {context.role}) attempted operator action")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied. Required role: {', '.join(OPERATOR_ROLES)}",
        )
    return context
