"""
Submitter identity for rate limiting.

Authenticated callers are keyed by user id; anonymous callers by the opaque
fingerprint their client generated once and keeps in local storage. This is
an anti-abuse heuristic, not access control: a client that loses its
fingerprint starts a fresh rate-limit history.
"""

from dataclasses import dataclass
from typing import Optional

from rally_watchdog.core.auth import SessionContext
from rally_watchdog.core.errors import ValidationError
from rally_watchdog.utils.security import generate_client_fingerprint
from rally_watchdog.utils.validators import validate_fingerprint

USER = "user"
FINGERPRINT = "fingerprint"


@dataclass(frozen=True)
class SubmitterIdentity:
    kind: str  # 'user' | 'fingerprint'
    value: str

    @property
    def key(self) -> str:
        """Uniform rate-limit key, e.g. ``user:42`` or ``fingerprint:abc...``."""
        return f"{self.kind}:{self.value}"

    @property
    def user_id(self) -> Optional[str]:
        return self.value if self.kind == USER else None

    @property
    def fingerprint(self) -> Optional[str]:
        return self.value if self.kind == FINGERPRINT else None


def resolve_identity(user_id: Optional[str] = None, fingerprint: Optional[str] = None) -> SubmitterIdentity:
    # Priority: authenticated user > client fingerprint
    if user_id:
        return SubmitterIdentity(USER, str(user_id))

    if fingerprint is None or not fingerprint.strip():
        raise ValidationError(
            {"client_fingerprint": "A client fingerprint is required for anonymous reports."}
        )

    fingerprint = fingerprint.strip()
    if not validate_fingerprint(fingerprint):
        raise ValidationError(
            {"client_fingerprint": "Client fingerprint is malformed. Generate a new one and retry."}
        )
    return SubmitterIdentity(FINGERPRINT, fingerprint)


def resolve_session_identity(context: SessionContext) -> SubmitterIdentity:
    return resolve_identity(user_id=context.user_id, fingerprint=context.fingerprint)


def issue_fingerprint() -> str:
    """Fresh fingerprint for a client that has none stored yet."""
    return generate_client_fingerprint()
