"""
Outbound SMS notifier.

One contract for every transport: ``send`` returns on delivery and raises
NotifierError otherwise. Missing credentials raise NotifierNotConfiguredError
so callers can record the attempt as skipped instead of crashing.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from rally_watchdog.core.config import Settings, get_settings
from rally_watchdog.core.errors import NotifierError, NotifierNotConfiguredError

logger = logging.getLogger(__name__)

DEFAULT_NOTIFICATION_TYPE = "rally_watchdog_warning"


class Notifier(ABC):
    @abstractmethod
    async def send(
        self,
        to: str,
        text: str,
        parameters: Optional[Dict[str, Any]] = None,
        recipient_id: Optional[str] = None,
    ) -> None:
        """Deliver ``text`` to the phone number ``to``."""

    async def aclose(self) -> None:
        return None


class NotificationApiNotifier(Notifier):
    """SMS through the NotificationAPI REST sender endpoint."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str = "https://api.notificationapi.com",
        timeout: float = 10.0,
        notification_type: str = DEFAULT_NOTIFICATION_TYPE,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.notification_type = notification_type
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def send(
        self,
        to: str,
        text: str,
        parameters: Optional[Dict[str, Any]] = None,
        recipient_id: Optional[str] = None,
    ) -> None:
        if not self.is_configured:
            raise NotifierNotConfiguredError("NotificationAPI credentials are not configured")

        payload = {
            "type": self.notification_type,
            "to": {"id": recipient_id or "driver", "number": to},
            "parameters": {"comment": text, **(parameters or {})},
        }

        try:
            response = await self._client.post(
                f"/{self.client_id}/sender",
                json=payload,
                auth=(self.client_id, self.client_secret),
            )
        except httpx.TimeoutException as exc:
            raise NotifierError(f"NotificationAPI request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise NotifierError(f"NotificationAPI request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.error(f"NotificationAPI error response ({response.status_code}): {response.text}")
            raise NotifierError(f"NotificationAPI request failed with status {response.status_code}")

        logger.info(f"📨 NotificationAPI accepted SMS ({response.status_code})")

    async def aclose(self) -> None:
        await self._client.aclose()


_notifier: Optional[Notifier] = None


def build_notifier(settings: Optional[Settings] = None) -> Notifier:
    settings = settings or get_settings()
    if not settings.notifier_configured:
        logger.warning("⚠️ NotificationAPI credentials missing; warnings will be recorded as skipped")
    return NotificationApiNotifier(
        client_id=settings.notificationapi_client_id,
        client_secret=settings.notificationapi_client_secret,
        base_url=settings.notificationapi_base_url,
        timeout=settings.notifier_timeout_seconds,
    )


def get_notifier() -> Notifier:
    """FastAPI dependency: process-wide notifier, created on first use."""
    global _notifier
    if _notifier is None:
        _notifier = build_notifier()
    return _notifier


async def close_notifier():
    global _notifier
    if _notifier is not None:
        await _notifier.aclose()
        _notifier = None
