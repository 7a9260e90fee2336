"""Push notification dispatch via an HTTP push gateway."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from config import NotificationConfig, settings
from resurfacing.errors import NotificationDeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushDeliverySummary:
    """Per-call delivery counts reported by the push gateway."""

    attempted: int = 0
    delivered: int = 0
    failed: int = 0

    def __post_init__(self) -> None:
        for name in ("attempted", "delivered", "failed"):
            if getattr(self, name) < 0:
                raise ValueError(f"PushDeliverySummary.{name} must be >= 0.")


class NotificationDispatcher(Protocol):
    """Sends one push notification to every device of a user."""

    def send_push_to_user(self, user_id: str, title: str, body: str) -> PushDeliverySummary:
        """Deliver a push notification and report per-device counts."""


class LogOnlyNotificationDispatcher:
    """Dispatcher used when no push gateway is configured."""

    def send_push_to_user(self, user_id: str, title: str, body: str) -> PushDeliverySummary:
        logger.info(
            "Push gateway not configured; notification logged only: user_id=%s title=%s body=%s",
            user_id,
            title,
            body,
        )
        return PushDeliverySummary()


class HttpPushNotificationDispatcher:
    """Client for the push gateway's per-user send endpoint."""

    def __init__(
        self,
        push_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            push_url: Gateway endpoint accepting ``{user_id, title, body}``.
            api_key: Optional bearer token for the gateway.
            timeout: Request timeout in seconds.
            client: Optional preconfigured client. The timeout is still applied
                to each request it sends.
        """
        self.push_url = push_url
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    def send_push_to_user(self, user_id: str, title: str, body: str) -> PushDeliverySummary:
        """Send a push notification to a user's registered devices.

        Raises:
            NotificationDeliveryError: If the gateway is unreachable, returns
                an error status, or replies with an unexpected payload.
        """
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        payload = {"user_id": user_id, "title": title, "body": body}
        try:
            if self._client is not None:
                response = self._client.post(
                    self.push_url, json=payload, headers=headers, timeout=self._timeout
                )
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.post(self.push_url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise NotificationDeliveryError(
                f"Push gateway error: {e.response.status_code}",
                details={"user_id": user_id, "status_code": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            raise NotificationDeliveryError(
                f"Push gateway connection error: {e}",
                details={"user_id": user_id},
            ) from e
        except ValueError as e:
            raise NotificationDeliveryError(
                "Push gateway returned invalid JSON",
                details={"user_id": user_id},
            ) from e

        return _parse_summary(data, user_id=user_id)


def _parse_summary(data: object, *, user_id: str) -> PushDeliverySummary:
    """Parse the gateway's delivery counts."""
    if not isinstance(data, dict):
        raise NotificationDeliveryError(
            "Push gateway returned a non-object payload",
            details={"user_id": user_id},
        )
    try:
        return PushDeliverySummary(
            attempted=int(data.get("attempted", 0)),
            delivered=int(data.get("delivered", 0)),
            failed=int(data.get("failed", 0)),
        )
    except (TypeError, ValueError) as e:
        raise NotificationDeliveryError(
            f"Push gateway returned invalid delivery counts: {data}",
            details={"user_id": user_id},
        ) from e


def build_notification_dispatcher(
    config: NotificationConfig | None = None,
) -> NotificationDispatcher:
    """Build the dispatcher for the configured push gateway."""
    resolved = config or settings.notifications
    if not resolved.push_url:
        return LogOnlyNotificationDispatcher()
    return HttpPushNotificationDispatcher(
        resolved.push_url,
        api_key=resolved.api_key,
        timeout=resolved.timeout_seconds,
    )
