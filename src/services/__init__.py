"""Infrastructure services for the resurfacing engine."""

from services.database import (
    check_connection,
    create_session_factory,
    run_in_transaction,
    transaction,
)
from services.notifications import (
    HttpPushNotificationDispatcher,
    LogOnlyNotificationDispatcher,
    NotificationDispatcher,
    PushDeliverySummary,
    build_notification_dispatcher,
)

__all__ = [
    "check_connection",
    "create_session_factory",
    "run_in_transaction",
    "transaction",
    "HttpPushNotificationDispatcher",
    "LogOnlyNotificationDispatcher",
    "NotificationDispatcher",
    "PushDeliverySummary",
    "build_notification_dispatcher",
]
