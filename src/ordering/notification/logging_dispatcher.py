"""Default dispatcher — writes each event as a structured log line."""

import structlog

from ordering.notification.port import NotificationDispatcher

logger = structlog.get_logger(__name__)


class LoggingDispatcher(NotificationDispatcher):
    def dispatch(self, event) -> None:
        payload = {key: value for key, value in event.to_dict().items() if key != "_metadata"}
        logger.info(
            "Order notification",
            event_type=event.__class__.__name__,
            **payload,
        )
