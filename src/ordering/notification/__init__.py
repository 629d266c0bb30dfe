"""Notification dispatcher registry.

Provides singleton access to the active dispatcher. The logging dispatcher is
used unless another one has been set, e.g. a ``FakeDispatcher`` in tests.
"""

import structlog

from ordering.notification.port import NotificationDispatcher

logger = structlog.get_logger(__name__)

_dispatcher: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    """Return the configured dispatcher (singleton)."""
    global _dispatcher
    if _dispatcher is None:
        from ordering.notification.logging_dispatcher import LoggingDispatcher

        _dispatcher = LoggingDispatcher()
    return _dispatcher


def set_dispatcher(dispatcher: NotificationDispatcher) -> None:
    global _dispatcher
    _dispatcher = dispatcher


def reset_dispatcher():
    """Reset the dispatcher singleton (useful for testing)."""
    global _dispatcher
    _dispatcher = None


def notify(dispatcher: NotificationDispatcher, events) -> None:
    """Hand each event to the dispatcher, logging and discarding failures."""
    for event in events:
        try:
            dispatcher.dispatch(event)
        except Exception as exc:
            logger.error(
                "Notification dispatch failed",
                event_type=event.__class__.__name__,
                error=str(exc),
            )
