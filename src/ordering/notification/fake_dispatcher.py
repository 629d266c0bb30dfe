"""Fake dispatcher — records dispatched events for testing."""

from ordering.notification.port import NotificationDispatcher


class FakeDispatcher(NotificationDispatcher):
    """Dispatcher that keeps events in memory for test assertions."""

    def __init__(self):
        self.dispatched: list = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        """Configure the fake dispatcher behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def dispatch(self, event) -> None:
        if not self.should_succeed:
            raise RuntimeError(self.failure_reason)
        self.dispatched.append(event)

    def events_of_type(self, event_cls) -> list:
        return [event for event in self.dispatched if isinstance(event, event_cls)]

    def reset(self):
        """Clear recorded events (useful between tests)."""
        self.dispatched.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
