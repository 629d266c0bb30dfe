"""Notification port — abstract interface for the order notification sink."""

from abc import ABC, abstractmethod


class NotificationDispatcher(ABC):
    """Receives order lifecycle and stock alert events once they are durable.

    Delivery is best effort. Implementations may raise; callers log the
    failure and carry on.
    """

    @abstractmethod
    def dispatch(self, event) -> None: ...
