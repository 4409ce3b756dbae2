"""
Minimal typed publish/subscribe primitive.

A ``Signal`` owns nothing but its subscriber list. Subscribers are plain
callables receiving the published payload; an exception raised by one
subscriber is logged and never reaches the publisher or the other
subscribers.
"""

from collections.abc import Callable
from typing import Any, Generic, TypeVar

from loguru import logger

T = TypeVar("T")

Subscriber = Callable[[T], Any]


class Signal(Generic[T]):
    """
    An explicit observer list for one kind of event.

    Example:
        >>> changed: Signal[list[str]] = Signal("running_changed")
        >>> changed.subscribe(print)
        True
        >>> changed.publish(["1", "2"])
        ['1', '2']
    """

    def __init__(self, name: str = "signal") -> None:
        self.name = name
        self._subscribers: list[Subscriber[T]] = []

    def subscribe(self, subscriber: Subscriber[T]) -> bool:
        """
        Register a subscriber.

        Returns:
            False if the subscriber was already registered.
        """
        if subscriber in self._subscribers:
            return False
        self._subscribers.append(subscriber)
        return True

    def unsubscribe(self, subscriber: Subscriber[T]) -> bool:
        """
        Remove a subscriber.

        Returns:
            False if the subscriber was not registered.
        """
        if subscriber not in self._subscribers:
            return False
        self._subscribers.remove(subscriber)
        return True

    def publish(self, payload: T) -> None:
        """Deliver ``payload`` to every subscriber registered at call time."""
        for subscriber in list(self._subscribers):
            # Skip subscribers removed by an earlier one during this publish
            if subscriber not in self._subscribers:
                continue
            try:
                subscriber(payload)
            except Exception as e:
                logger.error(f"Subscriber error on {self.name}: {e}")

    def clear(self) -> None:
        """Remove all subscribers."""
        self._subscribers.clear()

    def __len__(self) -> int:
        return len(self._subscribers)

    def __repr__(self) -> str:
        return f"Signal(name={self.name!r}, subscribers={len(self._subscribers)})"
