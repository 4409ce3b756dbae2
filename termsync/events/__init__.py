"""Events - publish/subscribe primitive."""

from termsync.events.signal import Signal, Subscriber

__all__ = [
    "Signal",
    "Subscriber",
]
