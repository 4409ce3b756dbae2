"""Polling - scheduled ticks with backoff and standby."""

from termsync.polling.poll import Frequency, Poll, PollPhase, Standby

__all__ = [
    "Frequency",
    "Poll",
    "PollPhase",
    "Standby",
]
