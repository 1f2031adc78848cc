"""Request pacing for the reddit API.

Components:
- RequestQueue: single-flight FIFO queue with a minimum gap between requests
- WorkItem: one unit of queued work with an optional completion notifier
"""

from .queue import Notifier, RequestQueue, WorkItem, WorkState

__all__ = [
    "Notifier",
    "RequestQueue",
    "WorkItem",
    "WorkState",
]
