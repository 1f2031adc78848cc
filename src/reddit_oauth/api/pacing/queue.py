"""Serialized request queue with a minimum gap between requests.

reddit rate limits per OAuth client, so every outbound call is funnelled
through a single RequestQueue that:

- runs at most one request at a time (single flight)
- dispatches in strict FIFO order (no priorities)
- waits at least ``min_interval`` seconds between the completion of one
  request and the start of the next
- keeps at most one delay timer armed at any moment
- can be killed, dropping everything without firing any callback

All state lives on the event loop thread. The queue never blocks: a
request that has to wait is re-admitted by a ``loop.call_later`` timer.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import IntEnum
from functools import partial
from typing import Any

from reddit_oauth.api.exceptions import InvalidWorkItemError
from reddit_oauth.logging import bind_request, get_logger

logger = get_logger(__name__)

Notifier = Callable[[BaseException | None, Any], None]
"""Completion notifier: ``notify(error, result)``. Exactly one of them is set."""


class WorkState(IntEnum):
    """State of a queued work item."""

    PENDING = 1
    IN_FLIGHT = 2
    COMPLETED = 3
    DISCARDED = 4


@dataclass(eq=False)
class WorkItem:
    """A unit of schedulable work.

    ``invoke`` is called by the queue when the item is admitted and must
    return an awaitable (typically a coroutine performing the HTTP call).
    ``notify`` receives ``(error, result)`` once that awaitable finishes.

    Only ``state`` changes after the item is submitted.
    """

    invoke: Callable[[], Awaitable[Any]]
    notify: Notifier | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: WorkState = WorkState.PENDING


class RequestQueue:
    """Single-flight FIFO queue with a time buffer between requests.

    Usage:
        queue = RequestQueue(min_interval=2.0)

        queue.submit(WorkItem(lambda: transport(request), on_done))
        queue.submit(WorkItem(lambda: transport(other), on_other_done))

        # Later, abandon everything that has not completed yet
        queue.kill()

    A submission made while the queue is idle and the interval has already
    elapsed is dispatched before ``submit`` returns.
    """

    def __init__(
        self,
        min_interval: float = 0.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the request queue.

        Args:
            min_interval: Seconds to wait between the end of a request and
                          the start of the next (0 disables the wait)
            clock: Time source in seconds; injectable for tests

        Raises:
            ValueError: If min_interval is negative.
        """
        if min_interval < 0:
            raise ValueError(f"min_interval must be >= 0, got {min_interval}")

        self._min_interval = min_interval
        self._clock = clock

        self._pending: deque[WorkItem] = deque()
        self._active: WorkItem | None = None
        self._last_completion_time = 0.0
        self._has_completed = False
        self._timer: asyncio.TimerHandle | None = None
        self._notifying = False

        # Strong references to in-flight transport tasks
        self._tasks: set[asyncio.Future[Any]] = set()

        # Statistics
        self._total_submitted = 0
        self._total_completed = 0
        self._total_discarded = 0

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------
    def submit(self, item: WorkItem) -> WorkItem:
        """Add a work item to the queue and try to dispatch it.

        Args:
            item: Work item to enqueue

        Returns:
            The submitted item (for tracking its state)

        Raises:
            InvalidWorkItemError: If item is not a WorkItem, its invoke is not
                callable, or it declares a notifier that is not callable.
                Nothing is enqueued in that case.
        """
        if not isinstance(item, WorkItem):
            raise InvalidWorkItemError(f"Invalid request: {item!r}")
        if not callable(item.invoke):
            raise InvalidWorkItemError(f"Invalid request invoke: {item.invoke!r}")
        if item.notify is not None and not callable(item.notify):
            raise InvalidWorkItemError(f"Invalid request callback: {item.notify!r}")

        self._pending.append(item)
        self._total_submitted += 1
        logger.debug(
            "Enqueued request {} (queue_size={})", item.id[:8], len(self._pending)
        )

        self.advance()
        return item

    # -------------------------------------------------------------------------
    # Admission
    # -------------------------------------------------------------------------
    def advance(self) -> None:
        """Dispatch the next pending item if the queue allows it.

        No-op while a request is in flight, while a completion notifier is
        running, or when nothing is pending. If
        the interval since the last completion has not elapsed yet, arms a
        timer (unless one is already armed) that calls back into advance().
        """
        if self._notifying or self._active is not None or not self._pending:
            return

        if self._has_completed:
            now = self._clock()
            earliest = self._last_completion_time + self._min_interval
            if now < earliest:
                if self._timer is None:
                    delay = earliest - now
                    logger.debug("Request buffer active, waiting {:.3f}s", delay)
                    self._set_timer(delay, self.advance)
                return

        self._dispatch(self._pending.popleft())

    def _dispatch(self, item: WorkItem) -> None:
        """Mark item active and start its underlying call."""
        item.state = WorkState.IN_FLIGHT
        self._active = item
        bind_request(__name__, item.id).debug("Dispatching request")

        try:
            future = asyncio.ensure_future(item.invoke())
        except Exception as e:
            # invoke() failed before producing an awaitable
            self._complete(item, e, None)
            return

        self._tasks.add(future)
        future.add_done_callback(partial(self._on_done, item))

    def _on_done(self, item: WorkItem, future: asyncio.Future[Any]) -> None:
        """Translate a finished transport future into a completion."""
        self._tasks.discard(future)

        error: BaseException | None
        result: Any = None
        if future.cancelled():
            error = asyncio.CancelledError()
        else:
            error = future.exception()
            if error is None:
                result = future.result()

        self._complete(item, error, result)

    def _complete(self, item: WorkItem, error: BaseException | None, result: Any) -> None:
        """Completion handler: free the slot, notify, then admit the next item.

        Runs exactly once per dispatched item. Completions of items that are
        no longer active (dropped by kill) are ignored.
        """
        if self._active is not item:
            bind_request(__name__, item.id).debug("Ignoring completion of discarded request")
            return

        self._active = None
        self._last_completion_time = self._clock()
        self._has_completed = True
        item.state = WorkState.COMPLETED
        self._total_completed += 1

        if item.notify is not None:
            # Submissions made by the notifier are admitted after it returns
            self._notifying = True
            try:
                item.notify(error, result)
            except Exception:
                bind_request(__name__, item.id).exception("Request callback raised")
            finally:
                self._notifying = False

        self.advance()

    # -------------------------------------------------------------------------
    # Timer
    # -------------------------------------------------------------------------
    def _set_timer(self, delay: float, callback: Callable[[], None]) -> None:
        """Call ``callback`` after ``delay`` seconds, replacing any armed timer."""
        self._clear_timer()

        def _fire() -> None:
            self._timer = None
            callback()

        self._timer = asyncio.get_running_loop().call_later(delay, _fire)

    def _clear_timer(self) -> None:
        """Cancel the armed timer, if any."""
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None

    # -------------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------------
    def kill(self) -> None:
        """Drop the timer, the in-flight request and every pending request.

        No notifier fires for any dropped item. An in-flight transport call
        keeps running; its result is ignored when it arrives.
        """
        self._clear_timer()

        dropped = list(self._pending)
        if self._active is not None:
            dropped.append(self._active)
        for item in dropped:
            item.state = WorkState.DISCARDED
        self._total_discarded += len(dropped)

        self._pending.clear()
        self._active = None

        if dropped:
            logger.info("Request queue killed, discarded {} request(s)", len(dropped))

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------
    @property
    def min_interval(self) -> float:
        """Seconds enforced between a completion and the next dispatch."""
        return self._min_interval

    @property
    def active(self) -> WorkItem | None:
        """The item currently in flight, if any."""
        return self._active

    @property
    def queue_size(self) -> int:
        """Number of pending (not yet dispatched) items."""
        return len(self._pending)

    @property
    def has_timer(self) -> bool:
        """True while a delay timer is armed."""
        return self._timer is not None

    @property
    def last_completion_time(self) -> float:
        """Clock value of the most recent completion (0.0 before the first)."""
        return self._last_completion_time

    @property
    def is_idle(self) -> bool:
        """True if no pending or in-flight requests."""
        return self._active is None and not self._pending

    def get_stats(self) -> dict[str, int | bool]:
        """Get queue statistics.

        Returns:
            Dict with queue_size, is_idle, total_submitted, etc.
        """
        return {
            "queue_size": len(self._pending),
            "is_idle": self.is_idle,
            "total_submitted": self._total_submitted,
            "total_completed": self._total_completed,
            "total_discarded": self._total_discarded,
        }
