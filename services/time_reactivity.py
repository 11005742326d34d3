"""Exact-boundary timers for time-based UI invalidation and scheduling.

Both primitives run on a *timer host*: any object with Tk's
``after(ms, func)`` / ``after_cancel(handle)`` pair (every customtkinter
widget qualifies). Nothing here polls; each timer is armed for the exact
millisecond it is needed and torn down when nobody is listening.
"""
import logging
from collections.abc import Callable
from datetime import datetime
from models.transaction import Transaction
from utils.constants import MINUTE_MS
from utils.date_helpers import minute_of, ms_until_next_minute, now_ms, to_ms
from utils.observable import Observable, Unsubscribe

logger = logging.getLogger(__name__)


class MinuteTicker(Observable):
    """Current minute number, updated exactly at each minute boundary.

    One shared timer, armed only while somebody is subscribed.
    """

    def __init__(self, host, clock: Callable[[], int] = now_ms):
        super().__init__()
        self._host = host
        self._clock = clock
        self._minute = minute_of(clock())
        self._timer = None

    def current_value(self) -> int:
        if self._timer is None:
            # Nobody is driving updates; read straight from the clock.
            self._minute = minute_of(self._clock())
        return self._minute

    def _schedule_next_minute(self):
        if self._timer is not None:
            self._host.after_cancel(self._timer)
        self._timer = self._host.after(ms_until_next_minute(self._clock()), self._on_boundary)

    def _on_boundary(self):
        self._timer = None
        self._minute = minute_of(self._clock())
        self._notify()
        if self._listeners:
            self._schedule_next_minute()

    def _on_first_subscriber(self):
        self._minute = minute_of(self._clock())
        self._schedule_next_minute()

    def _on_last_unsubscribe(self):
        if self._timer is not None:
            self._host.after_cancel(self._timer)
            self._timer = None


class TimestampScheduler:
    """Fires callbacks when absolute instants elapse, one timer per minute.

    Listeners are bucketed by the minute containing their instant, so many
    transactions due in the same minute share a single timer. A bucket's
    timer targets its earliest pending instant; listeners are never called
    before their own instant.
    """

    def __init__(self, host, clock: Callable[[], int] = now_ms):
        self._host = host
        self._clock = clock
        self._buckets: dict[int, list[tuple[int, Callable[[], None]]]] = {}
        self._timers: dict[int, object] = {}

    @property
    def bucket_count(self) -> int:
        return len(self._buckets)

    def subscribe(self, instant_ms: int, callback: Callable[[], None]) -> Unsubscribe:
        if instant_ms <= self._clock():
            callback()
            return lambda: None

        bucket_key = (instant_ms // MINUTE_MS) * MINUTE_MS
        entry = (instant_ms, callback)
        bucket = self._buckets.setdefault(bucket_key, [])
        bucket.append(entry)
        if len(bucket) == 1 or instant_ms < min(i for i, _ in bucket[:-1]):
            self._arm(bucket_key)

        def unsubscribe():
            listeners = self._buckets.get(bucket_key)
            if listeners is None or entry not in listeners:
                return
            listeners.remove(entry)
            if not listeners:
                self._discard(bucket_key)

        return unsubscribe

    def _arm(self, bucket_key: int):
        timer = self._timers.pop(bucket_key, None)
        if timer is not None:
            self._host.after_cancel(timer)
        earliest = min(instant for instant, _ in self._buckets[bucket_key])
        delay = max(0, earliest - self._clock())
        self._timers[bucket_key] = self._host.after(delay, self._fire, bucket_key)

    def _fire(self, bucket_key: int):
        self._timers.pop(bucket_key, None)
        listeners = self._buckets.get(bucket_key)
        if not listeners:
            return
        now = self._clock()
        due = [entry for entry in listeners if entry[0] <= now]
        remaining = [entry for entry in listeners if entry[0] > now]
        logger.debug("Minute bucket %d fired: %d due, %d remaining",
                     bucket_key, len(due), len(remaining))
        if remaining:
            self._buckets[bucket_key] = remaining
            self._arm(bucket_key)
        else:
            del self._buckets[bucket_key]
        for _, callback in due:
            callback()

    def _discard(self, bucket_key: int):
        self._buckets.pop(bucket_key, None)
        timer = self._timers.pop(bucket_key, None)
        if timer is not None:
            self._host.after_cancel(timer)


class HasPassed(Observable):
    """Observable of ``now >= instant``; flips to True exactly once."""

    def __init__(self, scheduler: TimestampScheduler, instant: datetime,
                 clock: Callable[[], int] = now_ms):
        super().__init__()
        self._scheduler = scheduler
        self._instant_ms = to_ms(instant)
        self._clock = clock
        self._release = None

    def current_value(self) -> bool:
        return self._clock() >= self._instant_ms

    def _on_first_subscriber(self):
        self._release = self._scheduler.subscribe(self._instant_ms, self._notify)

    def _on_last_unsubscribe(self):
        if self._release is not None:
            self._release()
            self._release = None


class TimeReactivity:
    """App-wide owner of the minute ticker and timestamp scheduler."""

    def __init__(self, host, clock: Callable[[], int] = now_ms):
        self._clock = clock
        self.minute_ticker = MinuteTicker(host, clock)
        self.timestamps = TimestampScheduler(host, clock)

    def minute_tick(self) -> MinuteTicker:
        return self.minute_ticker

    def has_passed(self, instant: datetime) -> HasPassed:
        return HasPassed(self.timestamps, instant, self._clock)


def is_confirmable(transaction: Transaction, has_passed: bool) -> bool:
    """Pending, not deleted, and its date has elapsed."""
    if transaction.is_deleted:
        return False
    return transaction.is_pending and has_passed


def is_upcoming(transaction: Transaction, minute: int) -> bool:
    """Pending or dated after the current minute tick."""
    if transaction.is_pending:
        return True
    if transaction.transaction_date is None:
        return False
    return to_ms(transaction.transaction_date) > minute * MINUTE_MS
