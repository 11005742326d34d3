"""
Tests for the minute ticker, the timestamp scheduler and the observables
built on them. Time is simulated with FakeClock + FakeTimerHost.
"""

from datetime import timedelta
from decimal import Decimal

from models.transaction import Transaction
from services.time_reactivity import (
    HasPassed,
    MinuteTicker,
    TimeReactivity,
    TimestampScheduler,
    is_confirmable,
    is_upcoming,
)
from utils.constants import MINUTE_MS
from utils.date_helpers import minute_of, to_ms
from utils.observable import VersionCounter

from conftest import START


def _tx(**overrides) -> Transaction:
    values = dict(
        id="t1", account_id="a1", type="expense", amount=Decimal("10"),
        transaction_date=START, created_at=START,
    )
    values.update(overrides)
    return Transaction(**values)


class TestMinuteTicker:
    """Tests for the shared minute-boundary timer."""

    def test_reads_clock_without_subscribers(self, host, clock):
        """The current minute is computed from the clock when nothing listens."""
        ticker = MinuteTicker(host, clock)
        assert ticker.current_value() == minute_of(clock.now)
        assert host.pending_count == 0

        clock.now += 2 * MINUTE_MS
        assert ticker.current_value() == minute_of(clock.now)

    def test_first_subscriber_arms_timer_for_next_boundary(self, host, clock):
        """Subscribing at hh:mm:30 arms a single 30-second timer."""
        ticker = MinuteTicker(host, clock)
        ticker.subscribe(lambda: None)
        assert host.delays() == [30_000]

    def test_notifies_exactly_on_boundary(self, host, clock):
        """Listeners run at the boundary, not a millisecond before."""
        ticker = MinuteTicker(host, clock)
        start_minute = ticker.current_value()
        calls = []
        ticker.subscribe(lambda: calls.append(ticker.current_value()))

        host.advance(29_999)
        assert calls == []

        host.advance(1)
        assert calls == [start_minute + 1]
        assert host.delays() == [MINUTE_MS]

    def test_subscribers_share_one_timer(self, host, clock):
        """Two subscribers do not create two timers."""
        ticker = MinuteTicker(host, clock)
        first, second = [], []
        ticker.subscribe(lambda: first.append(1))
        ticker.subscribe(lambda: second.append(1))
        assert host.pending_count == 1

        host.advance(30_000 + MINUTE_MS)
        assert len(first) == 2
        assert len(second) == 2

    def test_last_unsubscribe_cancels_timer(self, host, clock):
        """No timer survives once everybody has left."""
        ticker = MinuteTicker(host, clock)
        release_a = ticker.subscribe(lambda: None)
        release_b = ticker.subscribe(lambda: None)

        release_a()
        assert host.pending_count == 1
        release_b()
        assert host.pending_count == 0

    def test_resubscribe_rearms(self, host, clock):
        """Subscribing again after teardown arms a fresh timer."""
        ticker = MinuteTicker(host, clock)
        ticker.subscribe(lambda: None)()
        clock.now += 10_000
        ticker.subscribe(lambda: None)
        assert host.delays() == [20_000]


class TestTimestampScheduler:
    """Tests for minute-bucketed absolute-instant callbacks."""

    def test_past_instant_fires_synchronously(self, host, clock):
        """An instant that already elapsed calls back at once, without a timer."""
        scheduler = TimestampScheduler(host, clock)
        calls = []
        scheduler.subscribe(clock.now - 1, lambda: calls.append("due"))
        assert calls == ["due"]
        assert host.pending_count == 0
        assert scheduler.bucket_count == 0

    def test_same_minute_shares_one_timer(self, host, clock):
        """Instants in one minute coalesce into one bucket and one timer."""
        scheduler = TimestampScheduler(host, clock)
        base = to_ms(START + timedelta(seconds=40))   # 12:01:10
        scheduler.subscribe(base, lambda: None)
        scheduler.subscribe(base + 5_000, lambda: None)
        assert scheduler.bucket_count == 1
        assert host.pending_count == 1
        assert host.delays() == [40_000]

    def test_different_minutes_get_separate_buckets(self, host, clock):
        """One bucket per distinct minute."""
        scheduler = TimestampScheduler(host, clock)
        scheduler.subscribe(clock.now + MINUTE_MS, lambda: None)
        scheduler.subscribe(clock.now + 3 * MINUTE_MS, lambda: None)
        assert scheduler.bucket_count == 2
        assert host.pending_count == 2

    def test_never_fires_early(self, host, clock):
        """Each listener runs only once its own instant has elapsed."""
        scheduler = TimestampScheduler(host, clock)
        first_at = to_ms(START + timedelta(seconds=40))
        second_at = first_at + 15_000
        fired = []
        scheduler.subscribe(second_at, lambda: fired.append(("second", clock.now)))
        scheduler.subscribe(first_at, lambda: fired.append(("first", clock.now)))

        host.advance(first_at - clock.now - 1)
        assert fired == []

        host.advance(1)
        assert fired == [("first", first_at)]

        host.advance(second_at - clock.now)
        assert fired == [("first", first_at), ("second", second_at)]
        assert scheduler.bucket_count == 0
        assert host.pending_count == 0

    def test_earlier_instant_rearms_bucket(self, host, clock):
        """A later-subscribed but earlier instant moves the bucket's timer forward."""
        scheduler = TimestampScheduler(host, clock)
        minute_start = (clock.now // MINUTE_MS + 1) * MINUTE_MS
        scheduler.subscribe(minute_start + 50_000, lambda: None)
        scheduler.subscribe(minute_start + 10_000, lambda: None)
        assert host.pending_count == 1
        assert host.delays() == [minute_start + 10_000 - clock.now]

    def test_unsubscribing_last_listener_cancels_bucket(self, host, clock):
        """Reference counting: the bucket's timer dies with its last listener."""
        scheduler = TimestampScheduler(host, clock)
        at = clock.now + MINUTE_MS
        release_a = scheduler.subscribe(at, lambda: None)
        release_b = scheduler.subscribe(at + 1, lambda: None)

        release_a()
        assert host.pending_count == 1
        release_b()
        assert host.pending_count == 0
        assert scheduler.bucket_count == 0

    def test_unsubscribed_listener_is_not_called(self, host, clock):
        """Releasing one listener leaves the others in its bucket intact."""
        scheduler = TimestampScheduler(host, clock)
        at = clock.now + MINUTE_MS
        calls = []
        release = scheduler.subscribe(at, lambda: calls.append("gone"))
        scheduler.subscribe(at, lambda: calls.append("kept"))
        release()

        host.advance(MINUTE_MS)
        assert calls == ["kept"]


class TestHasPassed:
    """Tests for the now >= instant observable."""

    def test_flips_at_instant(self, host, clock):
        """The value turns True exactly when the instant elapses."""
        scheduler = TimestampScheduler(host, clock)
        instant = START + timedelta(minutes=2)
        passed = HasPassed(scheduler, instant, clock)
        seen = []
        passed.subscribe(lambda: seen.append(passed.current_value()))
        assert passed.current_value() is False

        host.advance(to_ms(instant) - clock.now)
        assert seen == [True]
        assert passed.current_value() is True

    def test_releases_scheduler_entry(self, host, clock):
        """Unsubscribing tears down the underlying bucket."""
        scheduler = TimestampScheduler(host, clock)
        passed = HasPassed(scheduler, START + timedelta(minutes=5), clock)
        release = passed.subscribe(lambda: None)
        assert scheduler.bucket_count == 1
        release()
        assert scheduler.bucket_count == 0
        assert host.pending_count == 0

    def test_facade_shares_scheduler(self, host, clock):
        """Watchers created through TimeReactivity share buckets."""
        time = TimeReactivity(host, clock)
        at = START + timedelta(seconds=45)
        time.has_passed(at).subscribe(lambda: None)
        time.has_passed(at + timedelta(seconds=5)).subscribe(lambda: None)
        assert time.timestamps.bucket_count == 1
        assert time.minute_tick() is time.minute_ticker


class TestClassificationHelpers:
    """Tests for is_confirmable / is_upcoming."""

    def test_confirmable_requires_pending_and_passed(self):
        """Only pending, live rows whose time has come are confirmable."""
        assert is_confirmable(_tx(is_pending=True), has_passed=True)
        assert not is_confirmable(_tx(is_pending=True), has_passed=False)
        assert not is_confirmable(_tx(is_pending=False), has_passed=True)
        assert not is_confirmable(_tx(is_pending=True, is_deleted=True), has_passed=True)

    def test_upcoming_uses_minute_tick(self):
        """Rows dated after the current minute are upcoming even when confirmed."""
        minute = minute_of(to_ms(START))
        assert is_upcoming(_tx(transaction_date=START + timedelta(minutes=1)), minute)
        assert not is_upcoming(_tx(transaction_date=START - timedelta(minutes=1)), minute)
        assert is_upcoming(_tx(is_pending=True, transaction_date=START - timedelta(days=1)), minute)


class TestVersionCounter:
    """Tests for the shared observable contract."""

    def test_bump_notifies_and_increments(self):
        """Every bump raises the value and calls each listener once."""
        counter = VersionCounter()
        calls = []
        release = counter.subscribe(lambda: calls.append(counter.current_value()))
        counter.bump()
        counter.bump()
        release()
        counter.bump()
        assert calls == [1, 2]
        assert counter.current_value() == 3
