"""
Shared fixtures: a controllable clock, a simulated Tk timer host, and an
in-memory database with the DAOs wired to the same clock.
"""

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone

import pytest

from database.account_dao import AccountDAO
from database.category_dao import CategoryDAO, TagDAO
from database.db_manager import DatabaseManager
from database.recurring_dao import RecurringDAO
from database.transaction_dao import TransactionDAO
from services.preferences_service import PreferencesService
from utils.date_helpers import to_ms


START = datetime(2024, 3, 15, 12, 0, 30, tzinfo=timezone.utc)


class FakeClock:
    """Callable returning epoch milliseconds; only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = to_ms(start)

    def __call__(self) -> int:
        return self.now


@dataclass(order=True)
class _Timer:
    due: int
    seq: int
    handle: str = field(compare=False)
    func: object = field(compare=False)
    args: tuple = field(compare=False, default=())


class FakeTimerHost:
    """Stand-in for a Tk widget's after()/after_cancel() pair driven by FakeClock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self._timers: dict[str, _Timer] = {}
        self._seq = itertools.count()
        self.cancelled: list[str] = []

    def after(self, ms, func, *args):
        seq = next(self._seq)
        handle = f"after#{seq}"
        self._timers[handle] = _Timer(self.clock.now + int(ms), seq, handle, func, args)
        return handle

    def after_cancel(self, handle):
        if self._timers.pop(handle, None) is not None:
            self.cancelled.append(handle)

    @property
    def pending_count(self) -> int:
        return len(self._timers)

    def delays(self) -> list[int]:
        """Remaining delay of every armed timer, soonest first."""
        return sorted(t.due - self.clock.now for t in self._timers.values())

    def advance(self, ms: int):
        """Move time forward, firing due timers in order (including ones they arm)."""
        target = self.clock.now + ms
        while True:
            due = [t for t in self._timers.values() if t.due <= target]
            if not due:
                break
            timer = min(due)
            del self._timers[timer.handle]
            self.clock.now = max(self.clock.now, timer.due)
            timer.func(*timer.args)
        self.clock.now = target

    def run_pending(self):
        self.advance(0)


class FakeWindow(FakeTimerHost):
    """Timer host that also records event bindings, for AppStateMonitor."""

    def __init__(self, clock: FakeClock):
        super().__init__(clock)
        self.bindings: dict[str, list] = {}

    def bind(self, sequence, func, add=None):
        self.bindings.setdefault(sequence, []).append(func)

    def fire(self, sequence, widget=None):
        event = type("Event", (), {"widget": widget if widget is not None else self})()
        for func in self.bindings.get(sequence, []):
            func(event)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def host(clock):
    return FakeTimerHost(clock)


@pytest.fixture
def db():
    manager = DatabaseManager(":memory:")
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def account_dao(db):
    return AccountDAO(db)


@pytest.fixture
def account(account_dao):
    return account_dao.get_all()[0]


@pytest.fixture
def category_dao(db):
    return CategoryDAO(db)


@pytest.fixture
def tag_dao(db):
    return TagDAO(db)


@pytest.fixture
def tx_dao(db, clock):
    return TransactionDAO(db, clock=clock)


@pytest.fixture
def recurring_dao(db):
    return RecurringDAO(db)


@pytest.fixture
def preferences(db):
    return PreferencesService(db)
