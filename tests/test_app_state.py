"""
Tests for AppStateMonitor's foreground/background signal.
"""

from ui.app_state import ACTIVE, BACKGROUND, AppStateMonitor
from utils.constants import FOREGROUND_DEBOUNCE_MS

from conftest import FakeWindow


def _monitor(clock):
    window = FakeWindow(clock)
    monitor = AppStateMonitor(window)
    seen = []
    monitor.add_listener(seen.append)
    return window, monitor, seen


class TestAppStateMonitor:
    """Tests for transitions, debounce and event filtering."""

    def test_starts_active_and_binds(self, clock):
        window, monitor, seen = _monitor(clock)
        assert monitor.state == ACTIVE
        assert set(window.bindings) == {"<Map>", "<Unmap>"}
        assert seen == []

    def test_background_is_immediate(self, clock):
        window, monitor, seen = _monitor(clock)
        window.fire("<Unmap>")
        assert seen == [BACKGROUND]
        assert monitor.state == BACKGROUND

    def test_active_is_debounced(self, clock):
        """Returning to the foreground reports once the debounce elapses."""
        window, monitor, seen = _monitor(clock)
        window.fire("<Unmap>")
        window.fire("<Map>")
        window.fire("<Map>")
        assert seen == [BACKGROUND]

        window.advance(FOREGROUND_DEBOUNCE_MS - 1)
        assert seen == [BACKGROUND]
        window.advance(1)
        assert seen == [BACKGROUND, ACTIVE]

    def test_flicker_is_swallowed(self, clock):
        """Map then Unmap inside the debounce reports nothing new."""
        window, monitor, seen = _monitor(clock)
        window.fire("<Unmap>")
        window.fire("<Map>")
        window.fire("<Unmap>")
        window.advance(FOREGROUND_DEBOUNCE_MS * 2)
        assert seen == [BACKGROUND]
        assert window.pending_count == 0

    def test_child_widget_events_ignored(self, clock):
        """Only the window's own map state counts."""
        window, monitor, seen = _monitor(clock)
        window.fire("<Unmap>", widget=object())
        assert seen == []
        assert monitor.state == ACTIVE

    def test_released_listener_not_called(self, clock):
        window = FakeWindow(clock)
        monitor = AppStateMonitor(window)
        seen = []
        release = monitor.add_listener(seen.append)
        release()
        window.fire("<Unmap>")
        assert seen == []
