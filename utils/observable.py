from collections.abc import Callable

Unsubscribe = Callable[[], None]


class Observable:
    """Subscribe/read pair shared by every reactive value in the app.

    Listeners take no arguments and re-read ``current_value()`` when called.
    Subclasses override ``_on_first_subscriber`` / ``_on_last_unsubscribe`` to
    arm and release whatever drives the value (timers, DB observers).
    """

    def __init__(self):
        self._listeners: list[Callable[[], None]] = []

    def subscribe(self, callback: Callable[[], None]) -> Unsubscribe:
        was_empty = not self._listeners
        self._listeners.append(callback)
        if was_empty:
            self._on_first_subscriber()

        def unsubscribe():
            if callback not in self._listeners:
                return
            self._listeners.remove(callback)
            if not self._listeners:
                self._on_last_unsubscribe()

        return unsubscribe

    def current_value(self):
        raise NotImplementedError

    def _notify(self):
        for callback in list(self._listeners):
            callback()

    def _on_first_subscriber(self):
        pass

    def _on_last_unsubscribe(self):
        pass


class VersionCounter(Observable):
    """Monotonically increasing counter; every bump notifies subscribers."""

    def __init__(self):
        super().__init__()
        self._version = 0

    def current_value(self) -> int:
        return self._version

    def bump(self):
        self._version += 1
        self._notify()
