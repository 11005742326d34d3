import logging
from collections.abc import Callable
from utils.constants import FOREGROUND_DEBOUNCE_MS

logger = logging.getLogger(__name__)

ACTIVE = "active"
BACKGROUND = "background"


class AppStateMonitor:
    """Foreground/background signal for the root window.

    <Map> (restored, deiconified) reports 'active' after a short debounce;
    <Unmap> (minimized, withdrawn) reports 'background' immediately. Only
    transitions are reported.
    """

    def __init__(self, window, debounce_ms: int = FOREGROUND_DEBOUNCE_MS):
        self._window = window
        self._debounce_ms = debounce_ms
        self._listeners: list[Callable[[str], None]] = []
        self._state = ACTIVE
        self._pending_active = None
        window.bind("<Map>", self._on_map, add="+")
        window.bind("<Unmap>", self._on_unmap, add="+")

    @property
    def state(self) -> str:
        return self._state

    def add_listener(self, callback: Callable[[str], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def release():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return release

    def _on_map(self, event):
        # Child widgets' events bubble up to the toplevel's bindings.
        if event.widget is not self._window or self._state == ACTIVE:
            return
        self._state = ACTIVE
        self._cancel_pending()
        self._pending_active = self._window.after(self._debounce_ms, self._emit_active)

    def _on_unmap(self, event):
        if event.widget is not self._window or self._state == BACKGROUND:
            return
        self._state = BACKGROUND
        if self._pending_active is not None:
            # Never reported as active; nothing to undo.
            self._cancel_pending()
            return
        self._emit(BACKGROUND)

    def _emit_active(self):
        self._pending_active = None
        self._emit(ACTIVE)

    def _cancel_pending(self):
        if self._pending_active is not None:
            self._window.after_cancel(self._pending_active)
            self._pending_active = None

    def _emit(self, state: str):
        logger.debug("App state changed to %s", state)
        for callback in list(self._listeners):
            callback(state)
