"""Auto-confirmation of pre-approved pending transactions.

When confirmation is not required (globally, or overridden per transaction)
a pending transaction is *pre-approved*: it only waits for its scheduled
instant. This service arms one timer per such transaction for that exact
millisecond and confirms it through the storage layer when the timer fires.

- ``schedule_transactions`` is a full reconciliation pass over the latest
  snapshot and is safe to call on every live-query emission.
- Timers may not fire while the app is in the background, so every return
  to the foreground sweeps past-due rows with ``confirm_past_due``.
- The version counter (``subscribe`` / ``current_value``) is bumped after each
  confirmation and foreground return so views re-derive their grouping.
"""
import logging
from collections.abc import Callable
from models.transaction import Transaction
from utils.constants import CONFIRM_RETRY_DELAYS_MS
from utils.date_helpers import now_ms, to_ms
from utils.observable import VersionCounter

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], None]


def is_preapproved(transaction: Transaction, global_require_confirmation: bool) -> bool:
    """True when neither the row nor the global policy asks for manual confirmation."""
    return not transaction.needs_manual_confirmation(global_require_confirmation)


def qualifies_for_auto_confirmation(transaction: Transaction, global_require_confirmation: bool) -> bool:
    if not is_preapproved(transaction, global_require_confirmation):
        return False
    return transaction.is_pending and not transaction.is_deleted


class AutoConfirmationService(VersionCounter):
    def __init__(self, host, store, preferences, clock: Callable[[], int] = now_ms):
        """
        host: timer host (``after`` / ``after_cancel``), normally the root window.
        store: storage collaborator with ``confirm_transaction_sync`` and ``get_pending``.
        preferences: object whose ``pending()`` returns PendingTransactionPreferences.
        """
        super().__init__()
        self._host = host
        self._store = store
        self._preferences = preferences
        self._clock = clock
        self._scheduled: dict[str, object] = {}   # tx id → after() handle
        self._queued: dict[str, object] = {}      # tx id → after(0) handle of an immediate confirm
        self._retries: dict[str, object] = {}     # tx id → after() handle of a backoff retry
        self._failures: dict[str, int] = {}
        self._on_confirmed_callbacks: list[ConfirmCallback] = []
        self._app_state_release = None
        self._is_active = False

    @property
    def is_active(self) -> bool:
        return self._is_active

    # ── Lifecycle ───────────────────────────────────────────────────────────
    def start(self, app_state=None):
        """Begin confirming; app_state (optional) emits 'active' on foreground."""
        if self._is_active:
            return
        self._is_active = True
        if app_state is not None:
            self._app_state_release = app_state.add_listener(self._handle_app_state_change)
        logger.info("Auto-confirmation service started")

    def stop(self):
        was_active = self._is_active
        self._is_active = False
        self.clear_all_schedules()
        if self._app_state_release is not None:
            self._app_state_release()
            self._app_state_release = None
        if was_active:
            logger.info("Auto-confirmation service stopped")

    # ── Public API ──────────────────────────────────────────────────────────
    def on_confirmed(self, callback: ConfirmCallback) -> Callable[[], None]:
        self._on_confirmed_callbacks.append(callback)

        def unsubscribe():
            if callback in self._on_confirmed_callbacks:
                self._on_confirmed_callbacks.remove(callback)

        return unsubscribe

    def scheduled_ids(self) -> set[str]:
        return set(self._scheduled) | set(self._retries)

    def schedule_transactions(self, rows: list[Transaction]):
        """Reconcile timers with the given snapshot.

        Past-due qualifying rows are confirmed on the next loop turn; future
        ones get exactly one timer each. A past-due row waiting out a retry
        delay keeps its retry timer. Timers of rows that no longer qualify
        are cancelled last, so a row present in both snapshots is never left
        unscheduled.
        """
        if not self._is_active:
            return
        require_confirmation = self._preferences.pending().require_confirmation
        now = self._clock()
        qualifying: set[str] = set()

        for tx in rows:
            if not qualifies_for_auto_confirmation(tx, require_confirmation):
                continue
            if tx.transaction_date is None:
                logger.warning("Transaction %s has no date; not scheduling it", tx.id)
                continue
            ms_until_due = to_ms(tx.transaction_date) - now
            if ms_until_due <= 0:
                if tx.id not in self._retries:
                    self._clear_timer(tx.id)
                    self._queue_confirmation(tx.id)
            else:
                self._failures.pop(tx.id, None)
                self._arm(tx.id, ms_until_due)
            qualifying.add(tx.id)

        for tx_id in self.scheduled_ids():
            if tx_id not in qualifying:
                self._clear_timer(tx_id)
                self._failures.pop(tx_id, None)

        logger.debug("Reconciled %d qualifying transaction(s); %d timer(s) armed",
                     len(qualifying), len(self._scheduled) + len(self._retries))

    def confirm_past_due(self, rows: list[Transaction]) -> int:
        """Confirm every qualifying row already due, right now. Returns the count."""
        if not self._is_active:
            return 0
        require_confirmation = self._preferences.pending().require_confirmation
        now = self._clock()
        confirmed = 0
        for tx in rows:
            if not qualifies_for_auto_confirmation(tx, require_confirmation):
                continue
            if tx.transaction_date is None or to_ms(tx.transaction_date) > now:
                continue
            if tx.id in self._retries:
                continue
            self._clear_timer(tx.id)
            if self._confirm(tx.id):
                confirmed += 1
        return confirmed

    def confirm_due_on_startup(self) -> int:
        return self.confirm_past_due(self._store.get_pending())

    def cancel_schedule(self, transaction_id: str):
        self._clear_timer(transaction_id)
        self._failures.pop(transaction_id, None)

    def clear_all_schedules(self):
        for pending in (self._scheduled, self._queued, self._retries):
            for handle in pending.values():
                self._host.after_cancel(handle)
            pending.clear()
        self._failures.clear()

    # ── Helpers ─────────────────────────────────────────────────────────────
    def _arm(self, transaction_id: str, delay_ms: int):
        self._clear_timer(transaction_id)
        self._scheduled[transaction_id] = self._host.after(delay_ms, self._on_due, transaction_id)

    def _queue_confirmation(self, transaction_id: str):
        if transaction_id in self._queued:
            return
        self._queued[transaction_id] = self._host.after(0, self._run_queued, transaction_id)

    def _run_queued(self, transaction_id: str):
        self._queued.pop(transaction_id, None)
        self._confirm(transaction_id)

    def _on_due(self, transaction_id: str):
        self._scheduled.pop(transaction_id, None)
        self._confirm(transaction_id)

    def _run_retry(self, transaction_id: str):
        self._retries.pop(transaction_id, None)
        self._confirm(transaction_id)

    def _clear_timer(self, transaction_id: str):
        for pending in (self._scheduled, self._queued, self._retries):
            handle = pending.pop(transaction_id, None)
            if handle is not None:
                self._host.after_cancel(handle)

    def _confirm(self, transaction_id: str) -> bool:
        if not self._is_active:
            return False
        update_date = self._preferences.pending().update_date_upon_confirmation
        try:
            changed = self._store.confirm_transaction_sync(
                transaction_id, update_transaction_date=update_date
            )
        except Exception:
            self._handle_failure(transaction_id)
            return False

        self._failures.pop(transaction_id, None)
        if not changed:
            logger.debug("Transaction %s was already confirmed", transaction_id)
            return False
        logger.info("Auto-confirmed transaction %s", transaction_id)
        for callback in list(self._on_confirmed_callbacks):
            callback(transaction_id)
        self.bump()
        return True

    def _handle_failure(self, transaction_id: str):
        attempt = self._failures.get(transaction_id, 0)
        if attempt < len(CONFIRM_RETRY_DELAYS_MS):
            delay = CONFIRM_RETRY_DELAYS_MS[attempt]
            self._failures[transaction_id] = attempt + 1
            logger.warning("Confirming transaction %s failed; retry %d in %d ms",
                           transaction_id, attempt + 1, delay, exc_info=True)
            self._clear_timer(transaction_id)
            self._retries[transaction_id] = self._host.after(delay, self._run_retry, transaction_id)
        else:
            self._failures.pop(transaction_id, None)
            logger.error("Confirming transaction %s failed after %d retries; "
                         "leaving it to the next reconciliation pass",
                         transaction_id, attempt, exc_info=True)

    def _handle_app_state_change(self, state: str):
        if state == "active" and self._is_active:
            swept = self.confirm_due_on_startup()
            if swept:
                logger.info("Foreground sweep confirmed %d transaction(s)", swept)
            self.bump()
