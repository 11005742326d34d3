import logging
import os
import sys
import customtkinter as ctk

# Ensure project root is on sys.path when run directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from database.db_manager import DatabaseManager
from database.account_dao import AccountDAO
from database.transaction_dao import TransactionDAO
from database.category_dao import CategoryDAO
from database.recurring_dao import RecurringDAO

from models.transaction_filters import TransactionFilters
from services.auto_confirmation_service import AutoConfirmationService
from services.preferences_service import PreferencesService
from services.recurring_service import RecurringService
from services.time_reactivity import TimeReactivity
from services.transaction_service import TransactionService

from ui.app_window import AppWindow
from utils.app_config import get_db_path, get_log_level
from utils.constants import DB_FILE

logger = logging.getLogger(__name__)


def main():
    # ── Bootstrap: logging + DB location from pre-DB config ──────────────────
    logging.basicConfig(
        level=get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # ── Database ─────────────────────────────────────────────────────────────
    db = DatabaseManager(get_db_path(DB_FILE))
    db.initialize()

    # ── DAOs ─────────────────────────────────────────────────────────────────
    account_dao = AccountDAO(db)
    tx_dao = TransactionDAO(db)
    category_dao = CategoryDAO(db)
    recurring_dao = RecurringDAO(db)

    # ── Appearance ───────────────────────────────────────────────────────────
    ctk.set_appearance_mode(db.get_setting("appearance_mode", "system"))
    ctk.set_default_color_theme("blue")

    # ── Window first: it is the timer host for the engine ────────────────────
    app = AppWindow()

    # ── Services ─────────────────────────────────────────────────────────────
    preferences = PreferencesService(db)
    tx_svc = TransactionService(tx_dao, account_dao, preferences)
    recurring_svc = RecurringService(recurring_dao)
    time_reactivity = TimeReactivity(app)
    confirmations = AutoConfirmationService(host=app, store=tx_dao, preferences=preferences)

    # ── Auto-confirmation: catch up, then follow the pending rows live ────────
    confirmations.start(app.app_state)
    swept = confirmations.confirm_due_on_startup()
    if swept:
        logger.info("Confirmed %d transaction(s) that came due while closed", swept)

    pending_filter = TransactionFilters(is_pending=True)
    release_pending = tx_dao.observe(pending_filter, confirmations.schedule_transactions)
    # A policy change can make rows (un)qualify without any row changing.
    release_prefs = preferences.subscribe(
        lambda: confirmations.schedule_transactions(tx_dao.query(pending_filter))
    )

    # ── Launch UI ────────────────────────────────────────────────────────────
    app.attach(
        db=db,
        tx_service=tx_svc,
        recurring_service=recurring_svc,
        preferences=preferences,
        time_reactivity=time_reactivity,
        confirmation_service=confirmations,
        account_dao=account_dao,
        category_dao=category_dao,
    )

    def on_close():
        release_prefs()
        release_pending()
        confirmations.stop()
        app.detach()
        db.close()
        app.destroy()

    app.protocol("WM_DELETE_WINDOW", on_close)
    app.mainloop()


if __name__ == "__main__":
    main()
