import customtkinter as ctk
from database.account_dao import AccountDAO
from database.category_dao import CategoryDAO
from database.db_manager import DatabaseManager
from services.auto_confirmation_service import AutoConfirmationService
from services.preferences_service import PreferencesService
from services.recurring_service import RecurringService
from services.time_reactivity import TimeReactivity
from services.transaction_service import TransactionService
from ui.app_state import AppStateMonitor
from ui.components.confirmation_banner import ConfirmationBanner
from ui.tabs.recurring_tab import RecurringTab
from ui.tabs.settings_tab import SettingsTab
from ui.tabs.transactions_tab import TransactionsTab
from utils.constants import APP_NAME, APP_WIDTH, APP_HEIGHT


class AppWindow(ctk.CTk):
    """Root window. Also the timer host for every engine timer (after/after_cancel)."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.title(APP_NAME)
        self.minsize(APP_WIDTH, APP_HEIGHT)
        self.geometry(f"{APP_WIDTH}x{APP_HEIGHT}")

        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(1, weight=1)

        self.app_state = AppStateMonitor(self)
        self._release_banner = None
        self._build_banner_area()

    def attach(
        self,
        db: DatabaseManager,
        tx_service: TransactionService,
        recurring_service: RecurringService,
        preferences: PreferencesService,
        time_reactivity: TimeReactivity,
        confirmation_service: AutoConfirmationService,
        account_dao: AccountDAO,
        category_dao: CategoryDAO,
    ):
        """Build the tabs once the services (which need this window as host) exist."""
        self._tabview = ctk.CTkTabview(self)
        self._tabview.grid(row=1, column=0, sticky="nsew", padx=8, pady=(0, 8))
        for tab_name in ("Transactions", "Recurring", "Settings"):
            self._tabview.add(tab_name)
            self._tabview.tab(tab_name).grid_columnconfigure(0, weight=1)
            self._tabview.tab(tab_name).grid_rowconfigure(0, weight=1)

        self._transactions_tab = TransactionsTab(
            self._tabview.tab("Transactions"),
            tx_service=tx_service,
            preferences=preferences,
            time_reactivity=time_reactivity,
            confirmation_service=confirmation_service,
            account_dao=account_dao,
            category_dao=category_dao,
        )
        self._transactions_tab.grid(row=0, column=0, sticky="nsew")

        self._recurring_tab = RecurringTab(
            self._tabview.tab("Recurring"),
            recurring_service=recurring_service,
            account_dao=account_dao,
            time_reactivity=time_reactivity,
        )
        self._recurring_tab.grid(row=0, column=0, sticky="nsew")

        self._settings_tab = SettingsTab(
            self._tabview.tab("Settings"),
            db=db,
            preferences=preferences,
        )
        self._settings_tab.grid(row=0, column=0, sticky="nsew")

        self._release_banner = confirmation_service.on_confirmed(self._banner.record)

    def _build_banner_area(self):
        self._banner_frame = ctk.CTkFrame(self, fg_color="transparent", height=0)
        self._banner_frame.grid(row=0, column=0, sticky="ew", padx=8)
        self._banner = ConfirmationBanner(self._banner_frame)

    def detach(self):
        if self._release_banner is not None:
            self._release_banner()
            self._release_banner = None
