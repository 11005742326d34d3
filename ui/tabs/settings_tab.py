import customtkinter as ctk
from tkinter import filedialog

from database.db_manager import DatabaseManager
from services.preferences_service import PreferencesService
from utils.app_config import get_db_path, set_db_path
from utils.constants import DB_FILE, TRANSFER_LAYOUTS


class SettingsTab(ctk.CTkFrame):
    """Settings tab: confirmation policy, transfers, database file, appearance."""

    def __init__(
        self,
        master,
        db: DatabaseManager,
        preferences: PreferencesService,
        **kwargs,
    ):
        super().__init__(master, fg_color="transparent", **kwargs)
        self._db = db
        self._prefs = preferences

        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(0, weight=1)

        scroll = ctk.CTkScrollableFrame(self, fg_color="transparent")
        scroll.grid(row=0, column=0, sticky="nsew")
        scroll.grid_columnconfigure(0, weight=1)

        self._build_pending_section(scroll)
        self._build_transfer_section(scroll)
        self._build_db_section(scroll)
        self._build_appearance_section(scroll)
        self.refresh()

    def refresh(self):
        """Re-read preferences and update displayed values."""
        pending = self._prefs.pending()
        transfers = self._prefs.transfers()
        self._require_var.set(pending.require_confirmation)
        self._update_date_var.set(pending.update_date_upon_confirmation)
        self._timeframe_var.set(str(pending.home_timeframe))
        self._layout_var.set(transfers.layout)
        self._exclude_var.set(transfers.exclude_from_totals)
        appearance = self._db.get_setting("appearance_mode", "system")
        self._appearance_var.set(appearance.title())

    # ── Section 1: Pending transactions ───────────────────────────────────────

    def _build_pending_section(self, parent):
        section = self._make_section(parent, "Pending Transactions", row=0)

        self._require_var = ctk.BooleanVar()
        ctk.CTkSwitch(
            section, text="Require manual confirmation",
            variable=self._require_var,
            command=lambda: self._prefs.set_require_confirmation(self._require_var.get()),
        ).grid(row=0, column=0, columnspan=2, sticky="w", padx=8, pady=4)
        self._hint(section, "When off, scheduled transactions confirm themselves at their due time.", 1)

        self._update_date_var = ctk.BooleanVar()
        ctk.CTkSwitch(
            section, text="Move date to confirmation time",
            variable=self._update_date_var,
            command=lambda: self._prefs.set_update_date_upon_confirmation(
                self._update_date_var.get()
            ),
        ).grid(row=2, column=0, columnspan=2, sticky="w", padx=8, pady=4)

        ctk.CTkLabel(section, text="Show upcoming for (days):", anchor="w").grid(
            row=3, column=0, sticky="w", padx=8, pady=4
        )
        self._timeframe_var = ctk.StringVar()
        ctk.CTkEntry(section, textvariable=self._timeframe_var, width=60).grid(
            row=3, column=1, sticky="w", padx=4
        )
        ctk.CTkButton(section, text="Apply", width=70, command=self._save_timeframe).grid(
            row=3, column=2, sticky="w", padx=4
        )
        self._timeframe_status = ctk.StringVar()
        ctk.CTkLabel(
            section, textvariable=self._timeframe_status,
            text_color="#F44336", font=ctk.CTkFont(size=11),
        ).grid(row=4, column=0, columnspan=3, sticky="w", padx=8)

    def _save_timeframe(self):
        try:
            self._prefs.set_home_timeframe(int(self._timeframe_var.get()))
        except ValueError:
            self._timeframe_status.set("Enter a whole number of days (0 or more).")
            return
        self._timeframe_status.set("")

    # ── Section 2: Transfers ──────────────────────────────────────────────────

    def _build_transfer_section(self, parent):
        section = self._make_section(parent, "Transfers", row=1)

        ctk.CTkLabel(section, text="Layout:", anchor="w").grid(
            row=0, column=0, sticky="w", padx=8, pady=4
        )
        self._layout_var = ctk.StringVar()
        ctk.CTkSegmentedButton(
            section, values=TRANSFER_LAYOUTS, variable=self._layout_var,
            command=self._prefs.set_transfer_layout,
        ).grid(row=0, column=1, sticky="w", padx=4)

        self._exclude_var = ctk.BooleanVar()
        ctk.CTkSwitch(
            section, text="Exclude transfers from totals",
            variable=self._exclude_var,
            command=lambda: self._prefs.set_transfer_exclude_from_totals(self._exclude_var.get()),
        ).grid(row=1, column=0, columnspan=2, sticky="w", padx=8, pady=4)

    # ── Section 3: Database file ──────────────────────────────────────────────

    def _build_db_section(self, parent):
        section = self._make_section(parent, "Database File", row=2)

        self._db_path_var = ctk.StringVar(value=get_db_path(DB_FILE))
        ctk.CTkEntry(
            section, textvariable=self._db_path_var,
            state="readonly", width=340,
        ).grid(row=0, column=0, padx=(8, 4), pady=4, sticky="ew")

        ctk.CTkButton(
            section, text="Browse…", width=90,
            command=self._browse_db_path,
        ).grid(row=0, column=1, padx=4)

        ctk.CTkButton(
            section, text="Reset to Default", width=120,
            fg_color="transparent", border_width=1,
            text_color=("gray10", "gray90"),
            command=self._reset_db_path,
        ).grid(row=0, column=2, padx=(4, 8))

        self._db_restart_label = ctk.CTkLabel(
            section, text="", text_color="#FF9800",
            font=ctk.CTkFont(size=11), anchor="w",
        )
        self._db_restart_label.grid(row=1, column=0, columnspan=3, sticky="w", padx=8, pady=(0, 6))

    def _browse_db_path(self):
        path = filedialog.asksaveasfilename(
            title="Choose database file", defaultextension=".db",
            filetypes=[("SQLite database", "*.db")], confirmoverwrite=False,
        )
        if path:
            set_db_path(path)
            self._db_path_var.set(path)
            self._db_restart_label.configure(text="Restart the app for the change to take effect.")

    def _reset_db_path(self):
        set_db_path(None)
        self._db_path_var.set(get_db_path(DB_FILE))
        self._db_restart_label.configure(text="Restart the app for the change to take effect.")

    # ── Section 4: Appearance ─────────────────────────────────────────────────

    def _build_appearance_section(self, parent):
        section = self._make_section(parent, "Appearance", row=3)
        self._appearance_var = ctk.StringVar()
        ctk.CTkOptionMenu(
            section, values=["System", "Light", "Dark"],
            variable=self._appearance_var,
            command=self._save_appearance,
        ).grid(row=0, column=0, sticky="w", padx=8, pady=4)

    def _save_appearance(self, display: str):
        mode = display.lower()
        self._db.set_setting("appearance_mode", mode)
        ctk.set_appearance_mode(mode)

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _hint(self, section, text: str, row: int):
        ctk.CTkLabel(
            section, text=text, text_color="gray60",
            font=ctk.CTkFont(size=11), anchor="w",
        ).grid(row=row, column=0, columnspan=3, sticky="w", padx=8)

    def _make_section(self, parent, title: str, row: int) -> ctk.CTkFrame:
        """Create a labelled card section and return its inner frame."""
        outer = ctk.CTkFrame(parent, corner_radius=8)
        outer.grid(row=row, column=0, sticky="ew", padx=12, pady=8)
        outer.grid_columnconfigure(0, weight=1)

        ctk.CTkLabel(
            outer, text=title,
            font=ctk.CTkFont(size=14, weight="bold"), anchor="w",
        ).grid(row=0, column=0, sticky="w", padx=12, pady=(10, 4))

        inner = ctk.CTkFrame(outer, fg_color="transparent")
        inner.grid(row=1, column=0, sticky="ew", padx=4, pady=(0, 8))
        return inner
