import customtkinter as ctk
from database.account_dao import AccountDAO
from database.category_dao import CategoryDAO
from models.transaction import Transaction
from models.transaction_filters import TransactionListFilterState
from models.transaction_section import TransactionSection
from services.auto_confirmation_service import AutoConfirmationService, is_preapproved
from services.preferences_service import PreferencesService
from services.time_reactivity import TimeReactivity, is_confirmable
from services.transaction_grouping import build_query_filters
from services.transaction_service import TransactionService
from ui.components.confirm_dialog import ConfirmDialog
from ui.components.transaction_form import TransactionForm
from utils.constants import GROUP_BY_LABELS, GROUP_BY_OPTIONS, SEARCH_MODES
from utils.currency import format_currency, format_signed, format_totals
from utils.date_helpers import format_display_datetime, minute_to_datetime


_MAX_RENDERED_ROWS = 150
_TYPE_COLORS = {"income": "#4CAF50", "expense": "#F44336", "transfer": "#2196F3"}
_PENDING_LABELS = {"All": "all", "Pending": "pending", "Confirmed": "not_pending"}


class TransactionsTab(ctk.CTkFrame):
    """Upcoming list plus grouped history, kept live by the engine's observers."""

    def __init__(
        self,
        master,
        tx_service: TransactionService,
        preferences: PreferencesService,
        time_reactivity: TimeReactivity,
        confirmation_service: AutoConfirmationService,
        account_dao: AccountDAO,
        category_dao: CategoryDAO,
        **kwargs,
    ):
        super().__init__(master, fg_color="transparent", **kwargs)
        self._tx_svc = tx_service
        self._prefs = preferences
        self._time = time_reactivity
        self._confirmations = confirmation_service
        self._account_dao = account_dao
        self._cat_dao = category_dao

        self._rows: list[Transaction] = []
        self._release_watch = None
        self._row_watchers: list = []
        self._render_queued = False

        group_by = preferences.group_by()
        self._group_var = ctk.StringVar(value=GROUP_BY_LABELS[group_by])
        self._type_var = ctk.StringVar(value="all")
        self._pending_var = ctk.StringVar(value="All")
        self._search_mode_var = ctk.StringVar(value=SEARCH_MODES[0])
        self._search_var = ctk.StringVar()
        self._search_var.trace_add("write", lambda *_: self._watch())

        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(2, weight=1)

        self._build_filter_bar()
        self._build_upcoming()
        self._build_history()

        self._subscriptions = [
            self._time.minute_tick().subscribe(self._request_render),
            self._confirmations.subscribe(self._request_render),
            self._prefs.subscribe(self._on_preferences_changed),
        ]
        self._watch()
        self.bind("<Destroy>", self._on_destroy, add="+")

    def refresh(self):
        self._watch()

    # ── Filter bar ──────────────────────────────────────────────────────────
    def _build_filter_bar(self):
        bar = ctk.CTkFrame(self, fg_color=("gray88", "gray18"), corner_radius=8)
        bar.grid(row=0, column=0, sticky="ew", padx=8, pady=(8, 0))
        bar.grid_columnconfigure(4, weight=1)

        ctk.CTkOptionMenu(
            bar,
            values=[GROUP_BY_LABELS[g] for g in GROUP_BY_OPTIONS],
            variable=self._group_var,
            command=self._on_group_by_changed,
            width=110,
        ).grid(row=0, column=0, padx=(8, 4), pady=6)

        ctk.CTkSegmentedButton(
            bar,
            values=["all", "income", "expense", "transfer"],
            variable=self._type_var,
            command=lambda _: self._watch(),
            width=260,
        ).grid(row=0, column=1, padx=4)

        ctk.CTkSegmentedButton(
            bar,
            values=list(_PENDING_LABELS),
            variable=self._pending_var,
            command=lambda _: self._watch(),
            width=200,
        ).grid(row=0, column=2, padx=4)

        ctk.CTkOptionMenu(
            bar, values=SEARCH_MODES, variable=self._search_mode_var,
            command=lambda _: self._watch(), width=110,
        ).grid(row=0, column=3, padx=4)

        ctk.CTkEntry(
            bar, textvariable=self._search_var,
            placeholder_text="Search…", width=160,
        ).grid(row=0, column=4, padx=4, sticky="w")

        btn_frame = ctk.CTkFrame(bar, fg_color="transparent")
        btn_frame.grid(row=0, column=5, padx=(0, 8))
        for label, type_ in (("+ Income", "income"), ("+ Expense", "expense"),
                             ("+ Transfer", "transfer")):
            ctk.CTkButton(
                btn_frame, text=label, width=88,
                command=lambda t=type_: self._open_add_form(t),
            ).pack(side="left", padx=2)

    def _build_upcoming(self):
        self._upcoming = ctk.CTkFrame(self, corner_radius=8)
        self._upcoming.grid(row=1, column=0, sticky="ew", padx=8, pady=(6, 0))
        self._upcoming.grid_columnconfigure(0, weight=1)

    def _build_history(self):
        self._scroll = ctk.CTkScrollableFrame(self)
        self._scroll.grid(row=2, column=0, sticky="nsew", padx=8, pady=(6, 8))
        self._scroll.grid_columnconfigure(0, weight=1)

    # ── Data ────────────────────────────────────────────────────────────────
    def _now(self):
        return minute_to_datetime(self._time.minute_tick().current_value())

    def _group_by(self) -> str:
        label = self._group_var.get()
        return next((k for k, v in GROUP_BY_LABELS.items() if v == label), "day")

    def _pending_filter(self) -> str:
        return _PENDING_LABELS.get(self._pending_var.get(), "all")

    def _filter_state(self) -> TransactionListFilterState:
        type_ = self._type_var.get()
        return TransactionListFilterState(
            pending_filter=self._pending_filter(),
            type_filters=[] if type_ == "all" else [type_],
            group_by=self._group_by(),
        )

    def _watch(self):
        """(Re)start the live query for the current filter bar state."""
        if self._release_watch is not None:
            self._release_watch()
        filters = build_query_filters(
            self._filter_state(),
            selected_range=None,
            home_timeframe=self._prefs.pending().home_timeframe,
            now=self._now(),
            search=self._search_var.get(),
            search_mode=self._search_mode_var.get(),
        )
        self._release_watch = self._tx_svc.watch(filters, self._on_rows)

    def _on_rows(self, rows: list[Transaction]):
        self._rows = rows
        self._request_render()

    def _on_group_by_changed(self, _label):
        self._prefs.set_group_by(self._group_by())

    def _on_preferences_changed(self):
        self._group_var.set(GROUP_BY_LABELS[self._prefs.group_by()])
        self._watch()

    def _request_render(self):
        # Coalesce bursts (live query + version bump) into one redraw.
        if self._render_queued:
            return
        self._render_queued = True
        self.after_idle(self._render)

    def _on_destroy(self, event):
        if event.widget is not self:
            return
        for release in self._subscriptions + self._row_watchers:
            release()
        self._subscriptions, self._row_watchers = [], []
        if self._release_watch is not None:
            self._release_watch()
            self._release_watch = None

    # ── Rendering ───────────────────────────────────────────────────────────
    def _render(self):
        self._render_queued = False
        if not self.winfo_exists():
            return
        now = self._now()
        for release in self._row_watchers:
            release()
        self._row_watchers = []

        self._render_upcoming(self._tx_svc.to_upcoming(self._rows, now))
        self._render_sections(
            self._tx_svc.to_sections(self._rows, self._group_by(), now, self._pending_filter())
        )

    def _render_upcoming(self, upcoming: list[Transaction]):
        for w in self._upcoming.winfo_children():
            w.destroy()
        ctk.CTkLabel(
            self._upcoming, text=f"Upcoming ({len(upcoming)})",
            font=ctk.CTkFont(size=14, weight="bold"), anchor="w",
        ).grid(row=0, column=0, sticky="w", padx=12, pady=(8, 4))

        if not upcoming:
            ctk.CTkLabel(
                self._upcoming, text="Nothing scheduled.", text_color="gray60",
            ).grid(row=1, column=0, sticky="w", padx=12, pady=(0, 8))
            return

        require_confirmation = self._prefs.pending().require_confirmation
        for idx, tx in enumerate(upcoming[:_MAX_RENDERED_ROWS], start=1):
            self._add_upcoming_row(idx, tx, require_confirmation)

    def _add_upcoming_row(self, idx: int, tx: Transaction, require_confirmation: bool):
        row = ctk.CTkFrame(self._upcoming, fg_color="transparent")
        row.grid(row=idx, column=0, sticky="ew", padx=8, pady=1)
        self._add_cells(row, tx)

        passed = self._time.has_passed(tx.transaction_date) if tx.transaction_date else None
        if passed is not None and not passed.current_value():
            self._row_watchers.append(passed.subscribe(self._request_render))
        has_passed = passed is None or passed.current_value()

        if not tx.is_pending:
            status = "Scheduled"
        elif is_preapproved(tx, require_confirmation):
            status = "Auto-confirms"
        else:
            status = None

        if status is None:
            ctk.CTkButton(
                row, text="Confirm", width=80, height=24,
                state="normal" if is_confirmable(tx, has_passed) else "disabled",
                command=lambda t=tx: self._tx_svc.confirm(t.id),
            ).grid(row=0, column=5, padx=4)
        else:
            ctk.CTkLabel(row, text=status, width=80, text_color="gray60").grid(
                row=0, column=5, padx=4
            )

    def _render_sections(self, sections: list[TransactionSection]):
        for w in self._scroll.winfo_children():
            w.destroy()

        if len(sections) == 1 and not sections[0].data:
            ctk.CTkLabel(
                self._scroll, text="No transactions for this period.",
                text_color="gray60",
            ).grid(row=0, column=0, pady=20)
            return

        grid_row = 0
        rendered = 0
        for section in sections:
            if rendered >= _MAX_RENDERED_ROWS:
                break
            hdr = ctk.CTkFrame(self._scroll, fg_color=("gray82", "gray22"), corner_radius=4)
            hdr.grid(row=grid_row, column=0, sticky="ew", pady=(6, 1), padx=2)
            hdr.grid_columnconfigure(0, weight=1)
            ctk.CTkLabel(
                hdr, text=section.title, anchor="w",
                font=ctk.CTkFont(weight="bold"),
            ).grid(row=0, column=0, sticky="w", padx=8, pady=4)
            ctk.CTkLabel(hdr, text=format_totals(section.totals), anchor="e").grid(
                row=0, column=1, sticky="e", padx=8
            )
            grid_row += 1
            for idx, tx in enumerate(section.data):
                self._add_history_row(grid_row, idx, tx)
                grid_row += 1
                rendered += 1

    def _add_history_row(self, grid_row: int, idx: int, tx: Transaction):
        bg = ("gray92", "gray17") if idx % 2 == 0 else ("gray88", "gray21")
        row = ctk.CTkFrame(self._scroll, fg_color=bg, corner_radius=4)
        row.grid(row=grid_row, column=0, sticky="ew", pady=1, padx=2)
        self._add_cells(row, tx)
        ctk.CTkButton(
            row, text="Del", width=38, height=24,
            fg_color="#F44336", hover_color="#D32F2F",
            command=lambda t=tx: self._delete_tx(t),
        ).grid(row=0, column=5, padx=(4, 6))

    def _add_cells(self, row, tx: Transaction):
        when = format_display_datetime(tx.transaction_date) if tx.transaction_date else "—"
        ctk.CTkLabel(row, text=when, width=140, anchor="w").grid(row=0, column=0, padx=4, pady=3)
        ctk.CTkLabel(
            row, text=tx.type.title(), width=72, anchor="w",
            text_color=_TYPE_COLORS.get(tx.type, "gray"),
        ).grid(row=0, column=1, padx=4)
        ctk.CTkLabel(row, text=tx.title or tx.description or "—", width=220, anchor="w").grid(
            row=0, column=2, padx=4
        )
        ctk.CTkLabel(row, text=tx.account_name, width=110, anchor="w").grid(row=0, column=3, padx=4)

        signed = -tx.amount if tx.type == "expense" else tx.amount
        ctk.CTkLabel(
            row, text=format_signed(signed, tx.currency_code), width=100, anchor="e",
            text_color="#4CAF50" if signed >= 0 else "#F44336",
        ).grid(row=0, column=4, padx=4)

    # ── Actions ─────────────────────────────────────────────────────────────
    def _open_add_form(self, type_: str):
        form = TransactionForm(
            self.winfo_toplevel(), self._tx_svc, self._account_dao, self._cat_dao,
            initial_type=type_,
        )
        self.wait_window(form)

    def _delete_tx(self, tx: Transaction):
        what = "both sides of this transfer" if tx.transfer_id else f"this {tx.type}"
        dlg = ConfirmDialog(
            self.winfo_toplevel(),
            "Delete Transaction",
            f"Delete {what} ({format_currency(abs(tx.amount), tx.currency_code)})?",
            confirm_text="Delete",
        )
        if dlg.result:
            self._tx_svc.delete(tx.id)
