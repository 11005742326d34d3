import customtkinter as ctk
from database.account_dao import AccountDAO
from models.recurring_rule import RecurringRule
from services.recurring_service import RecurringService
from services.time_reactivity import TimeReactivity
from ui.components.confirm_dialog import ConfirmDialog
from ui.components.recurring_form import RecurringForm
from utils.currency import format_currency
from utils.date_helpers import (
    end_of_month,
    format_display_datetime,
    localize,
    minute_to_datetime,
    start_of_month,
)


class RecurringTab(ctk.CTkFrame):
    def __init__(
        self,
        master,
        recurring_service: RecurringService,
        account_dao: AccountDAO,
        time_reactivity: TimeReactivity,
        **kwargs,
    ):
        super().__init__(master, fg_color="transparent", **kwargs)
        self._svc = recurring_service
        self._account_dao = account_dao
        self._time = time_reactivity

        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(1, weight=1)

        self._build_toolbar()
        self._build_list()
        self._load()

    def refresh(self):
        self._load()

    def _build_toolbar(self):
        bar = ctk.CTkFrame(self, fg_color=("gray88", "gray18"), corner_radius=8)
        bar.grid(row=0, column=0, sticky="ew", padx=8, pady=(8, 0))
        ctk.CTkLabel(
            bar, text="Recurring Rules",
            font=ctk.CTkFont(size=14, weight="bold"),
        ).pack(side="left", padx=12, pady=8)
        ctk.CTkButton(bar, text="+ Add Rule", command=self._open_add).pack(
            side="right", padx=8, pady=6
        )

    def _build_list(self):
        self._scroll = ctk.CTkScrollableFrame(self)
        self._scroll.grid(row=1, column=0, sticky="nsew", padx=8, pady=8)
        self._scroll.grid_columnconfigure(0, weight=1)

    def _load(self):
        for w in self._scroll.winfo_children():
            w.destroy()

        rules = self._svc.get_all()
        if not rules:
            ctk.CTkLabel(
                self._scroll,
                text="No recurring rules yet. Click '+ Add Rule' to create one.",
                text_color="gray60",
            ).grid(row=0, column=0, pady=40)
            return

        hdr = ctk.CTkFrame(self._scroll, fg_color=("gray82", "gray22"), corner_radius=0)
        hdr.grid(row=0, column=0, sticky="ew", pady=(0, 2))
        for i, (col, w) in enumerate([
            ("Title", 160), ("Type", 70), ("Amount", 90), ("Account", 110),
            ("Frequency", 90), ("Next Due", 150), ("This Month", 80), ("Actions", 110),
        ]):
            ctk.CTkLabel(
                hdr, text=col, width=w, anchor="w",
                font=ctk.CTkFont(weight="bold"),
            ).grid(row=0, column=i, padx=4, pady=4)

        now = minute_to_datetime(self._time.minute_tick().current_value())
        local_now = localize(now)
        month_start, month_end = start_of_month(local_now), end_of_month(local_now)
        for idx, rule in enumerate(rules, start=1):
            self._add_row(idx, rule, now, month_start, month_end)

    def _add_row(self, idx, rule: RecurringRule, now, month_start, month_end):
        bg = ("gray92", "gray17") if idx % 2 == 0 else ("gray88", "gray21")
        row = ctk.CTkFrame(self._scroll, fg_color=bg, corner_radius=4)
        row.grid(row=idx, column=0, sticky="ew", pady=1, padx=2)

        next_due = self._svc.next_due_date(rule, anchor=now) if rule.is_active else None
        this_month = self._svc.count_between(rule, month_start, month_end)
        data = [
            (rule.title, 160),
            (rule.type.title(), 70),
            (format_currency(rule.amount), 90),
            (rule.account_name, 110),
            (rule.frequency.title(), 90),
            (format_display_datetime(next_due) if next_due else "—", 150),
            (str(this_month), 80),
        ]
        for i, (text, width) in enumerate(data):
            ctk.CTkLabel(row, text=text, width=width, anchor="w").grid(
                row=0, column=i, padx=4, pady=4
            )

        acts = ctk.CTkFrame(row, fg_color="transparent")
        acts.grid(row=0, column=7, padx=(4, 6))
        ctk.CTkButton(
            acts, text="Pause" if rule.is_active else "Resume", width=56, height=24,
            fg_color="transparent", border_width=1,
            text_color=("gray10", "gray90"),
            command=lambda r=rule: self._toggle_active(r),
        ).pack(side="left", padx=2)
        ctk.CTkButton(
            acts, text="Del", width=38, height=24,
            fg_color="#F44336", hover_color="#D32F2F",
            command=lambda r=rule: self._delete(r),
        ).pack(side="left")

    def _open_add(self):
        form = RecurringForm(self.winfo_toplevel(), self._svc, self._account_dao)
        self.wait_window(form)
        if form.saved:
            self._load()

    def _toggle_active(self, rule: RecurringRule):
        self._svc.set_active(rule.id, not rule.is_active)
        self._load()

    def _delete(self, rule: RecurringRule):
        dlg = ConfirmDialog(
            self.winfo_toplevel(), "Delete Rule",
            f"Delete the recurring rule '{rule.title}'?", confirm_text="Delete",
        )
        if dlg.result:
            self._svc.delete(rule.id)
            self._load()
