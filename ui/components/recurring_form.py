import customtkinter as ctk
from database.account_dao import AccountDAO
from services.recurring_service import RecurringService
from utils.constants import FREQUENCIES
from utils.date_helpers import format_input_datetime, parse_local_datetime, utc_now

_END_MODES = ["Never", "On date", "After count"]


class RecurringForm(ctk.CTkToplevel):
    """New recurring rule. The rule ends never, on a date, or after N occurrences."""

    def __init__(self, master, recurring_service: RecurringService,
                 account_dao: AccountDAO, **kwargs):
        super().__init__(master, **kwargs)
        self._svc = recurring_service
        self._accounts = account_dao.get_all()
        self.saved = False

        self.title("New Recurring Rule")
        self.resizable(False, False)
        self.grid_columnconfigure(1, weight=1)

        r = 0
        self._add_label("Title:", r)
        self._title_var = ctk.StringVar()
        ctk.CTkEntry(self, textvariable=self._title_var, width=220).grid(
            row=r, column=1, padx=(0, 16), pady=4, sticky="ew"
        )
        r += 1

        self._add_label("Type:", r)
        self._type_var = ctk.StringVar(value="expense")
        type_frame = ctk.CTkFrame(self, fg_color="transparent")
        type_frame.grid(row=r, column=1, padx=(0, 16), pady=4, sticky="w")
        for t in ("income", "expense"):
            ctk.CTkRadioButton(
                type_frame, text=t.title(), variable=self._type_var, value=t,
            ).pack(side="left", padx=4)
        r += 1

        self._add_label("Amount:", r)
        self._amount_var = ctk.StringVar()
        ctk.CTkEntry(self, textvariable=self._amount_var, width=220).grid(
            row=r, column=1, padx=(0, 16), pady=4, sticky="ew"
        )
        r += 1

        self._add_label("Account:", r)
        names = [a.name for a in self._accounts]
        self._account_var = ctk.StringVar(value=names[0] if names else "")
        ctk.CTkComboBox(
            self, values=names, variable=self._account_var, width=220, state="readonly",
        ).grid(row=r, column=1, padx=(0, 16), pady=4, sticky="ew")
        r += 1

        self._add_label("Frequency:", r)
        self._freq_var = ctk.StringVar(value="monthly")
        ctk.CTkOptionMenu(self, values=FREQUENCIES, variable=self._freq_var, width=220).grid(
            row=r, column=1, padx=(0, 16), pady=4, sticky="ew"
        )
        r += 1

        self._add_label("Starts:", r)
        self._start_var = ctk.StringVar(value=format_input_datetime(utc_now()))
        ctk.CTkEntry(self, textvariable=self._start_var, width=220).grid(
            row=r, column=1, padx=(0, 16), pady=4, sticky="ew"
        )
        r += 1

        self._add_label("Ends:", r)
        self._end_mode_var = ctk.StringVar(value=_END_MODES[0])
        ctk.CTkSegmentedButton(self, values=_END_MODES, variable=self._end_mode_var).grid(
            row=r, column=1, padx=(0, 16), pady=4, sticky="w"
        )
        r += 1

        self._add_label("End date / count:", r)
        self._end_value_var = ctk.StringVar()
        ctk.CTkEntry(self, textvariable=self._end_value_var, width=220).grid(
            row=r, column=1, padx=(0, 16), pady=4, sticky="ew"
        )
        r += 1

        self._error_var = ctk.StringVar()
        ctk.CTkLabel(
            self, textvariable=self._error_var,
            text_color="#F44336", wraplength=300, anchor="w",
        ).grid(row=r, column=0, columnspan=2, padx=16, pady=(0, 4), sticky="ew")
        r += 1

        btn_frame = ctk.CTkFrame(self, fg_color="transparent")
        btn_frame.grid(row=r, column=0, columnspan=2, padx=16, pady=(4, 16), sticky="ew")
        ctk.CTkButton(
            btn_frame, text="Cancel", width=90,
            fg_color="transparent", border_width=1,
            text_color=("gray10", "gray90"),
            command=self.destroy,
        ).pack(side="left")
        ctk.CTkButton(btn_frame, text="Save Rule", width=110, command=self._on_save).pack(
            side="right"
        )

        self.transient(master)
        self.grab_set()

    def _add_label(self, text, row):
        ctk.CTkLabel(self, text=text).grid(row=row, column=0, padx=(16, 8), pady=4, sticky="e")

    def _on_save(self):
        start = parse_local_datetime(self._start_var.get())
        if start is None:
            self._error_var.set("Use YYYY-MM-DD HH:MM for the start.")
            return

        end_date, count = None, None
        mode = self._end_mode_var.get()
        raw_end = self._end_value_var.get().strip()
        if mode == "On date":
            end_date = parse_local_datetime(raw_end)
            if end_date is None:
                self._error_var.set("Invalid end date.")
                return
        elif mode == "After count":
            if not raw_end.isdigit():
                self._error_var.set("Count must be a whole number.")
                return
            count = int(raw_end)

        account_id = next((a.id for a in self._accounts if a.name == self._account_var.get()), None)
        if account_id is None:
            self._error_var.set("Please select an account.")
            return

        try:
            self._svc.create(
                title=self._title_var.get(),
                type_=self._type_var.get(),
                amount=self._amount_var.get().strip(),
                account_id=account_id,
                frequency=self._freq_var.get(),
                start_date=start,
                end_date=end_date,
                count=count,
            )
        except ValueError as e:
            self._error_var.set(str(e))
            return
        self.saved = True
        self.destroy()
