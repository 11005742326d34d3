import customtkinter as ctk
from database.account_dao import AccountDAO
from database.category_dao import CategoryDAO
from services.transaction_service import TransactionService
from utils.date_helpers import format_input_datetime, parse_local_datetime, utc_now

# Per-transaction override of the global "require confirmation" setting.
_CONFIRMATION_CHOICES = {
    "Use default": None,
    "Ask me to confirm": True,
    "Confirm automatically": False,
}


class TransactionForm(ctk.CTkToplevel):
    """Add an income, expense, or transfer; optionally scheduled as pending."""

    def __init__(
        self,
        master,
        tx_service: TransactionService,
        account_dao: AccountDAO,
        category_dao: CategoryDAO,
        initial_type: str = "expense",
        **kwargs,
    ):
        super().__init__(master, **kwargs)
        self._tx_svc = tx_service
        self._type = initial_type
        self._accounts = account_dao.get_all()
        self._cats = [c for c in category_dao.get_all() if c.type in (initial_type, "both")]
        self.saved = False

        self.title(f"Add {initial_type.title()}")
        self.resizable(False, False)
        self.grid_columnconfigure(1, weight=1)

        account_names = [a.name for a in self._accounts]
        r = 0
        self._title_var = self._entry_row("Title:", r)
        r += 1
        self._amount_var = self._entry_row("Amount:", r)
        r += 1
        self._date_var = self._entry_row("When:", r, format_input_datetime(utc_now()))
        r += 1

        if initial_type == "transfer":
            self._from_var = self._combo_row("From Account:", r, account_names, 0)
            r += 1
            self._to_var = self._combo_row("To Account:", r, account_names, 1)
            r += 1
        else:
            self._from_var = self._combo_row("Account:", r, account_names, 0)
            r += 1
            self._cat_var = self._combo_row(
                "Category:", r, ["—"] + [c.name for c in self._cats], 0
            )
            r += 1

        self._label("Pending:", r)
        self._pending_var = ctk.BooleanVar(value=False)
        ctk.CTkCheckBox(self, text="Not yet cleared", variable=self._pending_var).grid(
            row=r, column=1, padx=(0, 16), pady=4, sticky="w"
        )
        r += 1
        self._confirm_var = self._combo_row(
            "Confirmation:", r, list(_CONFIRMATION_CHOICES), 0
        )
        r += 1

        self._build_footer(r)

        self.transient(master)
        self.grab_set()
        self._center()

    def _label(self, text, row):
        ctk.CTkLabel(self, text=text).grid(
            row=row, column=0, padx=(16, 8), pady=4, sticky="e"
        )

    def _entry_row(self, label: str, row: int, value: str = "") -> ctk.StringVar:
        self._label(label, row)
        var = ctk.StringVar(value=value)
        ctk.CTkEntry(self, textvariable=var, width=220).grid(
            row=row, column=1, padx=(0, 16), pady=4, sticky="ew"
        )
        return var

    def _combo_row(self, label: str, row: int, values: list[str], default_idx: int) -> ctk.StringVar:
        self._label(label, row)
        default = values[default_idx] if len(values) > default_idx else (values[0] if values else "")
        var = ctk.StringVar(value=default)
        ctk.CTkComboBox(
            self, values=values, variable=var, width=220, state="readonly"
        ).grid(row=row, column=1, padx=(0, 16), pady=4, sticky="ew")
        return var

    def _build_footer(self, r):
        self._error_var = ctk.StringVar()
        ctk.CTkLabel(
            self, textvariable=self._error_var,
            text_color="#F44336", wraplength=300, anchor="w"
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
        ctk.CTkButton(
            btn_frame, text="Save", width=110,
            command=self._on_save,
        ).pack(side="right")

    def _account_id(self, name: str) -> str | None:
        return next((a.id for a in self._accounts if a.name == name), None)

    def _on_save(self):
        when = parse_local_datetime(self._date_var.get())
        if when is None:
            self._error_var.set("Use YYYY-MM-DD HH:MM for the date.")
            return

        pending = self._pending_var.get()
        override = _CONFIRMATION_CHOICES.get(self._confirm_var.get())
        title = self._title_var.get()
        amount = self._amount_var.get().strip()

        try:
            if self._type == "transfer":
                from_id = self._account_id(self._from_var.get())
                to_id = self._account_id(self._to_var.get())
                if not from_id or not to_id:
                    self._error_var.set("Please select both accounts.")
                    return
                self._tx_svc.create_transfer(
                    from_id, to_id, amount, when, title=title,
                    is_pending=pending, requires_manual_confirmation=override,
                )
            else:
                account_id = self._account_id(self._from_var.get())
                if not account_id:
                    self._error_var.set("Please select an account.")
                    return
                cat = next((c for c in self._cats if c.name == self._cat_var.get()), None)
                self._tx_svc.create(
                    account_id=account_id,
                    type_=self._type,
                    amount=amount,
                    transaction_date=when,
                    title=title,
                    category_id=cat.id if cat else None,
                    is_pending=pending,
                    requires_manual_confirmation=override,
                )
        except ValueError as e:
            self._error_var.set(str(e))
            return
        self.saved = True
        self.destroy()

    def _center(self):
        self.update_idletasks()
        mw = self.master.winfo_x() + self.master.winfo_width() // 2
        mh = self.master.winfo_y() + self.master.winfo_height() // 2
        w, h = self.winfo_reqwidth(), self.winfo_reqheight()
        self.geometry(f"+{mw - w//2}+{mh - h//2}")
