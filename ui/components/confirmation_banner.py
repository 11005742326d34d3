import customtkinter as ctk

_DISMISS_AFTER_MS = 8_000


class ConfirmationBanner(ctk.CTkFrame):
    """Running count of auto-confirmed transactions; hides itself when idle."""

    def __init__(self, master, color: str = "#2196F3", **kwargs):
        super().__init__(master, fg_color=color, corner_radius=6, **kwargs)
        self.grid_columnconfigure(0, weight=1)
        self._count = 0
        self._hide_timer = None

        self._message_var = ctk.StringVar()
        ctk.CTkLabel(
            self, textvariable=self._message_var, text_color="white",
            anchor="w", padx=10, pady=6,
        ).grid(row=0, column=0, sticky="ew")
        ctk.CTkButton(
            self, text="✕", width=28, height=24,
            fg_color="transparent", hover_color="#ffffff", text_color="white",
            command=self.hide,
        ).grid(row=0, column=1, padx=(0, 4))

    @property
    def count(self) -> int:
        return self._count

    def record(self, _transaction_id: str | None = None):
        self._count += 1
        noun = "transaction" if self._count == 1 else "transactions"
        self._message_var.set(f"{self._count} scheduled {noun} confirmed automatically.")
        self.pack(fill="x", pady=2)
        if self._hide_timer is not None:
            self.after_cancel(self._hide_timer)
        self._hide_timer = self.after(_DISMISS_AFTER_MS, self.hide)

    def hide(self):
        if self._hide_timer is not None:
            self.after_cancel(self._hide_timer)
            self._hide_timer = None
        self._count = 0
        self.pack_forget()
