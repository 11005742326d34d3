import customtkinter as ctk


class ConfirmDialog(ctk.CTkToplevel):
    """Modal yes/no prompt; blocks until closed, answer in ``.result``."""

    def __init__(self, master, title: str, message: str,
                 confirm_text: str = "Confirm", destructive: bool = True, **kwargs):
        super().__init__(master, **kwargs)
        self.title(title)
        self.result = False
        self.resizable(False, False)
        self.protocol("WM_DELETE_WINDOW", lambda: self._close(False))
        self.grid_columnconfigure(0, weight=1)

        ctk.CTkLabel(
            self, text=message, wraplength=360, justify="left", padx=20, pady=16
        ).grid(row=0, column=0, sticky="ew")

        buttons = ctk.CTkFrame(self, fg_color="transparent")
        buttons.grid(row=1, column=0, pady=(0, 16), padx=20, sticky="e")

        ctk.CTkButton(
            buttons, text="Cancel", width=90,
            fg_color="transparent", border_width=1,
            text_color=("gray10", "gray90"),
            command=lambda: self._close(False),
        ).pack(side="left", padx=(0, 8))

        accent = {"fg_color": "#F44336", "hover_color": "#D32F2F"} if destructive else {}
        ctk.CTkButton(
            buttons, text=confirm_text, width=90,
            command=lambda: self._close(True), **accent,
        ).pack(side="left")

        self.bind("<Escape>", lambda _e: self._close(False))
        self.transient(master)
        self.grab_set()
        self.update_idletasks()
        x = master.winfo_rootx() + (master.winfo_width() - self.winfo_reqwidth()) // 2
        y = master.winfo_rooty() + (master.winfo_height() - self.winfo_reqheight()) // 2
        self.geometry(f"+{x}+{y}")
        self.wait_window()

    def _close(self, answer: bool):
        self.result = answer
        self.destroy()
