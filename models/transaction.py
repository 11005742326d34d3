from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass
class Transaction:
    id: str
    account_id: str
    type: str                       # 'income' | 'expense' | 'transfer'
    amount: Decimal                 # transfer legs: debit negative, credit positive
    transaction_date: Optional[datetime]
    created_at: datetime
    is_pending: bool = False
    requires_manual_confirmation: Optional[bool] = None   # None = inherit global policy
    is_deleted: bool = False
    is_transfer: bool = False
    transfer_id: Optional[str] = None
    title: str = ""
    description: str = ""
    category_id: Optional[str] = None
    recurring_id: Optional[str] = None
    attachments: list[str] = field(default_factory=list)
    updated_at: Optional[datetime] = None
    account_name: str = ""
    currency_code: str = "USD"
    category_name: str = ""
    tag_ids: list[str] = field(default_factory=list)

    @property
    def is_debit_leg(self) -> bool:
        return self.is_transfer and self.amount < 0

    def needs_manual_confirmation(self, global_require_confirmation: bool) -> bool:
        """Per-transaction override if set, else the global policy."""
        if self.requires_manual_confirmation is None:
            return global_require_confirmation
        return self.requires_manual_confirmation
