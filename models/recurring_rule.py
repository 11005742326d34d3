from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass
class RecurringRule:
    id: str
    title: str
    type: str               # 'income' | 'expense'
    amount: Decimal
    account_id: str
    frequency: str          # 'daily' | 'weekly' | 'biweekly' | 'monthly' | 'yearly'
    start_date: datetime
    rrule: str              # DTSTART header + RRULE body
    is_active: bool = True
    category_id: Optional[str] = None
    end_date: Optional[datetime] = None
    count: Optional[int] = None
    last_generated: Optional[datetime] = None
    account_name: str = ""
