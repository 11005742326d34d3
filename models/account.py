from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Account:
    id: str
    name: str
    currency_code: str = "USD"
    description: str = ""
    created_at: Optional[datetime] = None
