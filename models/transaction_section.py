from dataclasses import dataclass, field
from decimal import Decimal
from models.transaction import Transaction


@dataclass
class TransactionSection:
    title: str
    data: list[Transaction] = field(default_factory=list)
    totals: dict[str, Decimal] = field(default_factory=dict)   # currency code → signed sum
