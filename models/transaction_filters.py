from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class TimeRange:
    start: datetime
    end: datetime


@dataclass
class TransactionListFilterState:
    """What the transaction list header lets the user pick. Empty lists mean 'all'."""
    account_ids: list[str] = field(default_factory=list)
    category_ids: list[str] = field(default_factory=list)
    tag_ids: list[str] = field(default_factory=list)
    pending_filter: str = "all"         # 'all' | 'pending' | 'not_pending'
    type_filters: list[str] = field(default_factory=list)
    group_by: str = "day"
    attachment_filter: str = "all"     # 'all' | 'has' | 'none'


@dataclass
class TransactionFilters:
    """Structural filter handed to TransactionDAO.query / observe."""
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    account_ids: list[str] = field(default_factory=list)
    category_ids: list[str] = field(default_factory=list)
    tag_ids: list[str] = field(default_factory=list)
    type_filters: list[str] = field(default_factory=list)
    is_pending: Optional[bool] = None
    search: str = ""
    search_mode: str = "contains"      # 'contains' | 'starts_with' | 'exact'
    has_attachments: Optional[bool] = None
    include_deleted: bool = False
