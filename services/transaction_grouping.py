"""Filtering, layout and grouping of transaction lists.

Everything here is a pure function of its arguments. "Now" is always passed
in (derived from the minute ticker by the caller), never read from the clock,
so re-rendering the same inputs yields the same sections.
"""
from datetime import datetime, timedelta, timezone, tzinfo
from decimal import Decimal
from models.transaction import Transaction
from models.transaction_filters import TimeRange, TransactionFilters, TransactionListFilterState
from models.transaction_section import TransactionSection
from utils.date_helpers import (
    end_of_month,
    format_date_key,
    format_hour_key,
    format_hour_title,
    format_month_key,
    format_month_title,
    format_section_date_title,
    format_week_key,
    format_week_title,
    format_year,
    localize,
    start_of_month,
    start_of_week,
)

ALL_TIME_KEY = "all"
ALL_TIME_TITLE = "All time"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def transaction_contribution(type_: str, amount: Decimal, include_transfers: bool = False) -> Decimal:
    """Signed amount a row adds to its section total.

    Income adds, expense subtracts, transfers are neutral unless
    include_transfers is set, in which case the leg's signed amount counts
    (credit leg as income, debit leg as expense).
    """
    if type_ == "income":
        return amount
    if type_ == "expense":
        return -amount
    if type_ == "transfer" and include_transfers:
        return amount
    return Decimal("0")


def _as_aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def _row_date(tx: Transaction) -> datetime:
    return _as_aware(tx.transaction_date or tx.created_at or _EPOCH)


def effective_is_pending(tx: Transaction, now: datetime) -> bool:
    """Pending flag set, or dated after now."""
    if tx.is_pending:
        return True
    if tx.transaction_date is None:
        return False
    return _as_aware(tx.transaction_date) > _as_aware(now)


def split_by_pending_status(
    rows: list[Transaction], now: datetime
) -> tuple[list[Transaction], list[Transaction]]:
    """Return (upcoming, history)."""
    upcoming, history = [], []
    for tx in rows:
        (upcoming if effective_is_pending(tx, now) else history).append(tx)
    return upcoming, history


def apply_transfer_layout(rows: list[Transaction], layout: str) -> list[Transaction]:
    if layout != "combine":
        return list(rows)
    # One row per pair: the outgoing leg.
    return [tx for tx in rows if not (tx.is_transfer or tx.transfer_id) or tx.amount < 0]


def exclude_pending_from_history(
    rows: list[Transaction], pending_filter: str, now: datetime
) -> list[Transaction]:
    """Pending rows live in the upcoming list unless the user asks for them."""
    if pending_filter == "pending":
        return list(rows)
    return [tx for tx in rows if not effective_is_pending(tx, now)]


def get_section_key_and_title(
    date: datetime, group_by: str, now: datetime, tz: tzinfo | None = None
) -> tuple[str, str]:
    local = localize(date, tz)
    if group_by == "hour":
        return format_hour_key(local), format_hour_title(local)
    if group_by == "week":
        week_start = start_of_week(local)
        return format_week_key(week_start), format_week_title(week_start)
    if group_by == "month":
        return format_month_key(local), format_month_title(local)
    if group_by == "year":
        return format_year(local), format_year(local)
    if group_by == "all_time":
        return ALL_TIME_KEY, ALL_TIME_TITLE
    today = localize(now, tz).date()
    return format_date_key(local), format_section_date_title(local, today)


def sort_transactions(rows: list[Transaction]) -> list[Transaction]:
    """Newest first; ties broken by newest created_at."""
    return sorted(
        rows,
        key=lambda tx: (_row_date(tx), _as_aware(tx.created_at or _EPOCH)),
        reverse=True,
    )


def build_transaction_sections(
    rows: list[Transaction],
    group_by: str,
    now: datetime,
    tz: tzinfo | None = None,
    include_transfers: bool = False,
) -> list[TransactionSection]:
    if not rows:
        return [TransactionSection(title="")]

    grouped: dict[str, TransactionSection] = {}
    for tx in sort_transactions(rows):
        key, title = get_section_key_and_title(_row_date(tx), group_by, now, tz)
        section = grouped.get(key)
        if section is None:
            section = grouped[key] = TransactionSection(title=title)
        section.data.append(tx)
        contribution = transaction_contribution(tx.type, tx.amount, include_transfers)
        section.totals[tx.currency_code] = (
            section.totals.get(tx.currency_code, Decimal("0")) + contribution
        )

    return sorted(grouped.values(), key=lambda s: _row_date(s.data[0]), reverse=True)


def get_default_date_range(timeframe_days: int, now: datetime, tz: tzinfo | None = None) -> TimeRange:
    """This calendar month, stretched to now + timeframe_days when that is later."""
    local = localize(now, tz)
    extended = local + timedelta(days=timeframe_days)
    return TimeRange(start=start_of_month(local), end=max(end_of_month(local), extended))


def build_query_filters(
    state: TransactionListFilterState,
    selected_range: TimeRange | None,
    home_timeframe: int,
    now: datetime,
    search: str = "",
    search_mode: str = "contains",
    tz: tzinfo | None = None,
) -> TransactionFilters:
    """Merge list state, date range and search into the storage query filter."""
    time_range = selected_range or get_default_date_range(home_timeframe, now, tz)

    is_pending = None
    if state.pending_filter == "pending":
        is_pending = True
    elif state.pending_filter == "not_pending":
        is_pending = False

    has_attachments = None
    if state.attachment_filter == "has":
        has_attachments = True
    elif state.attachment_filter == "none":
        has_attachments = False

    return TransactionFilters(
        from_date=time_range.start,
        to_date=time_range.end,
        account_ids=list(state.account_ids),
        category_ids=list(state.category_ids),
        tag_ids=list(state.tag_ids),
        type_filters=list(state.type_filters),
        is_pending=is_pending,
        search=search.strip(),
        search_mode=search_mode,
        has_attachments=has_attachments,
    )
