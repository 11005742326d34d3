"""
Tests for the pure list-shaping helpers: pending split, transfer layout,
section grouping and titles, totals, default range and query filters.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from models.transaction import Transaction
from models.transaction_filters import TimeRange, TransactionListFilterState
from models.transaction_section import TransactionSection
from services.transaction_grouping import (
    ALL_TIME_KEY,
    ALL_TIME_TITLE,
    apply_transfer_layout,
    build_query_filters,
    build_transaction_sections,
    effective_is_pending,
    exclude_pending_from_history,
    get_default_date_range,
    get_section_key_and_title,
    sort_transactions,
    split_by_pending_status,
    transaction_contribution,
)

from conftest import START

UTC = timezone.utc


def _at(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


def _tx(tx_id, when, type_="expense", amount="10", **overrides) -> Transaction:
    values = dict(
        id=tx_id, account_id="a1", type=type_, amount=Decimal(amount),
        transaction_date=when, created_at=when,
    )
    values.update(overrides)
    return Transaction(**values)


def _transfer_pair(when):
    debit = _tx("out", when, "transfer", "-50", is_transfer=True, transfer_id="t1")
    credit = _tx("in", when, "transfer", "50", is_transfer=True, transfer_id="t1", account_id="a2")
    return debit, credit


class TestContribution:
    """Tests for how each row moves its section total."""

    def test_income_and_expense(self):
        """Income adds, expense subtracts."""
        assert transaction_contribution("income", Decimal("20")) == Decimal("20")
        assert transaction_contribution("expense", Decimal("20")) == Decimal("-20")

    def test_transfers_neutral_by_default(self):
        """Transfers contribute nothing unless asked."""
        assert transaction_contribution("transfer", Decimal("-50")) == Decimal("0")

    def test_transfers_counted_when_included(self):
        """Included legs count with their own sign."""
        assert transaction_contribution("transfer", Decimal("-50"), include_transfers=True) == Decimal("-50")
        assert transaction_contribution("transfer", Decimal("50"), include_transfers=True) == Decimal("50")


class TestPendingSplit:
    """Tests for upcoming/history classification."""

    def test_future_confirmed_row_is_effectively_pending(self):
        """A row dated after now is upcoming even without the pending flag."""
        assert effective_is_pending(_tx("f", START + timedelta(hours=1)), START)
        assert not effective_is_pending(_tx("p", START - timedelta(hours=1)), START)
        assert effective_is_pending(_tx("q", START - timedelta(days=3), is_pending=True), START)

    def test_split(self):
        """Rows land in exactly one of the two lists."""
        rows = [
            _tx("future", START + timedelta(days=1)),
            _tx("past", START - timedelta(days=1)),
            _tx("flagged", START - timedelta(days=2), is_pending=True),
        ]
        upcoming, history = split_by_pending_status(rows, START)
        assert [t.id for t in upcoming] == ["future", "flagged"]
        assert [t.id for t in history] == ["past"]

    def test_history_exclusion_respects_filter(self):
        """Pending rows leave the history unless the user filters for them."""
        rows = [_tx("past", START - timedelta(days=1)), _tx("p", START - timedelta(days=1), is_pending=True)]
        assert [t.id for t in exclude_pending_from_history(rows, "all", START)] == ["past"]
        assert [t.id for t in exclude_pending_from_history(rows, "not_pending", START)] == ["past"]
        assert len(exclude_pending_from_history(rows, "pending", START)) == 2


class TestTransferLayout:
    """Tests for combine/separate transfer display."""

    def test_combine_keeps_outgoing_leg(self):
        """A pair collapses to its debit leg; ordinary rows stay."""
        debit, credit = _transfer_pair(START)
        rows = [debit, credit, _tx("coffee", START)]
        assert [t.id for t in apply_transfer_layout(rows, "combine")] == ["out", "coffee"]

    def test_separate_keeps_both_legs(self):
        """Both legs are listed on their own."""
        debit, credit = _transfer_pair(START)
        assert [t.id for t in apply_transfer_layout([debit, credit], "separate")] == ["out", "in"]


class TestSectionTitles:
    """Tests for section keys and titles per grouping."""

    def test_day_today_and_weekday(self):
        """The current day reads 'Today'; others read the weekday and date."""
        assert get_section_key_and_title(_at(2024, 3, 15, 8), "day", START, UTC) == ("2024-03-15", "Today")
        assert get_section_key_and_title(_at(2024, 3, 14, 8), "day", START, UTC) == (
            "2024-03-14", "Thursday, Mar 14",
        )

    def test_hour(self):
        assert get_section_key_and_title(_at(2024, 3, 15, 14, 5), "hour", START, UTC) == (
            "2024-03-15-14", "Mar 15, 2024 2 PM",
        )

    def test_week_starts_monday(self):
        """A Friday belongs to the week of the preceding Monday."""
        assert get_section_key_and_title(_at(2024, 3, 15, 9), "week", START, UTC) == (
            "2024-W11", "Week of Mar 11",
        )

    def test_month_year_and_all_time(self):
        assert get_section_key_and_title(_at(2024, 3, 5), "month", START, UTC) == ("2024-03", "March 2024")
        assert get_section_key_and_title(_at(2024, 3, 5), "year", START, UTC) == ("2024", "2024")
        assert get_section_key_and_title(_at(2001, 1, 1), "all_time", START, UTC) == (ALL_TIME_KEY, ALL_TIME_TITLE)

    def test_day_boundary_follows_timezone(self):
        """Late UTC evening is already tomorrow further east."""
        tokyo = timezone(timedelta(hours=9))
        key, _ = get_section_key_and_title(_at(2024, 3, 15, 20), "day", START, tokyo)
        assert key == "2024-03-16"


class TestBuildSections:
    """Tests for grouping rows into titled, totalled sections."""

    def test_empty_input_gives_single_empty_section(self):
        """The list always has something to render."""
        assert build_transaction_sections([], "day", START, UTC) == [TransactionSection(title="")]

    def test_titles_follow_given_now(self):
        """The reference instant is always supplied by the caller."""
        rows = [_tx("lunch", _at(2024, 3, 15, 8))]
        assert build_transaction_sections(rows, "day", START, UTC)[0].title == "Today"
        next_day = build_transaction_sections(rows, "day", START + timedelta(days=1), UTC)
        assert next_day[0].title != "Today"
        with pytest.raises(TypeError):
            build_transaction_sections(rows, "day")

    def test_month_grouping_totals(self):
        """Rows of one month share a section with a signed total."""
        rows = [
            _tx("rent", _at(2024, 3, 5), "expense", "30"),
            _tx("pay", _at(2024, 3, 28), "income", "100"),
        ]
        sections = build_transaction_sections(rows, "month", START, UTC)
        assert len(sections) == 1
        assert sections[0].title == "March 2024"
        assert sections[0].totals == {"USD": Decimal("70")}
        assert [t.id for t in sections[0].data] == ["pay", "rent"]

    def test_totals_per_currency(self):
        """Different currencies are never summed together."""
        rows = [
            _tx("usd", _at(2024, 3, 5), "expense", "30"),
            _tx("eur", _at(2024, 3, 6), "expense", "12", currency_code="EUR"),
        ]
        section = build_transaction_sections(rows, "all_time", START, UTC)[0]
        assert section.totals == {"USD": Decimal("-30"), "EUR": Decimal("-12")}

    def test_sections_newest_first(self):
        """Sections follow their newest row, descending."""
        rows = [
            _tx("jan", _at(2024, 1, 10)),
            _tx("mar", _at(2024, 3, 1)),
            _tx("feb", _at(2024, 2, 10)),
        ]
        titles = [s.title for s in build_transaction_sections(rows, "month", START, UTC)]
        assert titles == ["March 2024", "February 2024", "January 2024"]

    def test_transfer_totals_toggle(self):
        """Transfer legs only move totals when included."""
        debit, credit = _transfer_pair(_at(2024, 3, 10))
        excluded = build_transaction_sections([debit, credit], "month", START, UTC)[0]
        included = build_transaction_sections([debit], "month", START, UTC, include_transfers=True)[0]
        assert excluded.totals == {"USD": Decimal("0")}
        assert included.totals == {"USD": Decimal("-50")}

    def test_sort_ties_break_on_created_at(self):
        """Same date: the most recently created row comes first."""
        when = _at(2024, 3, 10, 9)
        older = _tx("older", when, created_at=_at(2024, 3, 1))
        newer = _tx("newer", when, created_at=_at(2024, 3, 2))
        assert [t.id for t in sort_transactions([older, newer])] == ["newer", "older"]


class TestDateRangeAndFilters:
    """Tests for the default range and query filter assembly."""

    def test_default_range_is_current_month(self):
        """A short timeframe is covered by the month itself."""
        window = get_default_date_range(3, START, UTC)
        assert window.start == _at(2024, 3, 1)
        assert window.end == datetime(2024, 3, 31, 23, 59, 59, 999000, tzinfo=UTC)

    def test_default_range_stretches_past_month_end(self):
        """A long timeframe extends the end beyond the month."""
        window = get_default_date_range(30, START, UTC)
        assert window.end == START + timedelta(days=30)

    def test_filters_from_state(self):
        """List state maps onto storage filters."""
        state = TransactionListFilterState(
            pending_filter="pending", attachment_filter="none",
            type_filters=["expense"], account_ids=["a1"],
        )
        filters = build_query_filters(state, None, 3, START, search="  coffee ", search_mode="starts_with", tz=UTC)
        assert filters.is_pending is True
        assert filters.has_attachments is False
        assert filters.type_filters == ["expense"]
        assert filters.account_ids == ["a1"]
        assert filters.search == "coffee"
        assert filters.search_mode == "starts_with"
        assert filters.from_date == _at(2024, 3, 1)

    def test_selected_range_wins(self):
        """An explicit range replaces the default one."""
        chosen = TimeRange(_at(2023, 1, 1), _at(2023, 12, 31))
        filters = build_query_filters(TransactionListFilterState(), chosen, 3, START)
        assert (filters.from_date, filters.to_date) == (chosen.start, chosen.end)
        assert filters.is_pending is None
        assert filters.has_attachments is None

    def test_not_pending_and_has_attachments(self):
        state = TransactionListFilterState(pending_filter="not_pending", attachment_filter="has")
        filters = build_query_filters(state, None, 3, START, tz=UTC)
        assert filters.is_pending is False
        assert filters.has_attachments is True
