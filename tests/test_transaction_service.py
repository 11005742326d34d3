"""
Tests for TransactionService: write validation and the preference-driven
history/upcoming views.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from services.transaction_service import TransactionService

from conftest import START


@pytest.fixture
def service(tx_dao, account_dao, preferences):
    return TransactionService(tx_dao, account_dao, preferences)


@pytest.fixture
def savings(account_dao):
    return account_dao.create("Savings")


class TestWrites:
    """Tests for create / create_transfer validation."""

    @pytest.mark.parametrize("type_, amount, when", [
        ("refund", "10", START),
        ("expense", "ten", START),
        ("expense", "-5", START),
        ("expense", "0", START),
        ("expense", "NaN", START),
        ("expense", "Infinity", START),
        ("expense", "10", "2024-03-15"),
    ])
    def test_rejects_bad_input(self, service, account, type_, amount, when):
        with pytest.raises(ValueError):
            service.create(account.id, type_, amount, when)
        assert service.query() == []

    def test_transfer_type_needs_create_transfer(self, service, account):
        with pytest.raises(ValueError, match="create_transfer"):
            service.create(account.id, "transfer", "10", START)

    def test_unknown_account(self, service):
        with pytest.raises(ValueError, match="Account not found"):
            service.create("missing", "expense", "10", START)

    def test_create_strips_title(self, service, account):
        tx = service.create(account.id, "expense", "3.20", START, title="  Bus  ")
        assert tx.title == "Bus"
        assert tx.amount == Decimal("3.20")

    def test_transfer_to_same_account(self, service, account):
        with pytest.raises(ValueError):
            service.create_transfer(account.id, account.id, "10", START)


class TestViews:
    """Tests for sections and the upcoming list."""

    def test_history_combines_transfers_by_default(self, service, account, savings):
        """One row per transfer, excluded from totals."""
        past = START - timedelta(days=1)
        service.create(account.id, "expense", "12", past)
        service.create_transfer(account.id, savings.id, "40", past)

        sections = service.get_sections(None, "all_time", START)
        assert len(sections) == 1
        assert len(sections[0].data) == 2
        assert sections[0].totals == {"USD": Decimal("-12")}

    def test_history_separate_and_counted(self, service, account, savings, preferences):
        """Separate layout lists both legs; counted legs cancel out."""
        preferences.set_transfer_layout("separate")
        preferences.set_transfer_exclude_from_totals(False)
        service.create_transfer(account.id, savings.id, "40", START - timedelta(days=1))

        section = service.get_sections(None, "all_time", START)[0]
        assert len(section.data) == 2
        assert section.totals == {"USD": Decimal("0")}

    def test_pending_rows_leave_history(self, service, account):
        """Pending and future rows belong to the upcoming list."""
        service.create(account.id, "expense", "5", START - timedelta(hours=1), is_pending=True)
        service.create(account.id, "expense", "6", START + timedelta(days=1))
        done = service.create(account.id, "expense", "7", START - timedelta(days=1))

        history = service.get_sections(None, "day", START)
        assert [t.id for s in history for t in s.data] == [done.id]
        with_pending = service.get_sections(None, "day", START, pending_filter="pending")
        assert sum(len(s.data) for s in with_pending) == 3

    def test_upcoming_soonest_first(self, service, account):
        later = service.create(account.id, "expense", "1", START + timedelta(days=2))
        soon = service.create(account.id, "expense", "1", START + timedelta(hours=2))
        overdue = service.create(account.id, "expense", "1", START - timedelta(days=1), is_pending=True)
        service.create(account.id, "expense", "1", START - timedelta(days=1))

        assert [t.id for t in service.get_upcoming(START)] == [overdue.id, soon.id, later.id]

    def test_confirm_honors_update_date(self, service, account, preferences, clock):
        preferences.set_update_date_upon_confirmation(True)
        tx = service.create(account.id, "expense", "9", START - timedelta(days=1), is_pending=True)
        service.confirm(tx.id)
        confirmed = service.query()[0]
        assert confirmed.is_pending is False
        assert confirmed.transaction_date == START

    def test_balances(self, service, account):
        service.create(account.id, "income", "50", START)
        service.create(account.id, "expense", "20", START, is_pending=True)
        assert service.get_balances() == {account.id: Decimal("50")}

    def test_delete_and_restore(self, service, account):
        tx = service.create(account.id, "expense", "9", START)
        service.delete(tx.id)
        assert service.query() == []
        service.restore(tx.id)
        assert [t.id for t in service.query()] == [tx.id]
