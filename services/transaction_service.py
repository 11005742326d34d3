from collections.abc import Callable
from datetime import datetime, tzinfo
from decimal import Decimal, InvalidOperation
from models.transaction import Transaction
from models.transaction_filters import TransactionFilters
from models.transaction_section import TransactionSection
from database.transaction_dao import TransactionDAO
from database.account_dao import AccountDAO
from services.preferences_service import PreferencesService
from services.transaction_grouping import (
    apply_transfer_layout,
    build_transaction_sections,
    effective_is_pending,
    exclude_pending_from_history,
    sort_transactions,
)
from utils.constants import TRANSACTION_TYPES


class TransactionService:
    def __init__(self, tx_dao: TransactionDAO, account_dao: AccountDAO,
                 preferences: PreferencesService):
        self._dao = tx_dao
        self._account_dao = account_dao
        self._preferences = preferences

    def query(self, filters: TransactionFilters | None = None) -> list[Transaction]:
        return self._dao.query(filters)

    def watch(
        self,
        filters: TransactionFilters | None,
        callback: Callable[[list[Transaction]], None],
    ) -> Callable[[], None]:
        return self._dao.observe(filters, callback)

    def to_sections(
        self,
        rows: list[Transaction],
        group_by: str,
        now: datetime,
        pending_filter: str = "all",
        tz: tzinfo | None = None,
    ) -> list[TransactionSection]:
        """History sections for rows already fetched with the structural filter."""
        transfers = self._preferences.transfers()
        history = exclude_pending_from_history(rows, pending_filter, now)
        history = apply_transfer_layout(history, transfers.layout)
        return build_transaction_sections(
            history, group_by, now=now, tz=tz,
            include_transfers=not transfers.exclude_from_totals,
        )

    def get_sections(
        self,
        filters: TransactionFilters | None,
        group_by: str,
        now: datetime,
        pending_filter: str = "all",
        tz: tzinfo | None = None,
    ) -> list[TransactionSection]:
        return self.to_sections(self._dao.query(filters), group_by, now, pending_filter, tz)

    def to_upcoming(self, rows: list[Transaction], now: datetime) -> list[Transaction]:
        """Effectively pending rows, soonest first."""
        layout = self._preferences.transfers().layout
        upcoming = [tx for tx in rows if effective_is_pending(tx, now)]
        return list(reversed(sort_transactions(apply_transfer_layout(upcoming, layout))))

    def get_upcoming(self, now: datetime) -> list[Transaction]:
        return self.to_upcoming(self._dao.query(), now)

    def get_balances(self) -> dict[str, Decimal]:
        """{account_id: balance} over confirmed transactions."""
        return self._dao.get_balances()

    def create(
        self,
        account_id: str,
        type_: str,
        amount,
        transaction_date: datetime,
        title: str = "",
        description: str = "",
        category_id: str | None = None,
        is_pending: bool = False,
        requires_manual_confirmation: bool | None = None,
        recurring_id: str | None = None,
    ) -> Transaction:
        if type_ == "transfer":
            raise ValueError("Use create_transfer for transfers.")
        value = self._validate(type_, amount, transaction_date)
        if self._account_dao.get_by_id(account_id) is None:
            raise ValueError("Account not found.")
        return self._dao.create(
            account_id=account_id,
            type_=type_,
            amount=value,
            transaction_date=transaction_date,
            title=title.strip(),
            description=description,
            category_id=category_id,
            is_pending=is_pending,
            requires_manual_confirmation=requires_manual_confirmation,
            recurring_id=recurring_id,
        )

    def create_transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount,
        transaction_date: datetime,
        title: str = "",
        description: str = "",
        is_pending: bool = False,
        requires_manual_confirmation: bool | None = None,
    ) -> tuple[Transaction, Transaction]:
        """Create both legs of a transfer with a shared transfer id."""
        if from_account_id == to_account_id:
            raise ValueError("Cannot transfer to the same account.")
        value = self._validate("transfer", amount, transaction_date)
        return self._dao.create_transfer(
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=value,
            transaction_date=transaction_date,
            title=title.strip(),
            description=description,
            is_pending=is_pending,
            requires_manual_confirmation=requires_manual_confirmation,
        )

    def confirm(self, tx_id: str):
        """Manual confirmation; honors the update-date-on-confirm preference."""
        update_date = self._preferences.pending().update_date_upon_confirmation
        self._dao.confirm_transaction_sync(tx_id, update_transaction_date=update_date)

    def delete(self, tx_id: str):
        self._dao.soft_delete(tx_id)

    def restore(self, tx_id: str):
        self._dao.restore(tx_id)

    def _validate(self, type_: str, amount, transaction_date) -> Decimal:
        if type_ not in TRANSACTION_TYPES:
            raise ValueError(f"Invalid type: {type_}")
        try:
            value = Decimal(str(amount))
        except InvalidOperation:
            raise ValueError("Amount must be a number.")
        if not value.is_finite():
            raise ValueError("Amount must be a number.")
        if value <= 0:
            raise ValueError("Amount must be positive.")
        if not isinstance(transaction_date, datetime):
            raise ValueError("Invalid transaction date.")
        return value
