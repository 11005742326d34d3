import logging
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from models.recurring_rule import RecurringRule
from models.transaction_filters import TimeRange
from database.recurring_dao import RecurringDAO
from services.recurrence import (
    build_rrule_string,
    count_rule_occurrences,
    next_absolute_occurrence,
    occurrences_between,
)
from utils.constants import FREQUENCIES
from utils.date_helpers import to_ms, utc_now

logger = logging.getLogger(__name__)

# Long enough for a yearly rule to recur at least once.
NEXT_DUE_HORIZON = timedelta(days=2 * 366)


class RecurringService:
    def __init__(self, recurring_dao: RecurringDAO):
        self._dao = recurring_dao

    def get_all(self) -> list[RecurringRule]:
        return self._dao.get_all()

    def get_active(self) -> list[RecurringRule]:
        return self._dao.get_active()

    def get_by_id(self, rule_id: str) -> RecurringRule | None:
        return self._dao.get_by_id(rule_id)

    def create(
        self,
        title: str,
        type_: str,
        amount,
        account_id: str,
        frequency: str,
        start_date: datetime,
        category_id: str | None = None,
        end_date: datetime | None = None,
        count: int | None = None,
    ) -> RecurringRule:
        value = self._validate(title, type_, amount, frequency, start_date)
        rule_text = build_rrule_string(frequency, start_date, end_date, count)
        rule = self._dao.create(
            title=title.strip(), type_=type_, amount=value, account_id=account_id,
            frequency=frequency, start_date=start_date, rrule=rule_text,
            category_id=category_id, end_date=end_date, count=count,
        )
        logger.info("Created %s recurring rule %s", frequency, rule.id)
        return rule

    def update(
        self,
        rule_id: str,
        title: str,
        type_: str,
        amount,
        account_id: str,
        frequency: str,
        start_date: datetime,
        category_id: str | None = None,
        end_date: datetime | None = None,
        count: int | None = None,
        is_active: bool = True,
    ) -> RecurringRule:
        value = self._validate(title, type_, amount, frequency, start_date)
        rule_text = build_rrule_string(frequency, start_date, end_date, count)
        return self._dao.update(
            rule_id=rule_id, title=title.strip(), type_=type_, amount=value,
            account_id=account_id, frequency=frequency, start_date=start_date,
            rrule=rule_text, category_id=category_id, end_date=end_date,
            count=count, is_active=is_active,
        )

    def set_active(self, rule_id: str, is_active: bool):
        self._dao.set_active(rule_id, is_active)

    def delete(self, rule_id: str):
        self._dao.delete(rule_id)

    def record_generated(self, rule_id: str, generated: datetime):
        """Remember the last occurrence an external generator materialized."""
        self._dao.update_last_generated(rule_id, generated)

    def next_due_date(
        self,
        rule: RecurringRule,
        anchor: datetime | None = None,
        time_range: TimeRange | None = None,
    ) -> datetime | None:
        """Next occurrence after anchor (default: now), or None once the rule is done.

        Without an explicit range the search covers the rule's start date up
        to its end date, or a two-year horizon past the anchor.
        """
        anchor = anchor or utc_now()
        if rule.last_generated is not None and to_ms(rule.last_generated) > to_ms(anchor):
            anchor = rule.last_generated
        if time_range is None:
            time_range = TimeRange(
                start=rule.start_date,
                end=rule.end_date or anchor + NEXT_DUE_HORIZON,
            )
        return next_absolute_occurrence([rule.rrule], time_range, anchor)

    def count_between(self, rule: RecurringRule, start: datetime, end: datetime) -> int:
        return count_rule_occurrences(rule.rrule, start, end)

    def project_for_period(
        self, account_id: str | None, start: datetime, end: datetime
    ) -> list[dict]:
        """
        Return [{date, amount, type, rule_id}] for all active rules whose
        occurrences fall within [start, end]. Pass account_id=None for all accounts.
        """
        result = []
        for rule in self._dao.get_active():
            if account_id is not None and rule.account_id != account_id:
                continue
            for occurrence in occurrences_between(rule.rrule, start, end):
                result.append({
                    "date": occurrence,
                    "amount": rule.amount,
                    "type": rule.type,
                    "rule_id": rule.id,
                })
        result.sort(key=lambda item: to_ms(item["date"]))
        return result

    def _validate(self, title, type_, amount, frequency, start_date) -> Decimal:
        if not title.strip():
            raise ValueError("Title cannot be empty.")
        if type_ not in ("income", "expense"):
            raise ValueError("Type must be income or expense.")
        try:
            value = Decimal(str(amount))
        except InvalidOperation:
            raise ValueError("Amount must be a number.")
        if not value.is_finite():
            raise ValueError("Amount must be a number.")
        if value <= 0:
            raise ValueError("Amount must be positive.")
        if frequency not in FREQUENCIES:
            raise ValueError("Invalid frequency.")
        if not isinstance(start_date, datetime):
            raise ValueError("Invalid start date.")
        return value
