import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from database.db_manager import DatabaseManager
from models.recurring_rule import RecurringRule
from utils.date_helpers import from_ms, to_ms


def _ms_or_none(value: datetime | None) -> int | None:
    return to_ms(value) if value is not None else None


class RecurringDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> RecurringRule:
        return RecurringRule(
            id=row["id"],
            title=row["title"],
            type=row["type"],
            amount=Decimal(row["amount"]),
            account_id=row["account_id"],
            frequency=row["frequency"],
            start_date=from_ms(row["start_date"]),
            rrule=row["rrule"],
            is_active=bool(row["is_active"]),
            category_id=row["category_id"],
            end_date=from_ms(row["end_date"]) if row["end_date"] is not None else None,
            count=row["count"],
            last_generated=(
                from_ms(row["last_generated"]) if row["last_generated"] is not None else None
            ),
            account_name=row["account_name"] if "account_name" in row.keys() else "",
        )

    def _select(self) -> str:
        return """
            SELECT r.*, a.name AS account_name
            FROM recurring_rules r
            JOIN accounts a ON r.account_id = a.id
        """

    def get_all(self) -> list[RecurringRule]:
        conn = self._db.get_connection()
        rows = conn.execute(self._select() + " ORDER BY r.title").fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_active(self) -> list[RecurringRule]:
        conn = self._db.get_connection()
        rows = conn.execute(
            self._select() + " WHERE r.is_active = 1 ORDER BY r.title"
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, rule_id: str) -> Optional[RecurringRule]:
        conn = self._db.get_connection()
        row = conn.execute(
            self._select() + " WHERE r.id = ?", (rule_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def create(
        self,
        title: str,
        type_: str,
        amount: Decimal,
        account_id: str,
        frequency: str,
        start_date: datetime,
        rrule: str,
        category_id: str | None = None,
        end_date: datetime | None = None,
        count: int | None = None,
    ) -> RecurringRule:
        rule_id = uuid.uuid4().hex
        conn = self._db.get_connection()
        conn.execute(
            """INSERT INTO recurring_rules
               (id, title, type, amount, account_id, category_id, frequency,
                start_date, end_date, count, rrule)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                rule_id, title, type_, str(amount), account_id, category_id, frequency,
                to_ms(start_date), _ms_or_none(end_date), count, rrule,
            ),
        )
        conn.commit()
        return self.get_by_id(rule_id)

    def update(
        self,
        rule_id: str,
        title: str,
        type_: str,
        amount: Decimal,
        account_id: str,
        frequency: str,
        start_date: datetime,
        rrule: str,
        category_id: str | None = None,
        end_date: datetime | None = None,
        count: int | None = None,
        is_active: bool = True,
    ) -> RecurringRule:
        conn = self._db.get_connection()
        conn.execute(
            """UPDATE recurring_rules SET
               title=?, type=?, amount=?, account_id=?, category_id=?,
               frequency=?, start_date=?, end_date=?, count=?, rrule=?, is_active=?
               WHERE id=?""",
            (
                title, type_, str(amount), account_id, category_id, frequency,
                to_ms(start_date), _ms_or_none(end_date), count, rrule,
                1 if is_active else 0, rule_id,
            ),
        )
        conn.commit()
        return self.get_by_id(rule_id)

    def set_active(self, rule_id: str, is_active: bool):
        conn = self._db.get_connection()
        conn.execute(
            "UPDATE recurring_rules SET is_active = ? WHERE id = ?",
            (1 if is_active else 0, rule_id),
        )
        conn.commit()

    def update_last_generated(self, rule_id: str, generated: datetime):
        conn = self._db.get_connection()
        conn.execute(
            "UPDATE recurring_rules SET last_generated = ? WHERE id = ?",
            (to_ms(generated), rule_id),
        )
        conn.commit()

    def delete(self, rule_id: str):
        conn = self._db.get_connection()
        conn.execute("DELETE FROM recurring_rules WHERE id = ?", (rule_id,))
        conn.commit()
