import json
import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Optional
from database.db_manager import DatabaseManager
from models.transaction import Transaction
from models.transaction_filters import TransactionFilters
from utils.date_helpers import from_ms, now_ms, to_ms

logger = logging.getLogger(__name__)

_SEARCH_COLUMNS = (
    "t.title",
    "t.description",
    "t.amount",
    "COALESCE(c.name, '')",
    "a.name",
)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _placeholders(values) -> str:
    return ",".join("?" * len(values))


class TransactionDAO:
    """SQLite storage for transactions, with a live query (``observe``).

    Every committed write re-runs the query of each observer and hands it the
    fresh result, so consumers never poll.
    """

    def __init__(self, db: DatabaseManager, clock: Callable[[], int] = now_ms):
        self._db = db
        self._clock = clock
        self._observers: list[tuple[TransactionFilters, Callable[[list[Transaction]], None]]] = []

    def _row_to_model(self, row) -> Transaction:
        manual = row["requires_manual_confirmation"]
        tag_ids = row["tag_ids"] if "tag_ids" in row.keys() else None
        return Transaction(
            id=row["id"],
            account_id=row["account_id"],
            type=row["type"],
            amount=Decimal(row["amount"]),
            transaction_date=from_ms(row["transaction_date"]),
            created_at=from_ms(row["created_at"]),
            is_pending=bool(row["is_pending"]),
            requires_manual_confirmation=None if manual is None else bool(manual),
            is_deleted=bool(row["is_deleted"]),
            is_transfer=bool(row["is_transfer"]),
            transfer_id=row["transfer_id"],
            title=row["title"],
            description=row["description"],
            category_id=row["category_id"],
            recurring_id=row["recurring_id"],
            attachments=json.loads(row["attachments"] or "[]"),
            updated_at=from_ms(row["updated_at"]),
            account_name=row["account_name"],
            currency_code=row["currency_code"],
            category_name=row["category_name"],
            tag_ids=sorted(tag_ids.split(",")) if tag_ids else [],
        )

    def _select(self) -> str:
        return """
            SELECT t.*,
                   a.name AS account_name,
                   a.currency_code AS currency_code,
                   COALESCE(c.name, '') AS category_name,
                   (SELECT GROUP_CONCAT(tt.tag_id) FROM transaction_tags tt
                     WHERE tt.transaction_id = t.id) AS tag_ids
            FROM transactions t
            JOIN accounts a ON t.account_id = a.id
            LEFT JOIN categories c ON t.category_id = c.id
        """

    # ── Queries ─────────────────────────────────────────────────────────────
    def query(self, filters: TransactionFilters | None = None) -> list[Transaction]:
        f = filters or TransactionFilters()
        sql = self._select() + " WHERE 1=1"
        params: list = []

        if not f.include_deleted:
            sql += " AND t.is_deleted = 0"
        if f.from_date is not None:
            sql += " AND t.transaction_date >= ?"
            params.append(to_ms(f.from_date))
        if f.to_date is not None:
            sql += " AND t.transaction_date <= ?"
            params.append(to_ms(f.to_date))
        if f.account_ids:
            sql += f" AND t.account_id IN ({_placeholders(f.account_ids)})"
            params.extend(f.account_ids)
        if f.category_ids:
            sql += f" AND t.category_id IN ({_placeholders(f.category_ids)})"
            params.extend(f.category_ids)
        if f.tag_ids:
            sql += f""" AND EXISTS (SELECT 1 FROM transaction_tags tt
                                    WHERE tt.transaction_id = t.id
                                      AND tt.tag_id IN ({_placeholders(f.tag_ids)}))"""
            params.extend(f.tag_ids)
        if f.type_filters:
            sql += f" AND t.type IN ({_placeholders(f.type_filters)})"
            params.extend(f.type_filters)
        if f.is_pending is not None:
            sql += " AND t.is_pending = ?"
            params.append(1 if f.is_pending else 0)
        if f.has_attachments is True:
            sql += " AND t.attachments NOT IN ('', '[]')"
        elif f.has_attachments is False:
            sql += " AND t.attachments IN ('', '[]')"

        search = f.search.strip()
        if search:
            if f.search_mode == "exact":
                clauses = [f"LOWER({col}) = LOWER(?)" for col in _SEARCH_COLUMNS]
                params.extend([search] * len(_SEARCH_COLUMNS))
            else:
                pattern = _escape_like(search) + "%"
                if f.search_mode != "starts_with":
                    pattern = "%" + pattern
                clauses = [f"{col} LIKE ? ESCAPE '\\'" for col in _SEARCH_COLUMNS]
                params.extend([pattern] * len(_SEARCH_COLUMNS))
            sql += " AND (" + " OR ".join(clauses) + ")"

        sql += " ORDER BY t.transaction_date DESC, t.created_at DESC"
        rows = self._db.get_connection().execute(sql, params).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, tx_id: str) -> Optional[Transaction]:
        conn = self._db.get_connection()
        row = conn.execute(
            self._select() + " WHERE t.id = ?", (tx_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_pending(self) -> list[Transaction]:
        return self.query(TransactionFilters(is_pending=True))

    def get_by_transfer_id(self, transfer_id: str) -> list[Transaction]:
        conn = self._db.get_connection()
        rows = conn.execute(
            self._select() + " WHERE t.transfer_id = ? ORDER BY t.amount", (transfer_id,)
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_balances(self) -> dict[str, Decimal]:
        """{account_id: balance} over confirmed, non-deleted rows only."""
        conn = self._db.get_connection()
        rows = conn.execute(
            """SELECT account_id, type, amount FROM transactions
               WHERE is_deleted = 0 AND is_pending = 0"""
        ).fetchall()
        balances: dict[str, Decimal] = {}
        for row in rows:
            amount = Decimal(row["amount"])
            if row["type"] == "expense":
                amount = -amount
            balances[row["account_id"]] = balances.get(row["account_id"], Decimal("0")) + amount
        return balances

    # ── Live query ──────────────────────────────────────────────────────────
    def observe(
        self,
        filters: TransactionFilters | None,
        callback: Callable[[list[Transaction]], None],
    ) -> Callable[[], None]:
        """Emit the current result now and again after every committed write."""
        entry = (filters or TransactionFilters(), callback)
        self._observers.append(entry)
        callback(self.query(entry[0]))

        def unsubscribe():
            if entry in self._observers:
                self._observers.remove(entry)

        return unsubscribe

    def _notify_changed(self):
        for filters, callback in list(self._observers):
            callback(self.query(filters))

    # ── Writes ──────────────────────────────────────────────────────────────
    def _insert(self, conn, tx_id: str, account_id: str, type_: str, amount: Decimal,
                transaction_date: datetime, title: str, description: str,
                category_id: str | None, is_pending: bool,
                requires_manual_confirmation: bool | None, is_transfer: bool,
                transfer_id: str | None, recurring_id: str | None,
                attachments: list[str], tag_ids: list[str], created_at: int):
        conn.execute(
            """INSERT INTO transactions
               (id, account_id, type, amount, title, description, category_id,
                transaction_date, is_pending, requires_manual_confirmation,
                is_transfer, transfer_id, recurring_id, attachments,
                created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                tx_id, account_id, type_, str(amount), title, description, category_id,
                to_ms(transaction_date), 1 if is_pending else 0,
                None if requires_manual_confirmation is None else int(requires_manual_confirmation),
                1 if is_transfer else 0, transfer_id, recurring_id,
                json.dumps(attachments), created_at, created_at,
            ),
        )
        for tag_id in tag_ids:
            conn.execute(
                "INSERT OR IGNORE INTO transaction_tags(transaction_id, tag_id) VALUES (?, ?)",
                (tx_id, tag_id),
            )

    def create(
        self,
        account_id: str,
        type_: str,
        amount: Decimal,
        transaction_date: datetime,
        title: str = "",
        description: str = "",
        category_id: str | None = None,
        is_pending: bool = False,
        requires_manual_confirmation: bool | None = None,
        recurring_id: str | None = None,
        attachments: list[str] | None = None,
        tag_ids: list[str] | None = None,
        created_at: datetime | None = None,
    ) -> Transaction:
        tx_id = uuid.uuid4().hex
        conn = self._db.get_connection()
        self._insert(
            conn, tx_id, account_id, type_, Decimal(amount), transaction_date, title,
            description, category_id, is_pending, requires_manual_confirmation,
            False, None, recurring_id, attachments or [], tag_ids or [],
            to_ms(created_at) if created_at else self._clock(),
        )
        conn.commit()
        logger.debug("Created %s transaction %s", type_, tx_id)
        self._notify_changed()
        return self.get_by_id(tx_id)

    def create_transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Decimal,
        transaction_date: datetime,
        title: str = "",
        description: str = "",
        is_pending: bool = False,
        requires_manual_confirmation: bool | None = None,
    ) -> tuple[Transaction, Transaction]:
        """Insert both legs: debit (negative) on the source, credit on the target."""
        magnitude = abs(Decimal(amount))
        transfer_id = uuid.uuid4().hex
        debit_id, credit_id = uuid.uuid4().hex, uuid.uuid4().hex
        created = self._clock()
        conn = self._db.get_connection()
        for leg_id, account_id, signed in (
            (debit_id, from_account_id, -magnitude),
            (credit_id, to_account_id, magnitude),
        ):
            self._insert(
                conn, leg_id, account_id, "transfer", signed, transaction_date, title,
                description, None, is_pending, requires_manual_confirmation,
                True, transfer_id, None, [], [], created,
            )
        conn.commit()
        logger.debug("Created transfer %s", transfer_id)
        self._notify_changed()
        return self.get_by_id(debit_id), self.get_by_id(credit_id)

    def update(
        self,
        tx_id: str,
        amount: Decimal,
        transaction_date: datetime,
        title: str = "",
        description: str = "",
        category_id: str | None = None,
        is_pending: bool = False,
        requires_manual_confirmation: bool | None = None,
    ) -> Transaction:
        conn = self._db.get_connection()
        conn.execute(
            """UPDATE transactions
               SET amount=?, transaction_date=?, title=?, description=?,
                   category_id=?, is_pending=?, requires_manual_confirmation=?,
                   updated_at=?
               WHERE id=?""",
            (
                str(Decimal(amount)), to_ms(transaction_date), title, description,
                category_id, 1 if is_pending else 0,
                None if requires_manual_confirmation is None else int(requires_manual_confirmation),
                self._clock(), tx_id,
            ),
        )
        conn.commit()
        self._notify_changed()
        return self.get_by_id(tx_id)

    def _set_deleted(self, tx_id: str, deleted: bool):
        conn = self._db.get_connection()
        conn.execute(
            """UPDATE transactions SET is_deleted=?, updated_at=?
               WHERE id=? OR (transfer_id IS NOT NULL AND transfer_id =
                              (SELECT transfer_id FROM transactions WHERE id=?))""",
            (1 if deleted else 0, self._clock(), tx_id, tx_id),
        )
        conn.commit()
        self._notify_changed()

    def soft_delete(self, tx_id: str):
        """Mark deleted; both legs of a transfer go together."""
        self._set_deleted(tx_id, True)

    def restore(self, tx_id: str):
        self._set_deleted(tx_id, False)

    def confirm_transaction_sync(self, tx_id: str, update_transaction_date: bool = False) -> int:
        """Flip a pending row (and its transfer partner) to confirmed.

        Idempotent: rows that are already confirmed or deleted are untouched
        and no change is emitted. Returns the number of rows flipped.
        """
        now = self._clock()
        conn = self._db.get_connection()
        date_sql = "transaction_date=?, " if update_transaction_date else ""
        params: list = [now] if update_transaction_date else []
        cursor = conn.execute(
            f"""UPDATE transactions SET is_pending=0, {date_sql}updated_at=?
                WHERE is_pending=1 AND is_deleted=0
                  AND (id=? OR (transfer_id IS NOT NULL AND transfer_id =
                                (SELECT transfer_id FROM transactions WHERE id=?)))""",
            params + [now, tx_id, tx_id],
        )
        conn.commit()
        if cursor.rowcount:
            logger.debug("Confirmed transaction %s (%d row(s))", tx_id, cursor.rowcount)
            self._notify_changed()
        return cursor.rowcount
