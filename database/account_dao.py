import logging
import uuid
from typing import Optional
from database.db_manager import DatabaseManager
from models.account import Account
from utils.date_helpers import from_ms, now_ms

logger = logging.getLogger(__name__)


class AccountDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> Account:
        return Account(
            id=row["id"],
            name=row["name"],
            currency_code=row["currency_code"],
            description=row["description"],
            created_at=from_ms(row["created_at"]),
        )

    def get_all(self) -> list[Account]:
        conn = self._db.get_connection()
        rows = conn.execute("SELECT * FROM accounts ORDER BY name").fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, account_id: str) -> Optional[Account]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM accounts WHERE id = ?", (account_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def create(self, name: str, currency_code: str = "USD", description: str = "") -> Account:
        account_id = uuid.uuid4().hex
        conn = self._db.get_connection()
        conn.execute(
            """INSERT INTO accounts(id, name, currency_code, description, created_at)
               VALUES (?, ?, ?, ?, ?)""",
            (account_id, name, currency_code.upper(), description, now_ms()),
        )
        conn.commit()
        logger.debug("Created account %s (%s)", name, account_id)
        return self.get_by_id(account_id)
