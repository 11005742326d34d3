import logging
import sqlite3
import uuid
from utils.constants import DB_FILE, DEFAULT_ACCOUNT_NAME, DEFAULT_CURRENCY, DEFAULT_SETTINGS
from utils.date_helpers import now_ms

logger = logging.getLogger(__name__)


class DatabaseManager:
    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or DB_FILE
        self._conn: sqlite3.Connection | None = None

    def get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def initialize(self, seed_defaults: bool = True):
        """Create schema and seed defaults."""
        conn = self.get_connection()
        self._create_schema(conn)
        self._migrate_schema(conn)
        if seed_defaults:
            self._seed_defaults(conn)
        conn.commit()
        logger.info("Database ready at %s", self.db_path)

    def _migrate_schema(self, conn: sqlite3.Connection):
        """Idempotent ALTER TABLE for columns added after initial release."""
        cols = {row[1] for row in conn.execute("PRAGMA table_info(transactions)").fetchall()}
        if "requires_manual_confirmation" not in cols:
            conn.execute(
                "ALTER TABLE transactions ADD COLUMN requires_manual_confirmation INTEGER"
            )
            logger.info("Added requires_manual_confirmation column to transactions")
        if "attachments" not in cols:
            conn.execute(
                "ALTER TABLE transactions ADD COLUMN attachments TEXT NOT NULL DEFAULT '[]'"
            )
            logger.info("Added attachments column to transactions")

    def _create_schema(self, conn: sqlite3.Connection):
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS accounts (
                id            TEXT PRIMARY KEY,
                name          TEXT NOT NULL UNIQUE,
                currency_code TEXT NOT NULL DEFAULT 'USD',
                description   TEXT NOT NULL DEFAULT '',
                created_at    INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS categories (
                id   TEXT PRIMARY KEY,
                name TEXT NOT NULL UNIQUE,
                type TEXT NOT NULL CHECK(type IN ('income','expense','both'))
            );

            CREATE TABLE IF NOT EXISTS tags (
                id   TEXT PRIMARY KEY,
                name TEXT NOT NULL UNIQUE
            );

            CREATE TABLE IF NOT EXISTS recurring_rules (
                id             TEXT PRIMARY KEY,
                title          TEXT NOT NULL,
                type           TEXT NOT NULL CHECK(type IN ('income','expense')),
                amount         TEXT NOT NULL,
                account_id     TEXT NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
                category_id    TEXT REFERENCES categories(id) ON DELETE SET NULL,
                frequency      TEXT NOT NULL
                               CHECK(frequency IN ('daily','weekly','biweekly','monthly','yearly')),
                start_date     INTEGER NOT NULL,
                end_date       INTEGER,
                count          INTEGER,
                rrule          TEXT NOT NULL,
                is_active      INTEGER NOT NULL DEFAULT 1,
                last_generated INTEGER
            );

            CREATE TABLE IF NOT EXISTS transactions (
                id                           TEXT PRIMARY KEY,
                account_id                   TEXT NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
                type                         TEXT NOT NULL CHECK(type IN ('income','expense','transfer')),
                amount                       TEXT NOT NULL,
                title                        TEXT NOT NULL DEFAULT '',
                description                  TEXT NOT NULL DEFAULT '',
                category_id                  TEXT REFERENCES categories(id) ON DELETE SET NULL,
                transaction_date             INTEGER NOT NULL,
                is_pending                   INTEGER NOT NULL DEFAULT 0,
                requires_manual_confirmation INTEGER,
                is_deleted                   INTEGER NOT NULL DEFAULT 0,
                is_transfer                  INTEGER NOT NULL DEFAULT 0,
                transfer_id                  TEXT,
                recurring_id                 TEXT REFERENCES recurring_rules(id) ON DELETE SET NULL,
                attachments                  TEXT NOT NULL DEFAULT '[]',
                created_at                   INTEGER NOT NULL,
                updated_at                   INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS transaction_tags (
                transaction_id TEXT NOT NULL REFERENCES transactions(id) ON DELETE CASCADE,
                tag_id         TEXT NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
                PRIMARY KEY (transaction_id, tag_id)
            );

            CREATE INDEX IF NOT EXISTS idx_transactions_account_id ON transactions(account_id);
            CREATE INDEX IF NOT EXISTS idx_transactions_date       ON transactions(transaction_date);
            CREATE INDEX IF NOT EXISTS idx_transactions_pending    ON transactions(is_pending);
            CREATE INDEX IF NOT EXISTS idx_transactions_transfer   ON transactions(transfer_id);

            CREATE TABLE IF NOT EXISTS app_settings (
                key   TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
        """)

    def _seed_defaults(self, conn: sqlite3.Connection):
        for key, value in DEFAULT_SETTINGS.items():
            conn.execute(
                "INSERT OR IGNORE INTO app_settings(key, value) VALUES (?, ?)",
                (key, value),
            )

        has_account = conn.execute("SELECT 1 FROM accounts LIMIT 1").fetchone()
        if not has_account:
            conn.execute(
                """INSERT INTO accounts(id, name, currency_code, description, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (uuid.uuid4().hex, DEFAULT_ACCOUNT_NAME, DEFAULT_CURRENCY,
                 "Primary checking account", now_ms()),
            )

    def get_setting(self, key: str, default: str = "") -> str:
        conn = self.get_connection()
        row = conn.execute(
            "SELECT value FROM app_settings WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else default

    def set_setting(self, key: str, value: str):
        conn = self.get_connection()
        conn.execute(
            "INSERT OR REPLACE INTO app_settings(key, value) VALUES (?, ?)",
            (key, value),
        )
        conn.commit()

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None
