"""SQLite storage for mirrored remote entities."""

import math
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Generator, List, Optional
import logging

import pandas as pd

from .exceptions import TableAlreadyExists
from .schema import ColumnType, ID_COLUMN, SQL_TYPES

logger = logging.getLogger(__name__)

MEMORY = ':memory:'


def quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


@contextmanager
def get_connection(db_path) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for short-lived database connections.

    Args:
        db_path: Path to database file

    Yields:
        SQLite connection with Row factory enabled
    """
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


class LocalStore:
    """
    Queryable handle over one entity's local table.

    Holds a single connection for its lifetime, so an in-memory store lives
    exactly as long as the handle.
    """

    def __init__(self, database, table: str):
        self.database = str(database)
        self.table = table
        self._conn = sqlite3.connect(self.database, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row

    @property
    def is_memory(self) -> bool:
        return self.database == MEMORY

    def close(self) -> None:
        self._conn.close()

    # -- schema -----------------------------------------------------------

    def create_table(self, schema: Dict[str, ColumnType]) -> None:
        """
        Create the table with one column per schema entry.

        Raises:
            TableAlreadyExists: if another worker created it first
        """
        columns = []
        for column, column_type in schema.items():
            definition = f"{quote(column)} {SQL_TYPES[column_type]}"
            if column == ID_COLUMN:
                definition += " NOT NULL"
            columns.append(definition)

        ddl = f"CREATE TABLE {quote(self.table)} ({', '.join(columns)})"
        try:
            with self._conn:
                self._conn.execute(ddl)
        except sqlite3.OperationalError as e:
            if 'already exists' in str(e):
                raise TableAlreadyExists(self.table) from e
            raise

        logger.debug(f"Created table {self.table} in {self.database} with {len(columns)} columns")

    def columns(self) -> List[str]:
        cursor = self._conn.execute(f"PRAGMA table_info({quote(self.table)})")
        return [row['name'] for row in cursor.fetchall()]

    # -- writes -----------------------------------------------------------

    def insert(self, rows: List[Dict]) -> int:
        """
        Insert rows in a single transaction.

        Keys that are not table columns are dropped; missing columns are NULL,
        except a missing id which continues from the current maximum.

        Returns:
            Count of rows inserted
        """
        if not rows:
            return 0

        columns = self.columns()
        next_id = f"COALESCE(?, (SELECT IFNULL(MAX({quote(ID_COLUMN)}), 0) + 1 FROM {quote(self.table)}))"
        placeholders = ', '.join(next_id if c == ID_COLUMN else '?' for c in columns)
        sql = (f"INSERT INTO {quote(self.table)} ({', '.join(quote(c) for c in columns)}) "
               f"VALUES ({placeholders})")

        with self._conn:
            self._conn.executemany(sql, [tuple(row.get(c) for c in columns) for row in rows])

        return len(rows)

    # -- reads ------------------------------------------------------------

    def _select(self, filters: Dict, suffix: str = '', params: tuple = ()) -> List[Dict]:
        where, values = self._where_clause(filters)
        cursor = self._conn.execute(
            f"SELECT * FROM {quote(self.table)}{where} ORDER BY rowid{suffix}",
            values + params
        )
        return [dict(row) for row in cursor.fetchall()]

    @staticmethod
    def _where_clause(filters: Dict):
        if not filters:
            return '', ()
        clauses = []
        values = []
        for column, value in filters.items():
            if value is None:
                clauses.append(f"{quote(column)} IS NULL")
            else:
                clauses.append(f"{quote(column)} = ?")
                values.append(value)
        return ' WHERE ' + ' AND '.join(clauses), tuple(values)

    def all(self) -> List[Dict]:
        """All rows in insertion order."""
        return self._select({})

    def where(self, **filters) -> List[Dict]:
        """Rows whose columns equal every given value."""
        return self._select(filters)

    def first(self, **filters) -> Optional[Dict]:
        rows = self._select(filters, ' LIMIT 1')
        return rows[0] if rows else None

    def count(self, **filters) -> int:
        where, values = self._where_clause(filters)
        cursor = self._conn.execute(f"SELECT COUNT(*) FROM {quote(self.table)}{where}", values)
        return cursor.fetchone()[0]

    def paginate(self, page: int = 1, per_page: int = 15) -> Dict:
        """
        Return one page of rows in the remote envelope shape.

        Returns:
            Dict with data, current_page, last_page, per_page, total
        """
        page = max(int(page), 1)
        per_page = max(int(per_page), 1)
        total = self.count()

        return {
            'data': self._select({}, ' LIMIT ? OFFSET ?', (per_page, (page - 1) * per_page)),
            'current_page': page,
            'last_page': max(math.ceil(total / per_page), 1),
            'per_page': per_page,
            'total': total,
        }

    def to_frame(self) -> pd.DataFrame:
        """All rows as a DataFrame."""
        return pd.read_sql_query(f"SELECT * FROM {quote(self.table)} ORDER BY rowid", self._conn)

    def __repr__(self):
        return f"LocalStore({self.database!r}, table={self.table!r})"


class TTLMarkers:
    """
    Expiry markers keyed by cache file name.

    Only the presence of an unexpired marker is ever consulted.
    """

    def __init__(self, db_path):
        self.db_path = Path(db_path)

    def _init_db(self):
        with get_connection(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS ttl_markers (
                    key TEXT PRIMARY KEY,
                    expires_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def has(self, key: str) -> bool:
        if not self.db_path.exists():
            return False

        self._init_db()
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT expires_at FROM ttl_markers WHERE key = ?", (key,)
            ).fetchone()

        if row is None:
            return False
        return datetime.fromisoformat(row['expires_at']) > datetime.now()

    def remember(self, key: str, ttl: timedelta) -> datetime:
        """Record that key expires after ttl; returns the expiry instant."""
        expires_at = datetime.now() + ttl
        self._init_db()
        with get_connection(self.db_path) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO ttl_markers (key, expires_at) VALUES (?, ?)",
                (key, expires_at.isoformat())
            )
            conn.commit()
        return expires_at

    def forget(self, key: str) -> None:
        if not self.db_path.exists():
            return

        self._init_db()
        with get_connection(self.db_path) as conn:
            conn.execute("DELETE FROM ttl_markers WHERE key = ?", (key,))
            conn.commit()
