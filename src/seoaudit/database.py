# src/seoaudit/database.py
"""Audit result storage supporting local SQLite and remote Turso backends.

Stores are constructed by the entry point and passed to the orchestrator;
there is no module-level client.
"""

import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Dict, Any, Sequence, Tuple
import logging

from seoaudit.config import settings
from seoaudit.errors import ConfigError, PersistenceFailure

logger = logging.getLogger(__name__)

# SQL schema shared between backends
CREATE_TABLES_SQL = (
    """
    CREATE TABLE IF NOT EXISTS page_audits (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        site_url TEXT NOT NULL,
        page_url TEXT NOT NULL,
        audit_type TEXT NOT NULL,
        score INTEGER,
        summary TEXT,
        strengths TEXT,
        recommendations TEXT,
        standards TEXT,
        grades TEXT,
        overall_grade TEXT,
        audited_at TIMESTAMP,
        UNIQUE(site_url, page_url, audit_type)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS keyword_audits (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        site_url TEXT NOT NULL,
        keyword TEXT NOT NULL,
        page_url TEXT,
        audit_type TEXT NOT NULL,
        score INTEGER,
        summary TEXT,
        strengths TEXT,
        recommendations TEXT,
        grades TEXT,
        overall_grade TEXT,
        audited_at TIMESTAMP,
        UNIQUE(site_url, keyword, audit_type)
    );
    """,
)

TABLE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "page_audits": (
        "site_url", "page_url", "audit_type", "score", "summary", "strengths",
        "recommendations", "standards", "grades", "overall_grade", "audited_at",
    ),
    "keyword_audits": (
        "site_url", "keyword", "page_url", "audit_type", "score", "summary", "strengths",
        "recommendations", "grades", "overall_grade", "audited_at",
    ),
}

# Columns holding JSON-encoded lists or dicts
JSON_COLUMNS = {"strengths", "recommendations", "standards", "grades"}

PAGE_AUDIT_KEYS = ("site_url", "page_url", "audit_type")
KEYWORD_AUDIT_KEYS = ("site_url", "keyword", "audit_type")


def _encode(value: Any) -> Any:
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _decode_row(row: Dict[str, Any]) -> Dict[str, Any]:
    decoded = dict(row)
    for column in JSON_COLUMNS & decoded.keys():
        if isinstance(decoded[column], str):
            try:
                decoded[column] = json.loads(decoded[column])
            except json.JSONDecodeError:
                logger.warning(f"Stored {column} is not valid JSON; returning raw text")
    return decoded


def _check_columns(table: str, columns: Sequence[str]) -> None:
    if table not in TABLE_COLUMNS:
        raise PersistenceFailure(f"Unknown table: {table}")
    unknown = [c for c in columns if c not in TABLE_COLUMNS[table]]
    if unknown:
        raise PersistenceFailure(f"Unknown columns for {table}: {', '.join(unknown)}")


def build_upsert(
    table: str, row: Dict[str, Any], conflict_keys: Sequence[str]
) -> Tuple[str, List[Any]]:
    """Build an idempotent INSERT ... ON CONFLICT DO UPDATE statement.

    Columns not known for the table are dropped. Every conflict key must be
    present in the row.
    """
    valid = {k: v for k, v in row.items() if k in TABLE_COLUMNS.get(table, ())}
    _check_columns(table, list(conflict_keys))
    missing = [k for k in conflict_keys if valid.get(k) in (None, "")]
    if missing:
        raise PersistenceFailure(f"Missing conflict key(s) for {table}: {', '.join(missing)}")

    columns = list(valid.keys())
    updates = [c for c in columns if c not in conflict_keys]
    placeholders = ", ".join("?" for _ in columns)
    sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) ON CONFLICT({', '.join(conflict_keys)}) "
    if updates:
        sql += "DO UPDATE SET " + ", ".join(f"{c} = excluded.{c}" for c in updates)
    else:
        sql += "DO NOTHING"
    return sql, [_encode(valid[c]) for c in columns]


def build_where(table: str, filters: Dict[str, Any]) -> Tuple[str, List[Any]]:
    _check_columns(table, list(filters))
    if not filters:
        return "", []
    clause = " AND ".join(f"{column} = ?" for column in filters)
    return f" WHERE {clause}", list(filters.values())


def _order_clause(table: str, order_by: Optional[str]) -> str:
    if not order_by:
        return ""
    column, _, direction = order_by.partition(" ")
    _check_columns(table, [column])
    direction = "DESC" if direction.strip().upper() == "DESC" else "ASC"
    return f" ORDER BY {column} {direction}"


class AbstractAuditStore(ABC):
    """Abstract base class defining the audit store interface."""

    @abstractmethod
    def connect(self) -> None:
        """Establish database connection."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close database connection."""
        pass

    @abstractmethod
    def create_schema(self) -> None:
        """Create the audit tables."""
        pass

    @abstractmethod
    def upsert(self, table: str, row: Dict[str, Any], conflict_keys: Sequence[str]) -> None:
        """Insert a row or update the row sharing its conflict keys.

        Re-upserting the same key is idempotent; the last write wins.

        Args:
            table: Table name ('page_audits' or 'keyword_audits')
            row: Column values; lists and dicts are stored as JSON text
            conflict_keys: Columns forming the table's unique key

        Raises:
            PersistenceFailure: If the backend rejects the write
        """
        pass

    @abstractmethod
    def fetch_rows(self, table: str, order_by: Optional[str] = None, **filters: Any) -> List[Dict[str, Any]]:
        """Retrieve rows matching all equality filters.

        Args:
            table: Table name
            order_by: Optional "column [ASC|DESC]"
            **filters: column=value equality filters

        Returns:
            List of row dictionaries with JSON columns decoded.
        """
        pass

    @abstractmethod
    def delete_rows(self, table: str, **filters: Any) -> int:
        """Delete rows matching all equality filters (at least one required).

        Returns:
            Number of rows deleted
        """
        pass


class LocalSqliteStore(AbstractAuditStore):
    """SQLite audit store for local storage."""

    def __init__(self, db_url: Optional[str] = None):
        """Initialize local SQLite store.

        Args:
            db_url: Database URL (sqlite:///path/to/db.db). Defaults to settings.DATABASE_URL.
        """
        self.db_url = db_url or settings.DATABASE_URL
        self.db_path = self.db_url.replace("sqlite:///", "")
        self.conn: Optional[sqlite3.Connection] = None
        # one connection shared by worker threads; writes and reads are serialized
        self._lock = threading.Lock()
        self.connect()
        self.create_schema()

    def connect(self) -> None:
        """Establish SQLite connection."""
        try:
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Could not open {self.db_path}: {e}") from e
        self.conn.row_factory = sqlite3.Row
        logger.debug(f"Connected to local SQLite database: {self.db_path}")

    def close(self) -> None:
        """Close SQLite connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Closed local SQLite connection")

    def create_schema(self) -> None:
        """Create the audit tables if they don't exist."""
        with self.conn:
            for statement in CREATE_TABLES_SQL:
                self.conn.execute(statement)
        logger.debug("Schema verified/created for local SQLite")

    def upsert(self, table: str, row: Dict[str, Any], conflict_keys: Sequence[str]) -> None:
        sql, values = build_upsert(table, row, conflict_keys)
        try:
            with self._lock, self.conn:
                self.conn.execute(sql, values)
        except sqlite3.Error as e:
            raise PersistenceFailure(f"SQLite upsert into {table} failed: {e}") from e
        logger.debug(f"Upserted {table} row for {[row.get(k) for k in conflict_keys]}")

    def fetch_rows(self, table: str, order_by: Optional[str] = None, **filters: Any) -> List[Dict[str, Any]]:
        where, values = build_where(table, filters)
        query_sql = f"SELECT * FROM {table}{where}{_order_clause(table, order_by)}"
        try:
            with self._lock:
                cursor = self.conn.cursor()
                cursor.execute(query_sql, values)
                rows = cursor.fetchall()
            return [_decode_row(dict(row)) for row in rows]
        except sqlite3.Error as e:
            raise PersistenceFailure(f"SQLite query on {table} failed: {e}") from e

    def delete_rows(self, table: str, **filters: Any) -> int:
        if not filters:
            raise PersistenceFailure("delete_rows requires at least one filter")
        where, values = build_where(table, filters)
        try:
            with self._lock, self.conn:
                cursor = self.conn.execute(f"DELETE FROM {table}{where}", values)
            return cursor.rowcount
        except sqlite3.Error as e:
            raise PersistenceFailure(f"SQLite delete on {table} failed: {e}") from e


class TursoStore(AbstractAuditStore):
    """Turso (libSQL) audit store for remote storage."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        auth_token: Optional[str] = None,
    ):
        """Initialize Turso store.

        Args:
            database_url: Turso database URL (libsql://...). Defaults to settings.TURSO_DATABASE_URL.
            auth_token: Turso auth token. Defaults to settings.TURSO_AUTH_TOKEN.

        Raises:
            ConfigError: If the URL or token is missing
        """
        self.database_url = database_url or settings.TURSO_DATABASE_URL
        self.auth_token = auth_token or settings.TURSO_AUTH_TOKEN
        self.client = None
        self._lock = threading.Lock()

        if not self.database_url:
            raise ConfigError("TURSO_DATABASE_URL is required for Turso backend")
        if not self.auth_token:
            raise ConfigError("TURSO_AUTH_TOKEN is required for Turso backend")

        self.connect()
        self.create_schema()

    def connect(self) -> None:
        """Establish Turso connection using libsql-client."""
        import libsql_client

        self.client = libsql_client.create_client_sync(
            url=self.database_url,
            auth_token=self.auth_token,
        )
        logger.info(f"Connected to Turso database: {self.database_url}")

    def close(self) -> None:
        """Close Turso connection."""
        if self.client:
            self.client.close()
            self.client = None
            logger.debug("Closed Turso connection")

    def create_schema(self) -> None:
        """Create the audit tables in Turso if they don't exist."""
        for statement in CREATE_TABLES_SQL:
            self.client.execute(statement)
        logger.debug("Schema verified/created for Turso database")

    def _execute(self, sql: str, values: List[Any]):
        try:
            with self._lock:
                return self.client.execute(sql, values)
        except Exception as e:
            raise PersistenceFailure(f"Turso statement failed: {e}") from e

    def upsert(self, table: str, row: Dict[str, Any], conflict_keys: Sequence[str]) -> None:
        sql, values = build_upsert(table, row, conflict_keys)
        self._execute(sql, values)
        logger.debug(f"Upserted {table} row to Turso for {[row.get(k) for k in conflict_keys]}")

    def fetch_rows(self, table: str, order_by: Optional[str] = None, **filters: Any) -> List[Dict[str, Any]]:
        where, values = build_where(table, filters)
        result = self._execute(f"SELECT * FROM {table}{where}{_order_clause(table, order_by)}", values)
        return [_decode_row(dict(zip(result.columns, row))) for row in result.rows]

    def delete_rows(self, table: str, **filters: Any) -> int:
        if not filters:
            raise PersistenceFailure("delete_rows requires at least one filter")
        where, values = build_where(table, filters)
        result = self._execute(f"DELETE FROM {table}{where}", values)
        return result.rows_affected


def get_store(
    backend: Optional[str] = None,
    **kwargs,
) -> AbstractAuditStore:
    """Factory function to create the appropriate audit store.

    Args:
        backend: Store backend ('local' or 'turso'). Defaults to settings.DB_BACKEND.
        **kwargs: Additional arguments passed to the store constructor.

    Returns:
        An instance of AbstractAuditStore (either LocalSqliteStore or TursoStore).

    Raises:
        ConfigError: If an unknown backend is specified.
    """
    backend = backend or settings.DB_BACKEND

    if backend == "local":
        logger.info("Using local SQLite audit store")
        return LocalSqliteStore(**kwargs)
    elif backend == "turso":
        logger.info("Using Turso audit store")
        return TursoStore(**kwargs)
    else:
        raise ConfigError(
            f"Unknown database backend: '{backend}'. "
            "Supported backends: 'local', 'turso'"
        )
