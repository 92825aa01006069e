from __future__ import annotations

"""MySQL schema and persistence utilities.

This module initializes the ``violations`` table and provides the
``ViolationStore`` used by the tracker. Inserts are idempotent on the
``message_line_id`` key, so re-processing a message never duplicates rows.

Examples
--------
>>> from violation_reporter.config import load_config
>>> from violation_reporter.db import get_conn, init_schema
>>> cfg = load_config()
>>> conn = get_conn(cfg.db)
>>> init_schema(conn)
>>> conn.close()
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

import pymysql

from .config import DBConfig
from .parser import ViolationRecord
from .week import WeekWindow


class StorageError(Exception):
    """Raised when the underlying database fails."""


@dataclass(frozen=True)
class StoredViolation:
    """A persisted violation row."""
    id: int
    guild_tag: str
    user_id: str
    name: str
    message_line_id: str
    created_at: int


@dataclass(frozen=True)
class WeeklyCount:
    """Number of violations of one player within one guild for a window."""
    guild_tag: str
    user_id: str
    name: str
    count: int


def get_conn(cfg: DBConfig) -> pymysql.connections.Connection:
    """Create a new MySQL connection.

    Parameters
    ----------
    cfg : DBConfig
        Database configuration.

    Returns
    -------
    pymysql.connections.Connection
        A live connection with ``autocommit=True`` and ``DictCursor``.

    Raises
    ------
    StorageError
        If the server cannot be reached.
    """
    try:
        return pymysql.connect(
            host=cfg.host,
            port=cfg.port,
            user=cfg.user,
            password=cfg.password,
            database=cfg.database,
            autocommit=True,
            charset="utf8mb4",
            cursorclass=pymysql.cursors.DictCursor,
        )
    except pymysql.MySQLError as e:
        raise StorageError(f"Cannot connect to MySQL at {cfg.host}:{cfg.port}: {e}") from e


@contextmanager
def cursor(conn):
    """Context-managed cursor.

    Parameters
    ----------
    conn : pymysql.connections.Connection
        Open database connection.

    Yields
    ------
    pymysql.cursors.Cursor
        A cursor configured per ``get_conn``.
    """
    cur = conn.cursor()
    try:
        yield cur
    finally:
        cur.close()


@contextmanager
def _storage_errors(action: str):
    try:
        yield
    except pymysql.MySQLError as e:
        raise StorageError(f"Failed to {action}: {e}") from e


def init_schema(conn) -> None:
    """Create the ``violations`` table if it does not exist.

    Parameters
    ----------
    conn : pymysql.connections.Connection
        Open database connection.
    """
    with _storage_errors("create schema"), cursor(conn) as cur:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS violations (
              id BIGINT AUTO_INCREMENT PRIMARY KEY,
              guild_tag VARCHAR(4000) COLLATE utf8mb4_bin NOT NULL,
              user_id VARCHAR(20) NOT NULL,
              name VARCHAR(4000) COLLATE utf8mb4_bin NOT NULL,
              message_line_id VARCHAR(128) COLLATE utf8mb4_bin NOT NULL,
              created_at BIGINT NOT NULL,
              UNIQUE KEY uniq_message_line (message_line_id),
              INDEX idx_user_time (user_id, created_at),
              INDEX idx_time (created_at)
            ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci;
            """
        )


_INSERT_SQL = """
    INSERT INTO violations (guild_tag, user_id, name, message_line_id, created_at)
    VALUES (%s, %s, %s, %s, %s)
"""

_COUNT_SQL = """
    SELECT COUNT(*) AS cnt
    FROM violations
    WHERE user_id = %s AND created_at >= %s AND created_at < %s
"""


def _insert(cur, record: ViolationRecord, message_line_id: str, created_at: int) -> bool:
    try:
        cur.execute(
            _INSERT_SQL,
            (record.guild_tag, record.user_id, record.name, message_line_id, created_at),
        )
        return True
    except pymysql.err.IntegrityError:
        # duplicate message_line_id
        return False


def _count(cur, user_id: str, window: WeekWindow) -> int:
    cur.execute(_COUNT_SQL, (user_id, window.start, window.end))
    row = cur.fetchone()
    return int(row["cnt"])  # type: ignore


class ViolationStore:
    """Durable log of violation rows backed by a MySQL connection.

    Parameters
    ----------
    conn : pymysql.connections.Connection
        Open connection, as returned by ``get_conn``.
    """

    def __init__(self, conn):
        self.conn = conn

    @contextmanager
    def _cursor(self):
        # the server drops idle connections after wait_timeout
        self.conn.ping(reconnect=True)
        with cursor(self.conn) as cur:
            yield cur

    def insert_if_absent(self, record: ViolationRecord, message_line_id: str, created_at: int) -> bool:
        """Insert a violation unless its ``message_line_id`` already exists.

        Returns
        -------
        bool
            ``True`` if a new row was inserted, ``False`` if the key was
            already present.
        """
        with _storage_errors("insert violation"), self._cursor() as cur:
            return _insert(cur, record, message_line_id, created_at)

    def count_in_window(self, user_id: str, window: WeekWindow) -> int:
        """Count a user's violations with ``created_at`` in ``[start, end)``."""
        with _storage_errors("count violations"), self._cursor() as cur:
            return _count(cur, user_id, window)

    def record_and_count(
        self,
        record: ViolationRecord,
        message_line_id: str,
        created_at: int,
        window: WeekWindow,
    ) -> tuple[bool, int]:
        """Insert a violation and count the user's window in one transaction.

        The user's rows in ``window`` are locked before inserting, so two
        handlers recording for the same user cannot observe the same count.

        Returns
        -------
        tuple of (bool, int)
            Whether a row was inserted, and the user's count in ``window``
            after the insert.
        """
        with _storage_errors("record violation"):
            self.conn.ping(reconnect=True)
            self.conn.begin()
            try:
                with cursor(self.conn) as cur:
                    cur.execute(_COUNT_SQL + " FOR UPDATE", (record.user_id, window.start, window.end))
                    inserted = _insert(cur, record, message_line_id, created_at)
                    count = _count(cur, record.user_id, window)
                self.conn.commit()
            except BaseException:
                self.conn.rollback()
                raise
        return inserted, count

    def aggregate_in_window(self, window: WeekWindow) -> list[WeeklyCount]:
        """Group violations in ``window`` by guild tag, user and name.

        Returns
        -------
        list of WeeklyCount
            Ordered by guild tag ascending, then count descending; equal
            counts keep the order in which they were first recorded.
        """
        with _storage_errors("aggregate violations"), self._cursor() as cur:
            cur.execute(
                """
                SELECT guild_tag, user_id, name, COUNT(*) AS cnt, MIN(id) AS first_id
                FROM violations
                WHERE created_at >= %s AND created_at < %s
                GROUP BY guild_tag, user_id, name
                ORDER BY guild_tag ASC, cnt DESC, first_id ASC
                """,
                (window.start, window.end),
            )
            rows = cur.fetchall()
        return [
            WeeklyCount(guild_tag=r["guild_tag"], user_id=r["user_id"], name=r["name"], count=int(r["cnt"]))
            for r in rows
        ]

    def get(self, message_line_id: str) -> Optional[StoredViolation]:
        """Fetch a stored violation by its ``message_line_id``."""
        with _storage_errors("fetch violation"), self._cursor() as cur:
            cur.execute(
                """
                SELECT id, guild_tag, user_id, name, message_line_id, created_at
                FROM violations WHERE message_line_id = %s
                """,
                (message_line_id,),
            )
            row = cur.fetchone()
        if not row:
            return None
        return StoredViolation(
            id=int(row["id"]),
            guild_tag=row["guild_tag"],
            user_id=row["user_id"],
            name=row["name"],
            message_line_id=row["message_line_id"],
            created_at=int(row["created_at"]),
        )
