import os
import time
from typing import Iterator

import pytest
import pymysql

from violation_reporter.config import load_config
from violation_reporter.db import WeeklyCount, get_conn, init_schema, cursor


def _wait_for_mysql(host: str, port: int, user: str, password: str, database: str, timeout: int = 60) -> bool:
    start = time.time()
    while True:
        try:
            conn = pymysql.connect(host=host, port=port, user=user, password=password, database=database)
            conn.close()
            return True
        except Exception:  # noqa: BLE001 - broad during boot-up
            if time.time() - start >= timeout:
                return False
            time.sleep(1)


@pytest.fixture(scope="function")
def db_conn() -> Iterator[pymysql.connections.Connection]:
    """Yield a ready MySQL connection against the configured database.

    With ``MYSQL_REQUIRED`` set (CI and docker-compose), waits up to 90
    seconds and fails if the server never comes up. Otherwise skips after
    ``MYSQL_WAIT_SECONDS`` (default 3); the SQL contract is still covered
    by the fake-connection tests in ``test_db.py``.
    """
    cfg = load_config()
    required = os.getenv("MYSQL_REQUIRED", "").lower() in {"1", "true", "yes"}
    timeout = 90 if required else int(os.getenv("MYSQL_WAIT_SECONDS", "3"))
    if not _wait_for_mysql(cfg.db.host, cfg.db.port, cfg.db.user, cfg.db.password, cfg.db.database, timeout=timeout):
        if required:
            raise RuntimeError(f"MySQL not ready after {timeout}s at {cfg.db.host}:{cfg.db.port}")
        pytest.skip(f"MySQL not reachable at {cfg.db.host}:{cfg.db.port}")
    conn = get_conn(cfg.db)
    init_schema(conn)
    with cursor(conn) as cur:
        cur.execute("TRUNCATE TABLE violations")
    try:
        yield conn
    finally:
        with cursor(conn) as cur:
            cur.execute("TRUNCATE TABLE violations")
        conn.close()


class FakeStore:
    """In-memory stand-in for ``ViolationStore``."""

    def __init__(self):
        self.rows: list[dict] = []

    def _count(self, user_id, window):
        return sum(1 for r in self.rows if r["user_id"] == user_id and window.contains(r["created_at"]))

    def record_and_count(self, record, message_line_id, created_at, window):
        inserted = not any(r["message_line_id"] == message_line_id for r in self.rows)
        if inserted:
            self.rows.append(
                {
                    "id": len(self.rows) + 1,
                    "guild_tag": record.guild_tag,
                    "user_id": record.user_id,
                    "name": record.name,
                    "message_line_id": message_line_id,
                    "created_at": created_at,
                }
            )
        return inserted, self._count(record.user_id, window)

    def aggregate_in_window(self, window):
        groups: dict[tuple, list] = {}
        for r in self.rows:
            if window.contains(r["created_at"]):
                key = (r["guild_tag"], r["user_id"], r["name"])
                groups.setdefault(key, []).append(r["id"])
        ordered = sorted(groups.items(), key=lambda kv: (kv[0][0], -len(kv[1]), min(kv[1])))
        return [WeeklyCount(guild_tag=g, user_id=u, name=n, count=len(ids)) for (g, u, n), ids in ordered]


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()
