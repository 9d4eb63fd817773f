"""SQLite implementation of RateLimitRepository."""
from __future__ import annotations
import sqlite3

from portal.persistence.interfaces.rate_limit_repository import RateLimitRepository


class SqliteRateLimitRepository(RateLimitRepository):

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def hit(self, key: str, window_start: int) -> int:
        self._conn.execute(
            """
            INSERT INTO rate_limits (key, window_start, count) VALUES (?, ?, 1)
            ON CONFLICT(key) DO UPDATE SET
                count        = CASE WHEN rate_limits.window_start = excluded.window_start
                                    THEN rate_limits.count + 1 ELSE 1 END,
                window_start = excluded.window_start
            """,
            (key, window_start),
        )
        row = self._conn.execute("SELECT count FROM rate_limits WHERE key = ?", (key,)).fetchone()
        return row[0]
