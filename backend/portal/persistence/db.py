"""SQLite connection handle, transactions and schema initialisation."""
from __future__ import annotations
import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator

log = logging.getLogger(__name__)

_MIGRATIONS_DIR = os.path.join(os.path.dirname(__file__), "migrations")


class Database:
    """Explicitly constructed handle passed to repositories and services.

    Every call opens its own connection; nothing is shared between requests.
    """

    def __init__(self, path: str, busy_timeout: float = 5.0):
        self.path = path
        self.busy_timeout = busy_timeout

    def connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly below.
        conn = sqlite3.connect(
            self.path,
            timeout=self.busy_timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a read-then-write unit atomically.

        ``BEGIN IMMEDIATE`` takes the write lock up front, so two transactions
        that read the same rows and then write (attempt counts, the
        last-instructor check) are serialised rather than interleaved.
        """
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    @contextmanager
    def reader(self) -> Iterator[sqlite3.Connection]:
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Run all migration SQL files against the database."""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        conn = self.connect()
        try:
            for name in sorted(os.listdir(_MIGRATIONS_DIR)):
                if not name.endswith(".sql"):
                    continue
                with open(os.path.join(_MIGRATIONS_DIR, name), "r", encoding="utf-8") as f:
                    conn.executescript(f.read())
                log.debug("applied migration %s", name)
        finally:
            conn.close()
