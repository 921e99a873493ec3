"""Shared helpers for working with the missing-assets database."""

from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator
from urllib.parse import unquote, urlparse

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine


class StoreNotConfiguredError(RuntimeError):
    """Raised when the backing store has not been configured."""


class DatabaseEngine:
    """Wrapper exposing context-managed SQLAlchemy connections."""

    def __init__(self, engine: Engine):
        self._engine = engine

    @property
    def engine(self) -> Engine:
        """Return the underlying SQLAlchemy :class:`~sqlalchemy.engine.Engine`."""

        return self._engine

    @contextmanager
    def sa_connection(self) -> Iterator[Connection]:
        """Yield a SQLAlchemy :class:`~sqlalchemy.engine.Connection`."""

        with self._engine.connect() as conn:
            yield conn

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection inside a transaction committed on success."""

        with self._engine.begin() as conn:
            yield conn

    def dispose(self) -> None:
        """Dispose the underlying engine's connection pool."""

        self._engine.dispose()


def _configure_sqlite_connection(conn: Any, *, busy_timeout: float | None = None) -> Any:
    """Apply timeout tuning to SQLite connections when available."""

    if not isinstance(conn, sqlite3.Connection):
        return conn

    busy_timeout_ms = None
    if busy_timeout is not None:
        busy_timeout_ms = int(max(busy_timeout, 0) * 1000)
        if busy_timeout_ms <= 0:
            busy_timeout_ms = None

    pragmas: tuple[tuple[str, str | int | float | None, bool], ...] = (
        ("busy_timeout", busy_timeout_ms, False),
        ("journal_mode", "WAL", True),
        ("foreign_keys", "ON", False),
    )

    for name, value, fetch_result in pragmas:
        if value is None:
            continue
        try:
            cursor = conn.execute(f"PRAGMA {name}={value}")
            if fetch_result:
                cursor.fetchone()
        except sqlite3.OperationalError:  # pragma: no cover - best effort only
            continue

    return conn


def _configure_mariadb_connection(conn: Any, *, lock_timeout: float | None = None) -> Any:
    """Apply session-level settings for MariaDB connections."""

    if lock_timeout is None:
        return conn

    timeout_value = max(int(lock_timeout), 1)

    try:
        cursor = conn.cursor()
    except AttributeError:  # pragma: no cover - DBAPI without cursor helper
        return conn

    try:
        cursor.execute("SET SESSION innodb_lock_wait_timeout = %s", (timeout_value,))
    finally:
        cursor.close()

    return conn


def _resolve_sqlite_path_from_dsn(dsn: str) -> str:
    """Extract a filesystem path from a ``sqlite:///`` DSN string."""

    parsed = urlparse(dsn)
    if parsed.scheme != "sqlite":
        raise ValueError(f"Unsupported DSN scheme for SQLite resolver: {parsed.scheme}")

    path = unquote(parsed.path or "")
    if parsed.netloc and parsed.netloc not in {"", "localhost"}:
        # Support UNC-like hosts by prefixing them to the path component.
        path = f"//{parsed.netloc}{path}"

    if not path:
        raise ValueError("SQLite DSN must include a filesystem path")

    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = candidate.resolve()
    return os.fspath(candidate)


def build_engine_from_dsn(
    dsn: str,
    *,
    timeout: float | None = None,
    pool_size: int = 10,
    pool_recycle: int = 1_800,
    pool_pre_ping: bool = True,
) -> DatabaseEngine:
    """Return a :class:`DatabaseEngine` configured from ``dsn``."""

    if not dsn:
        raise StoreNotConfiguredError("Database DSN is empty")

    parsed = urlparse(dsn)
    connect_args: dict[str, object] = {}
    effective_timeout = timeout if timeout is not None else 5.0

    if parsed.scheme == "sqlite":
        sqlite_path = _resolve_sqlite_path_from_dsn(dsn)
        Path(sqlite_path).parent.mkdir(parents=True, exist_ok=True)
        normalized_dsn = f"sqlite:///{sqlite_path}"
        connect_args["check_same_thread"] = False
    else:
        normalized_dsn = dsn

    dialect_name = parsed.scheme.split("+", 1)[0]

    engine = create_engine(
        normalized_dsn,
        future=True,
        pool_size=pool_size,
        pool_recycle=pool_recycle,
        pool_pre_ping=pool_pre_ping,
        connect_args=connect_args,
    )

    if parsed.scheme == "sqlite":

        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_conn, connection_record):  # type: ignore[override]
            _configure_sqlite_connection(dbapi_conn, busy_timeout=effective_timeout)
    elif dialect_name in {"mysql", "mariadb"}:

        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_conn, connection_record):  # type: ignore[override]
            _configure_mariadb_connection(dbapi_conn, lock_timeout=effective_timeout)

    return DatabaseEngine(engine)


class DatabaseProvider:
    """Hold the configured :class:`DatabaseEngine`, if any."""

    def __init__(self, engine: DatabaseEngine | None):
        self._engine = engine

    @property
    def configured(self) -> bool:
        return self._engine is not None

    def get(self) -> DatabaseEngine:
        if self._engine is None:
            raise StoreNotConfiguredError("Database connection is not configured")
        return self._engine

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        with self.get().transaction() as conn:
            yield conn

    @contextmanager
    def sa_connection(self) -> Iterator[Connection]:
        with self.get().sa_connection() as conn:
            yield conn

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()


__all__ = [
    "DatabaseEngine",
    "DatabaseProvider",
    "StoreNotConfiguredError",
    "build_engine_from_dsn",
]
