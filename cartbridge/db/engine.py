"""Database engine management for the host store database.

The bridge does not own a schema: it talks to the host's MySQL database
using the host's DB constants. One engine is built lazily per process; it
uses ``NullPool`` so every Database Link gets a fresh connection that is
really closed on release (no reuse across requests). In-memory SQLite
(tests) uses ``StaticPool`` so all links see the same database.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine, URL
from sqlalchemy.pool import NullPool, StaticPool

from cartbridge import config as app_config
from cartbridge.utils.logging import get_logger

_engine: Optional[Engine] = None
_LOCK = threading.Lock()

LOG = get_logger("bridge.db")


def split_db_host(raw: str) -> Tuple[str, Optional[int], Optional[str]]:
    """Split a host constant into ``(host, port, socket)``.

    Accepts ``host``, ``host:3307``, ``host:/run/mysqld.sock`` and a bare
    socket path.
    """
    raw = (raw or "").strip() or "localhost"
    if raw.startswith("/"):
        return "localhost", None, raw
    host, sep, rest = raw.partition(":")
    if not sep:
        return host, None, None
    if rest.startswith("/"):
        return host or "localhost", None, rest
    if rest.isdigit():
        return host or "localhost", int(rest), None
    return host or "localhost", None, None


def build_database_url() -> URL | str:
    override = app_config.database_url_override()
    if override:
        return override
    host, port, socket = split_db_host(app_config.db_host())
    query = {"charset": "utf8mb4"}
    if socket:
        query["unix_socket"] = socket
    return URL.create(
        "mysql+pymysql",
        username=app_config.db_user(),
        password=app_config.db_password() or None,
        host=host,
        port=port,
        database=app_config.db_name(),
        query=query,
    )


def _is_memory_sqlite(url: URL | str) -> bool:
    rendered = url if isinstance(url, str) else url.render_as_string(hide_password=True)
    return rendered.startswith("sqlite") and (":memory:" in rendered or rendered.rstrip("/") in {"sqlite:", "sqlite+pysqlite:"})


def init_engine_once() -> None:
    global _engine
    if _engine is not None:
        return
    with _LOCK:
        if _engine is not None:
            return
        url = build_database_url()
        if _is_memory_sqlite(url):
            _engine = create_engine(
                url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            _engine = create_engine(url, poolclass=NullPool)
        LOG.info("Initializing bridge database engine dialect=%s", _engine.dialect.name)


def get_engine() -> Engine:
    if _engine is None:
        init_engine_once()
    return _engine  # type: ignore[return-value]


@contextmanager
def app_connection() -> Iterator[Connection]:
    """Short-lived transactional connection for internal statements."""
    engine = get_engine()
    with engine.begin() as conn:
        yield conn


def ping() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        LOG.warning("Database ping failed", exc_info=True)
        return False


def reset_for_tests() -> None:
    """Dispose the engine singleton (in-memory databases vanish with it)."""
    global _engine
    with _LOCK:
        if _engine is not None:
            try:
                _engine.dispose()
            except Exception:
                LOG.warning("Failed disposing engine during reset", exc_info=True)
        _engine = None


__all__ = [
    "split_db_host",
    "build_database_url",
    "init_engine_once",
    "get_engine",
    "app_connection",
    "ping",
    "reset_for_tests",
]
