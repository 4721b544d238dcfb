"""Database Link: one lazily opened connection per bridge request.

``connect()`` retries a fixed number of times with a fixed sleep between
attempts and raises ``ConnectivityError`` once the budget is spent. Query
failures never close or retry the connection; they are reported inside the
``QueryResult``.
"""
from __future__ import annotations

import re
import time
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from cartbridge.db.engine import get_engine
from cartbridge.errors import ConnectivityError
from cartbridge.utils.logging import get_logger

LOG = get_logger("bridge.link")

FETCH_ASSOC = 1
FETCH_NUM = 2
FETCH_OBJECT = 3

_CHARSET_RE = re.compile(r"^\w+$")


@dataclass
class QueryResult:
    """Outcome of one statement: rows (or a boolean), error message, column metadata."""

    result: Any = None
    message: str = ""
    fetched_fields: Any = ""

    @property
    def ok(self) -> bool:
        return not self.message


class DatabaseLink:
    MAX_RETRIES_TO_CONNECT = 5
    SLEEP_BETWEEN_ATTEMPTS = 2

    def __init__(self, engine_factory: Callable[[], Engine] = get_engine) -> None:
        self._engine_factory = engine_factory
        self._conn: Optional[Connection] = None
        self.last_insert_id: Any = 0
        self.affected_rows: int = 0

    # ---------------- lifecycle ---------------
    @property
    def connected(self) -> bool:
        return self._conn is not None

    def connect(self) -> Connection:
        if self._conn is not None:
            return self._conn
        engine = self._engine_factory()
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.MAX_RETRIES_TO_CONNECT + 1):
            try:
                conn = engine.connect()
                self._conn = conn.execution_options(isolation_level="AUTOCOMMIT")
                if attempt > 1:
                    LOG.info("Database connected on attempt %s", attempt)
                return self._conn
            except SQLAlchemyError as exc:
                last_error = exc
                LOG.warning("Database connect attempt %s/%s failed: %s", attempt, self.MAX_RETRIES_TO_CONNECT, exc)
                if attempt < self.MAX_RETRIES_TO_CONNECT:
                    time.sleep(self.SLEEP_BETWEEN_ATTEMPTS)
        raise ConnectivityError("Can not connect to DB") from last_error

    def release(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.close()
        except SQLAlchemyError:
            LOG.warning("Closing database connection failed", exc_info=True)
        finally:
            self._conn = None

    # ---------------- statements ---------------
    def _error_message(self, error: Any) -> str:
        return f"[{type(self).__name__}] MySQL Query Error: {error}"

    def set_names(self, charset: str) -> None:
        if not _CHARSET_RE.match(charset or ""):
            raise ValueError(f"invalid charset: {charset!r}")
        self.connect().exec_driver_sql(f"SET NAMES {charset}")

    def query(self, sql: str, fetch_mode: int = FETCH_ASSOC, options: Optional[Mapping[str, Any]] = None) -> QueryResult:
        options = options or {}
        outcome = QueryResult()
        conn = self.connect()
        try:
            if options.get("set_names"):
                self.set_names(str(options["set_names"]))
            cursor = conn.execution_options(no_parameters=True).exec_driver_sql(sql)
        except DBAPIError as exc:
            orig = getattr(exc, "orig", None) or exc
            outcome.message = self._error_message(orig)
            LOG.warning("Query failed: %s sql=%.200s", orig, sql)
            return outcome
        except ValueError as exc:
            outcome.message = self._error_message(exc)
            return outcome

        self.affected_rows = cursor.rowcount if cursor.rowcount is not None else 0
        self.last_insert_id = getattr(cursor, "lastrowid", None) or 0

        if not cursor.returns_rows:
            outcome.result = True
            return outcome

        columns = list(cursor.keys())
        dbapi_cursor = getattr(cursor, "cursor", None)
        description = dbapi_cursor.description if dbapi_cursor is not None else None
        raw_rows = cursor.fetchall()
        outcome.result = [_shape_row(columns, row, fetch_mode) for row in raw_rows]
        if options.get("fetch_fields") and raw_rows:
            outcome.fetched_fields = _describe(description, columns)
        return outcome

    def local_query(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Trusted internal statement with bound parameters; rows as dicts."""
        conn = self.connect()
        result = conn.execute(text(sql), dict(params or {}))
        if not result.returns_rows:
            return []
        return [dict(row._mapping) for row in result]


def _shape_row(columns: List[str], row: Any, fetch_mode: int) -> Any:
    values = list(row)
    if fetch_mode == FETCH_NUM:
        return values
    mapped = dict(zip(columns, values))
    if fetch_mode == FETCH_OBJECT:
        return SimpleNamespace(**mapped)
    return mapped


def _describe(description: Any, columns: List[str]) -> List[Dict[str, Any]]:
    if not description:
        return [{"name": name} for name in columns]
    fields = []
    for col in description:
        fields.append({
            "name": col[0],
            "type": col[1],
            "max_length": col[3] if len(col) > 3 else None,
            "decimals": col[5] if len(col) > 5 else None,
            "not_null": (not col[6]) if len(col) > 6 and col[6] is not None else None,
        })
    return fields


__all__ = [
    "FETCH_ASSOC",
    "FETCH_NUM",
    "FETCH_OBJECT",
    "QueryResult",
    "DatabaseLink",
]
