"""Database layer root: engine singleton and the per-request Database Link."""

from .engine import (
    init_engine_once,
    get_engine,
    app_connection,
    reset_for_tests,
)
from .link import DatabaseLink, QueryResult, FETCH_ASSOC, FETCH_NUM, FETCH_OBJECT

__all__ = [
    "init_engine_once",
    "get_engine",
    "app_connection",
    "reset_for_tests",
    "DatabaseLink",
    "QueryResult",
    "FETCH_ASSOC",
    "FETCH_NUM",
    "FETCH_OBJECT",
]
