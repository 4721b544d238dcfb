"""``multiquery``: ordered batch of statements with result templating.

From the second statement on, two placeholders are expanded before the
statement runs:

* ``_A2C_LAST_{id}_INSERT_ID_`` becomes the insert id recorded for query ``id``.
* ``A2C_USE_FIELD_{column}_FROM_{id}_QUERY`` becomes a quoted, de-duplicated
  list of ``column`` values from the rows of query ``id`` (NULL stays bare).

The first failing statement stops the batch.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping

from cartbridge.services.actions.base import Action
from cartbridge.services.actions.query import apply_sql_settings, ext_params, result_payload, to_int
from cartbridge.services.context import RequestContext
from cartbridge.errors import CryptoError, QueryError
from cartbridge.utils.logging import get_logger

LOG = get_logger("actions.multiquery")

LAST_INSERT_ID_RE = re.compile(r"_A2C_LAST_\{([a-zA-Z0-9_\-]{1,32})\}_INSERT_ID_")
USE_FIELD_RE = re.compile(r"A2C_USE_FIELD_\{([\w\d\s\-]+)\}_FROM_\{([a-zA-Z0-9_\-]{1,32})\}_QUERY")

_SLASHED = {"\\": "\\\\", "'": "\\'", '"': '\\"', "\x00": "\\0"}


def addslashes(value: Any) -> str:
    return "".join(_SLASHED.get(ch, ch) for ch in str(value))


def _column_value(row: Any, column: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(column)
    if isinstance(row, (list, tuple)) and column.isdigit() and int(column) < len(row):
        return row[int(column)]
    return getattr(row, column, None)


def quoted_values(rows: Any, column: str) -> str:
    values: List[Any] = []
    for row in rows if isinstance(rows, list) else []:
        value = _column_value(row, column)
        values.append(None if value is None else addslashes(value))
    unique = list(dict.fromkeys(values))
    if not unique:
        return "''"
    return ", ".join("NULL" if v is None else f"'{v}'" for v in unique)


class MultiQueryAction(Action):
    name = "multiquery"

    def execute(self, ctx: RequestContext) -> Any:
        if ctx.param("queries") is None or ctx.param("fetchMode") is None:
            return False
        queries = ctx.decode("queries")
        if not isinstance(queries, Mapping):
            if not isinstance(queries, list):
                raise CryptoError("ERROR_INVALID_PAYLOAD")
            queries = {str(i): q for i, q in enumerate(queries)}
        failure = apply_sql_settings(ctx)
        if failure is not None:
            return failure

        link = ctx.require_link()
        fetch_mode = to_int(ctx.param("fetchMode"))
        options = ext_params(ctx)
        results: Dict[str, Any] = {}
        insert_ids: Dict[str, Any] = {}

        for position, (query_id, sql) in enumerate(queries.items()):
            sql = str(sql)
            if position > 0:
                sql = LAST_INSERT_ID_RE.sub(lambda m: str(insert_ids.get(m.group(1), "")), sql)
                sql = USE_FIELD_RE.sub(
                    lambda m: quoted_values((results.get(m.group(2)) or {}).get("res"), m.group(1)), sql
                )
            outcome = link.query(sql, fetch_mode, options)
            if not outcome.ok:
                LOG.info("multiquery stopped at %s", query_id)
                return QueryError(outcome.message, sql, query_id).as_payload()
            results[query_id] = result_payload(outcome, link)
            insert_ids[query_id] = results[query_id]["insertId"]
        return results


__all__ = ["LAST_INSERT_ID_RE", "USE_FIELD_RE", "addslashes", "quoted_values", "MultiQueryAction"]
