"""``query``: run one envelope-decoded SQL statement."""
from __future__ import annotations

from typing import Any, Dict, Optional

from cartbridge.db.link import DatabaseLink, QueryResult
from cartbridge.services.actions.base import Action
from cartbridge.services.context import RequestContext
from cartbridge.errors import QueryError
from cartbridge.utils.logging import get_logger

LOG = get_logger("actions.query")


def to_int(value: Any, default: int = 0) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def ext_params(ctx: RequestContext) -> Dict[str, Any]:
    """Per-statement link options taken from the request."""
    return {
        "fetch_fields": to_int(ctx.param("fetchFields")) == 1,
        "set_names": ctx.param("set_names") or False,
    }


def apply_sql_settings(ctx: RequestContext) -> Optional[Dict[str, Any]]:
    """Run the session SQL mode / variables overrides; error payload on failure."""
    settings = ctx.param("sql_settings")
    if not isinstance(settings, dict) or not settings:
        return None
    link = ctx.require_link()
    statements = []
    if settings.get("sql_modes") is not None:
        statements.append("SET SESSION SQL_MODE=" + ctx.envelope.decode_text(str(settings["sql_modes"])))
    if settings.get("sql_variables") is not None:
        statements.append(ctx.envelope.decode_text(str(settings["sql_variables"])))
    for sql in statements:
        outcome = link.query(sql)
        if not outcome.ok:
            LOG.info("session settings rejected: %s", outcome.message)
            return QueryError(outcome.message, sql, 0).as_payload()
    return None


def result_payload(outcome: QueryResult, link: DatabaseLink) -> Dict[str, Any]:
    return {
        "res": outcome.result,
        "fetchedFields": outcome.fetched_fields,
        "insertId": link.last_insert_id,
        "affectedRows": link.affected_rows,
    }


class QueryAction(Action):
    name = "query"

    def execute(self, ctx: RequestContext) -> Any:
        if ctx.param("query") is None or ctx.param("fetchMode") is None:
            return False
        sql = ctx.decode_text("query")
        failure = apply_sql_settings(ctx)
        if failure is not None:
            return failure
        link = ctx.require_link()
        outcome = link.query(sql, to_int(ctx.param("fetchMode")), ext_params(ctx))
        if not outcome.ok:
            return QueryError(outcome.message, sql, 0).as_payload()
        return result_payload(outcome, link)


__all__ = ["to_int", "ext_params", "apply_sql_settings", "result_payload", "QueryAction"]
