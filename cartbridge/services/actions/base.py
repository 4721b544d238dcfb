"""Common shape of a bridge action."""
from __future__ import annotations

from typing import Any

from cartbridge.services.context import RequestContext

# How the dispatcher puts a structured (dict/list) result on the wire.
WIRE_ENVELOPE = "envelope"
WIRE_JSON = "json"


class Action:
    """One named bridge operation.

    ``needs_link``: a Database Link is opened before ``execute`` and released
    after it. ``needs_cart``: the action is refused unless a cart was
    detected.
    """

    name = ""
    needs_link = True
    needs_cart = False
    wire = WIRE_ENVELOPE

    def execute(self, ctx: RequestContext) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"<{type(self).__name__} {self.name}>"


__all__ = ["WIRE_ENVELOPE", "WIRE_JSON", "Action"]
