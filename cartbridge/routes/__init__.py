"""Route registration."""
from __future__ import annotations

from typing import Any

from .admin_connector import register_admin_connector
from .bridge import register_bridge
from .health import register_health


def register_all(app: Any) -> None:
    register_bridge(app)
    register_admin_connector(app)
    register_health(app)


__all__ = ["register_all"]
