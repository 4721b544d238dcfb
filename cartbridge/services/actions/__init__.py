"""Bridge actions and the registry the dispatcher resolves them from.

Lookup is case-insensitive on the sanitized action name.
"""
from __future__ import annotations

from typing import Dict, Iterable, Optional

from .base import WIRE_ENVELOPE, WIRE_JSON, Action
from .getconfig import BaseDirFsAction, GetConfigAction
from .multiquery import MultiQueryAction
from .notification import SendNotificationAction
from .platform_action import PlatformAction
from .query import QueryAction
from .refund import CreateRefundAction
from .savefile import BatchSaveFileAction, SaveFileAction
from .shipment import ShipmentProvidersAction


def build_registry(actions: Iterable[Action]) -> Dict[str, Action]:
    registry: Dict[str, Action] = {}
    for action in actions:
        key = action.name.lower()
        if key in registry:
            raise ValueError(f"duplicate action {action.name!r}")
        registry[key] = action
    return registry


ACTION_REGISTRY: Dict[str, Action] = build_registry([
    QueryAction(),
    MultiQueryAction(),
    SaveFileAction(),
    BatchSaveFileAction(),
    GetConfigAction(),
    BaseDirFsAction(),
    PlatformAction(),
    CreateRefundAction(),
    ShipmentProvidersAction(),
    SendNotificationAction(),
])


def resolve_action(name: str, registry: Optional[Dict[str, Action]] = None) -> Optional[Action]:
    return (ACTION_REGISTRY if registry is None else registry).get((name or "").lower())


__all__ = [
    "WIRE_ENVELOPE",
    "WIRE_JSON",
    "Action",
    "ACTION_REGISTRY",
    "build_registry",
    "resolve_action",
]
