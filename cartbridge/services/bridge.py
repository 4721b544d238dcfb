"""Action dispatcher.

``Bridge.run`` handles the fixed special cases (health check, reserved
``token`` field, empty body, ``update`` pre-flight), resolves the action
from the registry, gives it a fresh Database Link when it needs one and
releases that link once the action returns. Structured results are put on
the wire here: through the envelope, or as plain JSON for actions whose
callers expect it.
"""
from __future__ import annotations

import os
import re
from typing import Any, Dict, Mapping, Optional

from cartbridge import config as app_config
from cartbridge.services.actions import WIRE_JSON, Action, resolve_action
from cartbridge.services.config_adapter import ConfigAdapter
from cartbridge.services.context import BridgeServices, RequestContext
from cartbridge.services.envelope import serialize
from cartbridge.errors import TokenFieldPresentError
from cartbridge.utils.constants import (
    ACTION_DOES_NOT_EXIST,
    BRIDGE_DIR_NOT_WRITABLE,
    BRIDGE_FILE_NOT_WRITABLE,
    BRIDGE_OK,
    CART_NOT_DETECTED,
    DECOY_TOKEN_FIELD,
    HEALTH_CHECK_ACTION,
    UPDATE_ACTION,
)
from cartbridge.utils.logging import get_logger

LOG = get_logger("bridge")

_TAGS_RE = re.compile(r"<[^>]*>")


def sanitize_action(value: Any) -> str:
    if value is None:
        return ""
    return _TAGS_RE.sub("", str(value)).strip().replace(".", "")


def health_payload() -> Any:
    if app_config.encryption_enabled():
        return {
            "message": BRIDGE_OK,
            "key_id": app_config.public_key_id(),
            "bridge_version": app_config.BRIDGE_VERSION,
        }
    return BRIDGE_OK


def update_preflight() -> Optional[str]:
    """Literal error when the bridge directory or its key file is not writable."""
    directory = app_config.bridge_dir()
    if not os.access(directory, os.W_OK):
        return BRIDGE_DIR_NOT_WRITABLE
    if not os.access(app_config.store_key_file_path(), os.W_OK):
        return BRIDGE_FILE_NOT_WRITABLE
    return None


class Bridge:
    def __init__(
        self,
        adapter: ConfigAdapter,
        params: Mapping[str, Any],
        post: Optional[Mapping[str, Any]] = None,
        *,
        services: Optional[BridgeServices] = None,
        registry: Optional[Dict[str, Action]] = None,
    ) -> None:
        self.adapter = adapter
        self.params = params
        self.post = params if post is None else post
        self.services = services or BridgeServices()
        self.registry = registry

    @property
    def action_name(self) -> str:
        return sanitize_action(self.params.get("action"))

    def run(self) -> Any:
        name = self.action_name
        if name == HEALTH_CHECK_ACTION:
            return health_payload()
        if DECOY_TOKEN_FIELD in self.params:
            return str(TokenFieldPresentError())
        if not self.post:
            return f"BRIDGE INSTALLED.<br /> Version: {app_config.BRIDGE_VERSION}"
        if name == UPDATE_ACTION:
            problem = update_preflight()
            if problem:
                return problem

        action = resolve_action(name, self.registry)
        if action is None:
            LOG.info("unknown action %r", name)
            return ACTION_DOES_NOT_EXIST
        if action.needs_cart and not self.adapter.config.detected:
            LOG.info("action %s refused: cart not detected", action.name)
            return CART_NOT_DETECTED

        ctx = RequestContext(
            action=action.name,
            params=self.params,
            post=self.post,
            envelope=self.services.envelope_factory(),
            services=self.services,
            adapter=self.adapter,
        )
        LOG.debug("dispatching action=%s link=%s", action.name, action.needs_link)
        if action.needs_link:
            ctx.link = self.adapter.connect()
        try:
            result = action.execute(ctx)
        finally:
            if ctx.link is not None:
                ctx.link.release()
                ctx.link = None
        return self._to_wire(action, ctx, result)

    @staticmethod
    def _to_wire(action: Action, ctx: RequestContext, result: Any) -> Any:
        if not isinstance(result, (dict, list)):
            return result
        if action.wire == WIRE_JSON:
            return serialize(result).decode("utf-8")
        return ctx.envelope.encode(result)


__all__ = ["sanitize_action", "health_payload", "update_preflight", "Bridge"]
