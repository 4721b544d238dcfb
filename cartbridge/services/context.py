"""Per-request state handed to every action.

``BridgeServices`` bundles the collaborator factories (envelope, outbound
HTTP session, commerce handlers, store key source) so tests can swap any
of them without monkeypatching module globals.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

import requests

from cartbridge.db.link import DatabaseLink
from cartbridge.services.commerce import CommerceHandlers, build_commerce_handlers
from cartbridge.services.config_adapter import BridgeConfig, ConfigAdapter
from cartbridge.services.envelope import Envelope, build_envelope
from cartbridge.services.http_client import new_session
from cartbridge.services.store_key_service import read_mirror_key


@dataclass
class BridgeServices:
    envelope_factory: Callable[[], Envelope] = build_envelope
    http_session: Callable[[], requests.Session] = new_session
    commerce_factory: Callable[..., CommerceHandlers] = build_commerce_handlers
    store_key_loader: Callable[[], Optional[str]] = read_mirror_key


@dataclass
class RequestContext:
    action: str
    params: Mapping[str, Any]
    post: Mapping[str, Any]
    envelope: Envelope
    services: BridgeServices = field(default_factory=BridgeServices)
    adapter: Optional[ConfigAdapter] = None
    link: Optional[DatabaseLink] = None
    _commerce: Optional[CommerceHandlers] = field(default=None, repr=False)

    @property
    def config(self) -> BridgeConfig:
        if self.adapter is None:
            return BridgeConfig()
        return self.adapter.config

    def param(self, name: str, default: Any = None) -> Any:
        return self.params.get(name, default)

    def require_link(self) -> DatabaseLink:
        if self.link is None:
            raise RuntimeError(f"action {self.action!r} requires a database link")
        return self.link

    def decode(self, name: str) -> Any:
        """Envelope-decoded structured parameter (JSON payload)."""
        return self.envelope.decode(str(self.params.get(name) or ""))

    def decode_text(self, name: str) -> str:
        return self.envelope.decode_text(str(self.params.get(name) or ""))

    def commerce(self) -> CommerceHandlers:
        if self._commerce is None:
            multilingual = bool(self.adapter and self.adapter.multilingual_active)
            self._commerce = self.services.commerce_factory(
                cart_id=self.config.cart_id,
                multilingual=multilingual,
                http_session=self.services.http_session,
            )
        return self._commerce


__all__ = ["BridgeServices", "RequestContext"]
