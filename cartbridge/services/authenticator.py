"""Inbound request authentication.

Stateless HMAC check recomputed per request. Signature: drop ``a2c_sign``,
sort the remaining top-level keys byte-wise, serialize like PHP's
``http_build_query`` and HMAC-SHA256 the result with the StoreKey.
"""
from __future__ import annotations

import hashlib
import hmac
from typing import Any, Callable, Dict, Mapping, Optional

from cartbridge.services import store_key_service
from cartbridge.errors import (
    NotInstalledError,
    SecretUndefinedError,
    SignatureInvalidError,
    SignatureMissingError,
    TokenFieldPresentError,
)
from cartbridge.utils.constants import DECOY_TOKEN_FIELD, HEALTH_CHECK_ACTION, SIGNATURE_FIELD
from cartbridge.utils.logging import get_logger
from cartbridge.utils.params import build_query

LOG = get_logger("authenticator")

# Injected by a currency-switcher plugin after signing; never part of the signature.
IGNORED_FIELDS = frozenset({"aelia_cs_currency"})


def _signable(params: Mapping[str, Any]) -> Dict[str, Any]:
    kept = {str(k): v for k, v in params.items() if k != SIGNATURE_FIELD and k not in IGNORED_FIELDS}
    return {k: kept[k] for k in sorted(kept, key=lambda s: s.encode("utf-8"))}


def compute_signature(params: Mapping[str, Any], key: str) -> str:
    message = build_query(_signable(params)).encode("utf-8")
    return hmac.new(key.encode("utf-8"), message, hashlib.sha256).hexdigest()


def sign_params(params: Mapping[str, Any], key: str) -> Dict[str, Any]:
    """Copy of ``params`` with ``a2c_sign`` set (used by the installer self-check and tests)."""
    signed = dict(params)
    signed[SIGNATURE_FIELD] = compute_signature(params, key)
    return signed


def verify_signature(params: Mapping[str, Any], key: str) -> bool:
    supplied = params.get(SIGNATURE_FIELD)
    if not isinstance(supplied, str) or not supplied:
        return False
    return hmac.compare_digest(supplied, compute_signature(params, key))


class RequestAuthenticator:
    """Decides whether an inbound call is trusted.

    Order of checks: installed flag, health-check exemption, reserved
    ``token`` field, shared secret presence, signature presence, signature value.
    """

    def __init__(
        self,
        *,
        is_installed: Callable[[], bool] = store_key_service.is_installed,
        secret_loader: Callable[[], Optional[str]] = store_key_service.read_mirror_key,
    ) -> None:
        self._is_installed = is_installed
        self._secret_loader = secret_loader

    def load_secret(self) -> str:
        secret = self._secret_loader()
        if secret is None:
            raise SecretUndefinedError()
        if len(secret) != store_key_service.KEY_LENGTH:
            raise SecretUndefinedError("ERROR_TOKEN_LENGTH")
        return secret

    def verify(self, post_params: Mapping[str, Any], all_params: Optional[Mapping[str, Any]] = None) -> None:
        """Raise an ``AuthError`` subclass unless the call may proceed."""
        all_params = post_params if all_params is None else all_params
        if not self._is_installed():
            LOG.info("auth rejected: bridge not installed")
            raise NotInstalledError()
        if post_params.get("action") == HEALTH_CHECK_ACTION:
            return
        if all_params.get(DECOY_TOKEN_FIELD):
            LOG.info("auth rejected: reserved token field present")
            raise TokenFieldPresentError()
        secret = self.load_secret()
        if not post_params.get(SIGNATURE_FIELD):
            LOG.info("auth rejected: signature missing")
            raise SignatureMissingError()
        if not verify_signature(post_params, secret):
            LOG.info("auth rejected: signature mismatch")
            raise SignatureInvalidError()


__all__ = [
    "IGNORED_FIELDS",
    "compute_signature",
    "sign_params",
    "verify_signature",
    "RequestAuthenticator",
]
