"""Service exports."""

from .bridge import Bridge
from .context import BridgeServices, RequestContext
from .authenticator import RequestAuthenticator, compute_signature, sign_params, verify_signature
from .config_adapter import BridgeConfig, ConfigAdapter, build_config_adapter
from .envelope import Envelope, ObfuscationEnvelope, RsaEnvelope, build_envelope
from . import store_key_service, installer_service

__all__ = [
    "Bridge",
    "BridgeServices",
    "RequestContext",
    "RequestAuthenticator",
    "compute_signature",
    "sign_params",
    "verify_signature",
    "BridgeConfig",
    "ConfigAdapter",
    "build_config_adapter",
    "Envelope",
    "ObfuscationEnvelope",
    "RsaEnvelope",
    "build_envelope",
    "installer_service",
    "store_key_service",
]
