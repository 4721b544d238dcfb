"""Bridge logging helpers (internal).

All loggers hang under the ``cartbridge`` package logger, which owns the one
stream handler and the level from `cartbridge.config.log_level_name()`.
Area loggers (``get_logger("bridge")`` -> ``cartbridge.bridge``) propagate to it.
"""
from __future__ import annotations

import logging
import re
import threading
from typing import Optional

from cartbridge import config as app_config

ROOT_NAME = "cartbridge"

_LOCK = threading.Lock()
_ROOT: Optional[logging.Logger] = None

# a2c_sign=<hex>, store_key=<32 chars>, BRIDGE_TOKEN = '<key>'
_SECRET_RE = re.compile(r"(a2c_sign|store_key|BRIDGE_TOKEN)(['\"]?\s*[=:]\s*['\"]?)([A-Za-z0-9]{8,})")


class SecretMaskFilter(logging.Filter):
    """Masks request signatures and store keys that end up in messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = _SECRET_RE.sub(lambda m: f"{m.group(1)}{m.group(2)}{m.group(3)[:4]}***", message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def _root() -> logging.Logger:
    global _ROOT
    if _ROOT is not None:
        return _ROOT
    with _LOCK:
        if _ROOT is not None:
            return _ROOT
        logger = logging.getLogger(ROOT_NAME)
        logger.setLevel(getattr(logging, app_config.log_level_name(), logging.INFO))
        if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter("[bridge] %(asctime)s %(levelname)s %(name)s %(message)s"))
            handler.addFilter(SecretMaskFilter())
            logger.addHandler(handler)
        logger.propagate = False
        _ROOT = logger
        return logger


def get_logger(name: str = ROOT_NAME) -> logging.Logger:
    root = _root()
    if name in ("", ROOT_NAME):
        return root
    if name.startswith(ROOT_NAME + "."):
        return logging.getLogger(name)
    return root.getChild(name)


__all__ = ["ROOT_NAME", "SecretMaskFilter", "get_logger"]
