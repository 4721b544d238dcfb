"""Wire-level literals shared by the dispatcher, routes and handlers.

The remote platform matches on these exact strings, so they live in one
place and are never reworded.
"""
from __future__ import annotations

HEALTH_CHECK_ACTION = "checkbridge"
UPDATE_ACTION = "update"
SIGNATURE_FIELD = "a2c_sign"
DECOY_TOKEN_FIELD = "token"
CART_ID_FIELD = "cart_id"

BRIDGE_OK = "BRIDGE_OK"
ACTION_DOES_NOT_EXIST = "ACTION_DOES_NOT_EXIST"
CART_NOT_DETECTED = "CART_PLUGIN_IS_NOT_DETECTED"
BRIDGE_DIR_NOT_WRITABLE = "ERROR_BRIDGE_DIR_IS_NOT_WRITABLE"
BRIDGE_FILE_NOT_WRITABLE = "ERROR_BRIDGE_IS_NOT_WRITABLE"
ACTION_NOT_SUPPORTED = "Action is not supported"
HTTP_NO_CONTENT = "204"

CART_WOOCOMMERCE = "Woocommerce"
CART_WPECOMMERCE = "Wpecommerce"
CART_TYPE_WORDPRESS = "Wordpress"

# Error codes used by commerce (platform action) responses.
ERROR_CODE_SUCCESS = 0
ERROR_CODE_ENTITY_NOT_FOUND = 1
ERROR_CODE_INTERNAL_ERROR = 2

__all__ = [
    "HEALTH_CHECK_ACTION",
    "UPDATE_ACTION",
    "SIGNATURE_FIELD",
    "DECOY_TOKEN_FIELD",
    "CART_ID_FIELD",
    "BRIDGE_OK",
    "ACTION_DOES_NOT_EXIST",
    "CART_NOT_DETECTED",
    "BRIDGE_DIR_NOT_WRITABLE",
    "BRIDGE_FILE_NOT_WRITABLE",
    "ACTION_NOT_SUPPORTED",
    "HTTP_NO_CONTENT",
    "CART_WOOCOMMERCE",
    "CART_WPECOMMERCE",
    "CART_TYPE_WORDPRESS",
    "ERROR_CODE_SUCCESS",
    "ERROR_CODE_ENTITY_NOT_FOUND",
    "ERROR_CODE_INTERNAL_ERROR",
]
