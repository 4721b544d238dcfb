"""Cart bridge package root.

Exposes a signed RPC endpoint that lets a remote integration platform run
SQL against a WordPress/WooCommerce store database and mutate commerce
entities through WooCommerce's own APIs. All interactions with the host
installation are mediated through the config adapter and the commerce
platform collaborator so the dispatcher stays host-agnostic.
"""

__all__ = [
]
