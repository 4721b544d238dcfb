"""Utility helpers."""
from . import constants
from .params import parse_bracketed, build_query, as_list

__all__ = [
    "constants",
    "parse_bracketed",
    "build_query",
    "as_list",
]
