"""PHP-style form parameter helpers.

The remote platform posts nested structures using bracket notation
(``files[0][id]=7``) and signs them with PHP's ``http_build_query``. These
helpers parse such pairs into nested dicts and serialize them back so the
signature can be recomputed byte-for-byte.
"""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Tuple
from urllib.parse import quote_plus

_SEGMENT_RE = re.compile(r"\[([^\]]*)\]")


def _split_key(raw_key: str) -> List[str]:
    head, bracket, _rest = raw_key.partition("[")
    if not bracket or not head:
        return [raw_key]
    tail = raw_key[len(head):]
    segments = _SEGMENT_RE.findall(tail)
    # Anything after the last closing bracket is ignored, as PHP does.
    return [head] + segments


def parse_bracketed(pairs: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    """Build nested dicts from ``(key, value)`` pairs in bracket notation.

    Empty brackets append with the next free integer index (stored as a
    string key so order and re-serialization match PHP arrays).
    """
    result: Dict[str, Any] = {}
    for raw_key, value in pairs:
        segments = _split_key(raw_key)
        node: Dict[str, Any] = result
        for pos, segment in enumerate(segments):
            last = pos == len(segments) - 1
            if segment == "" and pos > 0:
                segment = str(_next_index(node))
            if last:
                node[segment] = value
                break
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
    return result


def _next_index(node: Mapping[str, Any]) -> int:
    numeric = [int(k) for k in node.keys() if k.isdigit()]
    return max(numeric) + 1 if numeric else 0


def _scalar(value: Any) -> str:
    if value is True:
        return "1"
    if value is False:
        return "0"
    return str(value)


def _flatten(prefix: str, value: Any, out: List[Tuple[str, str]]) -> None:
    if value is None:
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            _flatten(f"{prefix}[{key}]", item, out)
    elif isinstance(value, (list, tuple)):
        for idx, item in enumerate(value):
            _flatten(f"{prefix}[{idx}]", item, out)
    else:
        out.append((prefix, _scalar(value)))


def php_urlencode(value: str) -> str:
    """PHP ``urlencode``: only alphanumerics and ``-_.`` stay literal."""
    return quote_plus(value, safe="").replace("~", "%7E")


def build_query(params: Mapping[str, Any]) -> str:
    """Serialize like PHP ``http_build_query`` (RFC1738, ``+`` for spaces).

    Keys keep the mapping's iteration order; callers sort first when the
    protocol requires it.
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in params.items():
        _flatten(str(key), value, pairs)
    return "&".join(f"{php_urlencode(k)}={php_urlencode(v)}" for k, v in pairs)


def as_list(value: Any) -> List[Any]:
    """Values of a PHP-style array in order (dict, list or scalar)."""
    if value is None:
        return []
    if isinstance(value, Mapping):
        return list(value.values())
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


__all__ = ["parse_bracketed", "php_urlencode", "build_query", "as_list"]
