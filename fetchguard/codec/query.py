"""Query-string encoding.

- Percent-encoding follows encodeURIComponent with ``!'()~`` escaped and
  space as ``+``; ``*`` is left as is
- ``None`` values are omitted
- Lists expand to repeated ``key[]=value``; brackets stay literal in keys
- Params already present on the URL come first, in their original order
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qsl, quote_plus, urlsplit, urlunsplit

from fetchguard.shared.errors import ConfigurationError


def _encode(text: str, safe: str) -> str:
    return quote_plus(text, safe=safe).replace("~", "%7E")


def encode_key(key: str) -> str:
    return _encode(key, "*[]")


def encode_value(value: Any) -> str:
    if isinstance(value, bool):
        value = "true" if value else "false"
    return _encode(str(value), "*")


def _append(pairs: list[tuple[str, Any]], key: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, list | tuple):
        for item in value:
            _append(pairs, key + "[]", item)
        return
    pairs.append((key, value))


def query_pairs(query: Mapping[str, Any] | None) -> list[tuple[str, Any]]:
    """Flatten a query mapping into ordered (key, value) pairs."""
    pairs: list[tuple[str, Any]] = []
    if not query:
        return pairs
    for key, value in query.items():
        _append(pairs, str(key), value)
    return pairs


def encode_pairs(pairs: list[tuple[str, Any]]) -> str:
    return "&".join(f"{encode_key(key)}={encode_value(value)}" for key, value in pairs)


def encode_query(query: Mapping[str, Any] | None) -> str:
    """Encode a mapping, e.g. ``{"items": ["a", "b"]}`` -> ``items[]=a&items[]=b``."""
    return encode_pairs(query_pairs(query))


def build_url(url: str, query: Mapping[str, Any] | None = None) -> str:
    """Merge ``query`` into ``url``, keeping existing params and the fragment."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        msg = f"Invalid URL: {url!r}"
        raise ConfigurationError(msg, option="url")

    pairs: list[tuple[str, Any]] = list(parse_qsl(parts.query, keep_blank_values=True))
    pairs.extend(query_pairs(query))
    search = encode_pairs(pairs)
    path = parts.path or "/"
    return urlunsplit((parts.scheme, parts.netloc, path, search, parts.fragment))
