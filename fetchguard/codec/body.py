"""Declared body kinds: header defaulting, request encoding, response decoding.

Caller-supplied headers always win; defaults are only filled in when the
header is absent (case-insensitive).
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

import httpx

from fetchguard.shared.errors import ConfigurationError
from fetchguard.shared.types import BodyKind

REQUEST_KINDS = frozenset({BodyKind.JSON, BodyKind.TEXT, BodyKind.URL, BodyKind.FORM})
RESPONSE_KINDS = frozenset({BodyKind.JSON, BodyKind.TEXT, BodyKind.FILE})

_ACCEPT_DEFAULTS = {
    BodyKind.JSON: "application/json",
    BodyKind.FILE: "application/octet-stream",
}

# Any absolute URL works; httpx only needs one to assemble the multipart stream.
_MULTIPART_URL = "http://multipart.invalid/"


def _parse_kind(value: object, allowed: frozenset[BodyKind], option: str) -> BodyKind | None:
    if value is None:
        return None
    try:
        kind = BodyKind(value)
    except ValueError:
        kind = None
    if kind is None or kind not in allowed:
        msg = f"{option} not supported ({value})"
        raise ConfigurationError(msg, option=option)
    return kind


def parse_request_type(value: object) -> BodyKind | None:
    return _parse_kind(value, REQUEST_KINDS, "request_type")


def parse_response_type(value: object) -> BodyKind | None:
    return _parse_kind(value, RESPONSE_KINDS, "response_type")


def _encode_multipart(fields: Mapping[str, Any]) -> tuple[str, bytes]:
    # Plain values become filename-less parts so even a form without files
    # is sent as multipart.
    files: list[tuple[str, Any]] = []
    for name, value in fields.items():
        if isinstance(value, str | int | float):
            files.append((name, (None, str(value))))
        else:
            files.append((name, value))
    request = httpx.Request("POST", _MULTIPART_URL, files=files)
    content = request.read()
    return request.headers["content-type"], content


def _encode_plain(body: Any) -> bytes | None:
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    msg = f"body of type {type(body).__name__} needs a request_type"
    raise ConfigurationError(msg, option="body")


def encode_request_body(
    headers: httpx.Headers,
    body: Any,
    kind: BodyKind | None,
) -> bytes | None:
    """Encode ``body`` for ``kind`` and default the content-type header in place."""
    if kind is None:
        return _encode_plain(body)

    if kind is BodyKind.JSON:
        headers.setdefault("content-type", "application/json")
        return None if body is None else json.dumps(body).encode("utf-8")

    if kind is BodyKind.URL:
        headers.setdefault("content-type", "application/x-www-form-urlencoded")
        if body is None or isinstance(body, str | bytes):
            return _encode_plain(body)
        return urlencode(body, doseq=True).encode("utf-8")

    if kind is BodyKind.TEXT:
        headers.setdefault("content-type", "text/plain")
        return _encode_plain(body)

    if not isinstance(body, Mapping):
        msg = "form request_type needs a mapping body"
        raise ConfigurationError(msg, option="body")
    content_type, content = _encode_multipart(body)
    headers.setdefault("content-type", content_type)
    return content


def default_accept(headers: httpx.Headers, kind: BodyKind | None) -> None:
    accept = _ACCEPT_DEFAULTS.get(kind) if kind is not None else None
    if accept is not None:
        headers.setdefault("accept", accept)


def decode_body(response: httpx.Response, kind: BodyKind | None) -> Any:
    """Decode the response per ``kind``; ``file`` and no kind return the response."""
    if kind is BodyKind.JSON:
        return response.json()
    if kind is BodyKind.TEXT:
        return response.text
    return response
