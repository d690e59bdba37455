"""Reconcile the response envelopes the mirror APIs have used over time.

The same logical payload has been observed as:
    [...]                       bare list
    {"posts": [...]}            post listings
    {"results": [...]}          secondary search API, Discord channels
    {"data": [...]}             secondary search API
    {"post": {...}}             single post wrapper
    text containing JSON        comments served as text/css

Each shape has a matcher. ``parse_shape`` runs them in order and returns
the first hit as a ``ParsedShape``. Normalization never raises: an
unrecognized body becomes ``ShapeKind.UNKNOWN`` and callers decide whether
that is fatal.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)

ENVELOPE_KEYS = ("posts", "results", "data", "comments", "channels", "servers")
WRAPPER_KEYS = ("post",)


class ShapeKind(Enum):
    LIST = "list"
    ENVELOPE = "envelope"
    WRAPPED = "wrapped"
    OBJECT = "object"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ParsedShape:
    kind: ShapeKind
    records: list[dict] = field(default_factory=list)
    record: dict | None = None
    key: str | None = None  # envelope or wrapper key that matched


UNKNOWN = ParsedShape(ShapeKind.UNKNOWN)


def _records(items: list) -> list[dict]:
    return [item for item in items if isinstance(item, dict)]


def _match_list(decoded: Any) -> ParsedShape | None:
    if isinstance(decoded, list):
        return ParsedShape(ShapeKind.LIST, records=_records(decoded))
    return None


def _match_envelope(decoded: Any) -> ParsedShape | None:
    if not isinstance(decoded, dict):
        return None
    for key in ENVELOPE_KEYS:
        if isinstance(decoded.get(key), list):
            return ParsedShape(
                ShapeKind.ENVELOPE, records=_records(decoded[key]), key=key
            )
    return None


def _match_wrapped(decoded: Any) -> ParsedShape | None:
    if not isinstance(decoded, dict):
        return None
    for key in WRAPPER_KEYS:
        inner = decoded.get(key)
        if isinstance(inner, dict):
            return ParsedShape(
                ShapeKind.WRAPPED, records=[inner], record=inner, key=key
            )
    return None


def _match_object(decoded: Any) -> ParsedShape | None:
    if isinstance(decoded, dict) and decoded:
        return ParsedShape(ShapeKind.OBJECT, records=[decoded], record=decoded)
    return None


MATCHERS: tuple[Callable[[Any], ParsedShape | None], ...] = (
    _match_list,
    _match_envelope,
    _match_wrapped,
    _match_object,
)


def parse_shape(decoded: Any) -> ParsedShape:
    """Classify a decoded body. Strings are searched for embedded JSON."""
    if isinstance(decoded, str):
        embedded = extract_embedded_json(decoded)
        if embedded is None:
            return UNKNOWN
        decoded = embedded

    for matcher in MATCHERS:
        shape = matcher(decoded)
        if shape is not None:
            return shape
    return UNKNOWN


def normalize_list(decoded: Any, allow_single: bool = False) -> list[dict]:
    """Extract the record list from any known envelope.

    A bare object only counts as a one-record list when ``allow_single`` is
    set (links and comments endpoints answer that way).
    """
    shape = parse_shape(decoded)
    if shape.kind == ShapeKind.OBJECT and not allow_single:
        return []
    return list(shape.records)


def normalize_object(decoded: Any) -> dict | None:
    shape = parse_shape(decoded)
    if shape.kind in (ShapeKind.WRAPPED, ShapeKind.OBJECT):
        return shape.record
    return None


def decode_body(text: str) -> Any:
    """Decode a response body as JSON, falling back to embedded JSON."""
    if not text or not text.strip():
        return None
    try:
        return json.loads(text)
    except ValueError:
        logger.debug("Body is not plain JSON; scanning for embedded JSON")
    return extract_embedded_json(text)


def extract_embedded_json(text: str) -> Any:
    """Return the first bracket-delimited substring of ``text`` that decodes.

    Scans from each ``[`` or ``{`` to its balancing bracket, skipping
    brackets inside string literals.
    """
    start = 0
    while True:
        start = _next_opening(text, start)
        if start < 0:
            return None
        end = _balanced_end(text, start)
        if end > start:
            try:
                return json.loads(text[start:end + 1])
            except ValueError:
                pass
        start += 1


def _next_opening(text: str, start: int) -> int:
    positions = [p for p in (text.find("[", start), text.find("{", start)) if p >= 0]
    return min(positions) if positions else -1


def _balanced_end(text: str, start: int) -> int:
    closing = {"[": "]", "{": "}"}
    stack: list[str] = []
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in closing:
            stack.append(closing[ch])
        elif ch in ("]", "}"):
            if not stack or stack.pop() != ch:
                return -1
            if not stack:
                return i
    return -1
