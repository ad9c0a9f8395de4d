"""Sanitization utilities for request bodies and logged values.

``sanitize`` walks a JSON-like value and returns a copy of the same shape in
which every string leaf is trimmed and stripped of executable markup. The walk
is iterative with an explicit depth limit, so deeply nested (or cyclic) input
fails with ``MalformedInputError`` instead of exhausting the interpreter stack.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Mapping
from typing import Any

import bleach
from bleach.sanitizer import ALLOWED_TAGS

from gateway.errors import MalformedInputError

DEFAULT_MAX_DEPTH = 64

# Formatting markup survives; scripts, event handlers and unknown tags do not.
SAFE_TAGS = frozenset(ALLOWED_TAGS | {"br", "p", "span", "u"})
SAFE_ATTRIBUTES = {
    "a": ["href", "title"],
    "abbr": ["title"],
    "acronym": ["title"],
}
SAFE_PROTOCOLS = frozenset({"http", "https", "mailto"})

# C0 controls (\x00-\x1f), DEL (\x7f), C1 controls (\x80-\x9f),
# Unicode line/paragraph separators (\u2028-\u2029),
# bidi overrides (\u200b-\u200f, \u202a-\u202e, \u2066-\u2069),
# zero-width no-break space / BOM (\ufeff).
CONTROL_CHARS_RE = re.compile(
    r"[\x00-\x1f\x7f-\x9f\u2028\u2029\u200b-\u200f\u202a-\u202e\u2066-\u2069\ufeff]"
)


def strip_control_chars(value: str) -> str:
    """Strip all control characters from a string."""
    return CONTROL_CHARS_RE.sub("", value)


class JsonKind(enum.Enum):
    """Variants of the JSON value space the sanitizer distinguishes."""

    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    SCALAR = "scalar"


def classify(value: Any) -> JsonKind:
    if isinstance(value, str):
        return JsonKind.STRING
    if isinstance(value, (list, tuple)):
        return JsonKind.ARRAY
    if isinstance(value, Mapping):
        return JsonKind.OBJECT
    return JsonKind.SCALAR


def sanitize_string(value: str) -> str:
    """Trim whitespace and purify HTML.

    Text without a ``<`` carries no markup and is returned trimmed but
    otherwise untouched, which keeps URLs, ampersands and quotes intact.
    """
    value = value.strip()
    if "<" not in value:
        return value
    cleaned = bleach.clean(
        value,
        tags=SAFE_TAGS,
        attributes=SAFE_ATTRIBUTES,
        protocols=SAFE_PROTOCOLS,
        strip=True,
        strip_comments=True,
    )
    return cleaned.strip()


def _new_container(kind: JsonKind, source: Any) -> Any:
    if kind is JsonKind.ARRAY:
        return [None] * len(source)
    return {}


def _items(kind: JsonKind, source: Any):
    if kind is JsonKind.ARRAY:
        return enumerate(source)
    return source.items()


def sanitize(value: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> Any:
    """Return a deep-sanitized copy of ``value`` with the same shape.

    Objects keep their exact key set, arrays their length and order. Numbers,
    booleans and None pass through unchanged.

    Raises:
        MalformedInputError: nesting deeper than ``max_depth``.
    """
    kind = classify(value)
    if kind is JsonKind.STRING:
        return sanitize_string(value)
    if kind is JsonKind.SCALAR:
        return value

    root = _new_container(kind, value)
    stack: list[tuple[JsonKind, Any, Any, int]] = [(kind, value, root, 1)]
    while stack:
        kind, source, target, depth = stack.pop()
        if depth > max_depth:
            raise MalformedInputError(
                "Request body is nested too deeply.", max_depth=max_depth
            )
        for key, child in _items(kind, source):
            child_kind = classify(child)
            if child_kind is JsonKind.STRING:
                target[key] = sanitize_string(child)
            elif child_kind is JsonKind.SCALAR:
                target[key] = child
            else:
                child_target = _new_container(child_kind, child)
                target[key] = child_target
                stack.append((child_kind, child, child_target, depth + 1))
    return root
