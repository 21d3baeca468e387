"""Helpers for building API paths and normalizing decoded JSON."""

import re
from typing import Any
from urllib.parse import quote

# Characters left untouched when escaping path segments.
_SAFE_CHARS = "_.-"

_NON_IDENTIFIER = re.compile(r"\W+")


def escape(value: Any, extra_safe: str = "") -> str:
    """Percent-encode a value for use as a single URL path segment.

    Bytes outside ``[A-Za-z0-9_.-]`` (plus ``extra_safe``) are encoded as
    uppercase ``%XX``. Spaces become ``%20``, never ``+``.

    >>> escape("a b/c")
    'a%20b%2Fc'
    """
    # quote() also treats "~" as unreserved; strip it back out.
    encoded = quote(str(value).encode("utf-8"), safe=_SAFE_CHARS + extra_safe)
    if "~" not in extra_safe:
        encoded = encoded.replace("~", "%7E")
    return encoded


def paginate(limit: int | None = None, offset: int | None = None) -> str:
    """Build the ``limit``/``offset`` query string, or ``""`` if neither is set."""
    args = []
    if limit is not None:
        args.append(f"limit={escape(limit)}")
    if offset is not None:
        args.append(f"offset={escape(offset)}")
    return "&".join(args)


def with_query(path: str, query: str) -> str:
    """Append a query string to a path when it is non-empty."""
    return f"{path}?{query}" if query else path


def normalize_key(key: Any) -> Any:
    """Convert a string key to identifier form (``"flavor-ref"`` -> ``"flavor_ref"``)."""
    if not isinstance(key, str):
        return key
    normalized = _NON_IDENTIFIER.sub("_", key).strip("_")
    if normalized and normalized[0].isdigit():
        normalized = f"_{normalized}"
    return normalized or key


def normalize_keys(obj: Any) -> Any:
    """Recursively normalize mapping keys through nested mappings and sequences.

    A key whose normalized form collides with another key of the same
    mapping is left as it is, so no value is dropped.
    """
    if isinstance(obj, dict):
        result = {}
        for key, value in obj.items():
            name = normalize_key(key)
            # Keep the raw key when another key already owns the name.
            if name != key and (name in obj or name in result):
                name = key
            result[name] = normalize_keys(value)
        return result
    if isinstance(obj, list):
        return [normalize_keys(v) for v in obj]
    return obj


def is_success(status_code: int) -> bool:
    """Match the ``20x`` success family (200-209)."""
    return 200 <= status_code <= 209  # noqa: PLR2004
