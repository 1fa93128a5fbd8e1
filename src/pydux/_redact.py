"""Helpers for safe debug logging.

Actions and state routinely carry user data (credentials, tokens, large
blobs).  Everything pydux logs passes through :func:`redact_for_log` first.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel

DEFAULT_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "passwd",
        "secret",
        "token",
        "accesstoken",
        "refreshtoken",
        "apikey",
        "authorization",
        "cookie",
        "credentials",
    }
)

_MAX_DEPTH = 20
_MAX_ITEMS = 50


def _normalize_key(key: Any) -> str:
    return str(key).replace("_", "").replace("-", "").lower()


def redact_for_log(
    value: Any,
    *,
    extra_keys: Iterable[str] = (),
    max_string: int = 512,
) -> Any:
    """Return a redacted, size-bounded copy of *value* suitable for logs.

    Pydantic models are dumped first, so actions and frozen state models
    are walked like plain mappings.  Key matching ignores case, ``_`` and
    ``-`` so ``access_token`` and ``accessToken`` are both masked.
    """
    sensitive = DEFAULT_SENSITIVE_KEYS | {_normalize_key(k) for k in extra_keys}
    return _redact(value, sensitive, max_string, 0)


def _redact(value: Any, sensitive: frozenset[str], max_string: int, depth: int) -> Any:
    if depth > _MAX_DEPTH:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, BaseModel):
        return _redact(value.model_dump(), sensitive, max_string, depth + 1)

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for index, (k, v) in enumerate(value.items()):
            if index >= _MAX_ITEMS:
                redacted["…"] = f"<{len(value) - _MAX_ITEMS} more>"
                break
            key = str(k)
            if _normalize_key(key) in sensitive:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = _redact(v, sensitive, max_string, depth + 1)
        return redacted

    if isinstance(value, (Sequence, frozenset, set)):
        items = list(value)
        out = [_redact(v, sensitive, max_string, depth + 1) for v in items[:_MAX_ITEMS]]
        if len(items) > _MAX_ITEMS:
            out.append(f"<{len(items) - _MAX_ITEMS} more>")
        return out

    # Unknown objects are represented without dumping their internals.
    return f"<{type(value).__name__}>"
