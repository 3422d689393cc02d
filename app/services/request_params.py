from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from app.core.config import settings

_BRACKET_RE = re.compile(r"^([^\[\]]+)\[([^\[\]]*)\]$")


def _sanitized(name: str) -> str | None:
    # Keys that could smuggle native operators or dotted paths are dropped.
    text = str(name or "").strip()
    if not text or text.startswith("$") or "." in text:
        return None
    return text


def parse_query_params(items: Iterable[tuple[str, str]], *, whitelist: Iterable[str] = ()) -> dict[str, Any]:
    """Build the nested filter mapping from raw ``(key, value)`` query pairs.

    ``duration[gte]=5`` becomes ``{"duration": {"gte": "5"}}``. A repeated plain
    key keeps only its last value unless the key is whitelisted, in which case
    every value is kept in a list (``?difficulty=easy&difficulty=medium``).
    """
    allowed_repeats = set(whitelist)
    params: dict[str, Any] = {}
    for raw_key, value in items:
        match = _BRACKET_RE.match(str(raw_key))
        if match and match.group(2):
            field_name = _sanitized(match.group(1))
            operator = _sanitized(match.group(2))
            if field_name is None or operator is None:
                continue
            current = params.get(field_name)
            if not isinstance(current, dict):
                current = {}
            current[operator] = value
            params[field_name] = current
            continue

        key = _sanitized(match.group(1) if match else raw_key)
        if key is None:
            continue
        if key in params and key in allowed_repeats:
            current = params[key]
            if isinstance(current, list):
                current.append(value)
            elif isinstance(current, dict):
                params[key] = value
            else:
                params[key] = [current, value]
        else:
            params[key] = value
    return params


def request_list_params(request) -> dict[str, Any]:
    return parse_query_params(request.query_params.multi_items(), whitelist=settings.hpp_whitelist)
