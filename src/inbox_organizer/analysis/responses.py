"""Tolerant parsing of structured LLM responses.

Models asked for "just JSON" still wrap it in code fences or prose. These
helpers recover the first JSON array/object and raise `ValueError` when none
can be found, so every call site has one failure branch to fall back from.
"""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_JSON_ARRAY_RE = re.compile(r"\[.*\]", re.S)
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.S)


def _load(raw: str, pattern: re.Pattern[str], kind: type) -> Any:
    raw = _FENCE_RE.sub("", (raw or "").strip()).strip()
    if not raw:
        raise ValueError("empty model response")

    # Fast path: direct JSON.
    try:
        obj = json.loads(raw)
    except json.JSONDecodeError:
        obj = None
    if isinstance(obj, kind):
        return obj

    m = pattern.search(raw)
    if not m:
        raise ValueError(f"model response did not contain a JSON {kind.__name__}")

    try:
        obj = json.loads(m.group(0))
    except json.JSONDecodeError as exc:
        raise ValueError(f"model response JSON is malformed: {exc}") from exc
    if not isinstance(obj, kind):
        raise ValueError(f"extracted JSON was not a {kind.__name__}")
    return obj


def extract_json_array(raw: str) -> list[Any]:
    """Extract the first JSON array from a raw model response."""

    return _load(raw, _JSON_ARRAY_RE, list)


def extract_json_object(raw: str) -> dict[str, Any]:
    """Extract the first JSON object from a raw model response."""

    return _load(raw, _JSON_OBJECT_RE, dict)
