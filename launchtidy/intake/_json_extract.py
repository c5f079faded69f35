from __future__ import annotations

import json
import re
from typing import Any, List, Optional

_FENCE_OPEN_RE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")
_FENCE_CLOSE_RE = re.compile(r"\n?```\s*$")


def strip_code_fence(text: str) -> str:
    """
    Remove a leading ```lang fence and a trailing ``` fence, if present.
    """
    s = text.strip()
    if not s.startswith("```"):
        return s
    s = _FENCE_OPEN_RE.sub("", s, count=1)
    s = _FENCE_CLOSE_RE.sub("", s, count=1)
    return s.strip()


def extract_first_json_array(text: str) -> Optional[List[Any]]:
    """
    Best-effort extraction of the first JSON array from a text response.

    Many LLM APIs return a text blob even when instructed to output JSON only.
    This helper attempts to locate and parse the first JSON array.
    """
    if not isinstance(text, str) or not text:
        return None

    dec = json.JSONDecoder()
    # Try raw_decode at each '[' occurrence.
    for i, ch in enumerate(text):
        if ch != "[":
            continue
        try:
            obj, _end = dec.raw_decode(text[i:])
        except json.JSONDecodeError:
            continue
        if isinstance(obj, list):
            return obj
    return None
