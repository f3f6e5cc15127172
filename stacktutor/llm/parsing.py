"""Extraction of structured payloads from free-text model replies."""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from ..errors import ResponseParseError

_FENCE = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n?(.*?)```", re.DOTALL)
_DECODER = json.JSONDecoder()


def clean_payload(text: str) -> str:
    """Strip literal-block wrapping and surrounding prose from a reply.

    Returns the text of the JSON value the reply carries. A fenced block is
    preferred when present. Inside it, the first decodable object and the
    first decodable array are located and the longer one wins, so a stray
    ``[1]`` in leading prose never shadows the real payload.
    """
    cleaned = (text or "").strip()
    fenced = _FENCE.search(cleaned)
    if fenced:
        cleaned = fenced.group(1).strip()
    elif cleaned.startswith("```"):
        # Unterminated fence from a truncated reply.
        cleaned = re.sub(r"^```[A-Za-z0-9_-]*", "", cleaned).strip()

    span = _first_json_span(cleaned)
    if span is None:
        return cleaned
    start, end = span
    return cleaned[start:end]


def _first_json_span(text: str) -> Optional[tuple[int, int]]:
    spans = [span for span in (_first_decodable(text, "{"), _first_decodable(text, "[")) if span]
    if not spans:
        return None
    return max(spans, key=lambda span: span[1] - span[0])


def _first_decodable(text: str, opener: str) -> Optional[tuple[int, int]]:
    index = text.find(opener)
    while index != -1:
        try:
            _, end = _DECODER.raw_decode(text, index)
        except json.JSONDecodeError:
            index = text.find(opener, index + 1)
            continue
        return index, end
    return None


def load_payload(text: str, *, backend: Optional[str] = None) -> Any:
    """Parse the structured payload carried by a reply or raise ResponseParseError."""
    cleaned = clean_payload(text)
    if not cleaned:
        raise ResponseParseError("empty reply", excerpt=text or "", backend=backend)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ResponseParseError(f"invalid JSON: {exc.msg}", excerpt=text, backend=backend) from exc


__all__ = ["clean_payload", "load_payload"]
