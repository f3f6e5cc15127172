"""Tests for payload extraction from free-text replies."""

from __future__ import annotations

import pytest

from stacktutor.errors import ResponseParseError
from stacktutor.llm.parsing import clean_payload, load_payload


def test_prose_before_fenced_block() -> None:
    reply = (
        "Sure! Here is the analysis you asked for [1]:\n\n"
        "```json\n"
        '{"technologies": [{"name": "React"}], "architecture_summary": "SPA"}\n'
        "```\n"
        "Let me know if you need more."
    )
    assert load_payload(reply) == {"technologies": [{"name": "React"}], "architecture_summary": "SPA"}


def test_unfenced_object_inside_prose() -> None:
    assert load_payload('The answer is {"a": [1, 2]} as requested.') == {"a": [1, 2]}


def test_longer_array_wins_over_stray_object() -> None:
    text = 'note {"x": 1} then [{"module_title": "A"}, {"module_title": "B"}]'
    assert clean_payload(text) == '[{"module_title": "A"}, {"module_title": "B"}]'


def test_unterminated_fence_from_truncated_reply() -> None:
    assert load_payload('```json\n{"ok": true}') == {"ok": True}


def test_empty_reply_raises() -> None:
    with pytest.raises(ResponseParseError, match="empty reply"):
        load_payload("   ", backend="openai")


def test_invalid_payload_keeps_excerpt() -> None:
    with pytest.raises(ResponseParseError) as excinfo:
        load_payload("no json here at all", backend="anthropic")
    assert excinfo.value.backend == "anthropic"
    assert excinfo.value.excerpt == "no json here at all"
    assert excinfo.value.kind == "malformed_response"
