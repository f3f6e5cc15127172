"""Tests for curriculum and knowledge reply validation."""

from __future__ import annotations

import json

import pytest

from stacktutor.errors import ResponseParseError
from stacktutor.validators.curriculum import (
    extract_item_array,
    normalize_title,
    parse_content_batch,
    parse_structure,
    validate_concepts,
    validate_section,
)


def test_structure_defaults_and_dropped_modules() -> None:
    reply = json.dumps(
        {
            "title": "Learn the stack",
            "difficulty": "expert",
            "estimated_hours": 6,
            "modules": [
                {
                    "title": "Routing basics",
                    "module_type": "lecture",
                    "tech_name": "Next.js",
                    "relevant_files": ["app/page.tsx", 3],
                    "learning_objectives": ["Understand layouts"],
                    "estimated_minutes": 30,
                },
                {"description": "no title"},
                "bogus",
            ],
        }
    )

    structure = parse_structure(reply, requested_difficulty="intermediate")

    assert structure.difficulty == "intermediate"
    assert structure.estimated_hours == 6.0
    assert len(structure.modules) == 1
    module = structure.modules[0]
    assert module.module_type == "concept"
    assert module.relevant_files == ["app/page.tsx"]
    assert module.objectives == ["Understand layouts"]
    assert module.estimated_minutes == 30


@pytest.mark.parametrize("number", ["1e400", "-1e400", "NaN", "Infinity"])
def test_structure_drops_non_finite_numbers(number: str) -> None:
    reply = (
        '{"title": "T", "estimated_hours": ' + number + ', '
        '"modules": [{"title": "M", "tech_name": "A", "estimated_minutes": ' + number + "}]}"
    )

    structure = parse_structure(reply)

    assert structure.estimated_hours is None
    assert [module.title for module in structure.modules] == ["M"]
    assert structure.modules[0].estimated_minutes is None


def test_structure_hours_too_large_for_a_float() -> None:
    huge = "1" + "0" * 400
    reply = '{"title": "T", "estimated_hours": ' + huge + ', "modules": [{"title": "M", "tech_name": "A"}]}'

    assert parse_structure(reply).estimated_hours is None


def test_structure_without_modules_is_a_parse_error() -> None:
    with pytest.raises(ResponseParseError):
        parse_structure('{"title": "x", "modules": [{"description": "untitled"}]}')
    with pytest.raises(ResponseParseError):
        parse_structure("I cannot help with that.")


def test_content_batch_accepts_wrapped_or_bare_arrays() -> None:
    item = {
        "module_title": "Routing basics",
        "content": {"sections": [{"type": "explanation", "title": "Intro", "body": "Pages live in app/."}]},
    }
    wrapped = parse_content_batch(json.dumps({"modules": [item]}))
    bare = parse_content_batch(json.dumps([{"module_title": "Hooks", "sections": [{"body": "useState"}]}]))

    assert wrapped[0].module_title == "Routing basics"
    assert wrapped[0].sections[0].title == "Intro"
    assert bare[0].sections[0].type == "explanation"


def test_content_batch_without_array_is_a_parse_error() -> None:
    with pytest.raises(ResponseParseError):
        parse_content_batch('{"title": "nothing here"}')


def test_quiz_answer_must_index_an_option() -> None:
    section = validate_section(
        {"type": "quiz_question", "title": "Q", "body": "Pick", "quiz_options": ["a", "b"], "quiz_answer": 2}
    )
    assert section is not None
    assert section.quiz_options == ["a", "b"]
    assert section.quiz_answer is None

    valid = validate_section({"type": "quiz_question", "body": "Pick", "quiz_options": ["a", "b"], "quiz_answer": 1})
    assert valid.quiz_answer == 1
    assert validate_section({"type": "explanation"}) is None


def test_concepts_require_key_name_and_points() -> None:
    concepts = validate_concepts(
        {
            "concepts": [
                {"concept_key": "Hooks", "concept_name": "Hooks", "key_points": ["useState"], "tags": ["React"]},
                {"concept_key": "hooks", "concept_name": "Dup", "key_points": ["x"]},
                {"concept_key": "empty", "concept_name": "Empty", "key_points": []},
            ]
        }
    )
    assert [(concept.concept_key, concept.tags) for concept in concepts] == [("hooks", ["react"])]


def test_helpers() -> None:
    assert normalize_title("  Intro   to\tHooks ") == "intro to hooks"
    assert extract_item_array({"meta": 1, "items": [1]}) == [1]
    assert extract_item_array("nope") is None
