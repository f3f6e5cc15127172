"""Tests for deterministic technology hints."""

from __future__ import annotations

import json

from stacktutor.analyzers.hints import deduplicate, extract_hints, find_hint
from stacktutor.models import Hint, SnapshotFile


def _package_json() -> SnapshotFile:
    manifest = {
        "dependencies": {"next": "^14.1.0", "react": "18.2.0", "left-pad": "1.0.0"},
        "devDependencies": {"typescript": "~5.3.0", "tailwindcss": "^3.4.0"},
    }
    return SnapshotFile("package.json", "dependency", json.dumps(manifest))


def test_package_json_hints_use_display_names_and_clean_versions() -> None:
    hints = {hint.name: hint for hint in extract_hints([_package_json()])}

    assert set(hints) == {"Next.js", "React", "TypeScript", "Tailwind CSS"}
    assert hints["Next.js"].version == "14.1.0"
    assert hints["Next.js"].confidence == 0.9
    assert hints["Tailwind CSS"].confidence == 0.8
    assert hints["Tailwind CSS"].category == "styling"
    assert all(hint.source == "package.json" for hint in hints.values())


def test_config_file_hint_outranks_dev_dependency() -> None:
    files = [_package_json(), SnapshotFile("tsconfig.json", "build_config", "{}")]

    typescript = find_hint(extract_hints(files), "typescript")

    assert typescript is not None
    assert typescript.confidence == 0.99
    assert typescript.source == "tsconfig.json"


def test_python_manifests_add_language_and_frameworks() -> None:
    files = [SnapshotFile("requirements.txt", "dependency", "Django==4.2.1\nrequests>=2\n")]

    names = {hint.name: hint for hint in extract_hints(files)}

    assert set(names) == {"Python", "Django"}
    assert names["Django"].version == "4.2.1"


def test_files_without_content_contribute_nothing() -> None:
    assert extract_hints([SnapshotFile("package.json", "dependency", None)]) == []


def test_deduplicate_is_case_insensitive() -> None:
    hints = [
        Hint(name="react", category="framework", confidence=0.5, source="a"),
        Hint(name="React", category="framework", confidence=0.9, source="b"),
    ]
    assert [hint.source for hint in deduplicate(hints)] == ["b"]


def test_find_hint_misses_unknown_names() -> None:
    assert find_hint([], "Next.js") is None
