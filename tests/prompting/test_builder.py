"""Tests for the prompt builder."""

from __future__ import annotations

from pathlib import Path

from stacktutor.models import ConceptHint, Hint, OutlineModule, SnapshotFile, TechnologyRecord
from stacktutor.prompting.builder import CodeExcerpt, PromptBuilder, truncate


def _hints() -> list[Hint]:
    return [Hint(name="Next.js", category="framework", confidence=0.9, source="package.json", version="14.1.0")]


def test_analysis_prompt_lists_files_and_hints() -> None:
    files = [
        SnapshotFile("package.json", "dependency", '{"dependencies": {"next": "14.1.0"}}'),
        SnapshotFile("app/big.tsx", "source_code", "x" * 9000),
        SnapshotFile("app/empty.tsx", "source_code", None),
    ]

    prompt = PromptBuilder().analysis_prompt(files, _hints())

    assert "- Next.js v14.1.0 (source: package.json, confidence: 0.9)" in prompt
    assert "### File: package.json (type: dependency)" in prompt
    assert "... [truncated]" in prompt
    assert "app/empty.tsx" not in prompt
    assert "framework | language | database" in prompt


def test_digest_prompt_embeds_digest_without_hints() -> None:
    prompt = PromptBuilder().digest_analysis_prompt("# Project Digest: demo\n", [])

    assert "No hints detected." in prompt
    assert "# Project Digest: demo" in prompt
    assert "detectable from the digest" in prompt


def test_structure_prompt_carries_level_and_knowledge() -> None:
    technologies = [
        TechnologyRecord(
            project_id="p",
            name="React",
            category="framework",
            importance="core",
            confidence=0.9,
            version="18.2.0",
            description="UI library",
        )
    ]
    knowledge = {"React": [ConceptHint("hooks", "Hooks", ["useState"])]}

    prompt = PromptBuilder().structure_prompt(technologies, "digest text", level="advanced", knowledge=knowledge)

    assert "**Experience Level:** advanced" in prompt
    assert "- **React** (framework, core) v18.2.0: UI library" in prompt
    assert "   - React: Hooks" in prompt
    assert "Cover edge cases, internals, and optimization strategies" in prompt


def test_content_batch_prompt_lists_modules_and_code() -> None:
    modules = [
        OutlineModule(
            title="State with hooks",
            description="Local state",
            module_type="practical",
            tech_name="React",
            objectives=["useState", "useEffect"],
        )
    ]

    prompt = PromptBuilder().content_batch_prompt(
        "React",
        modules,
        [CodeExcerpt("src/App.tsx", "const [n, setN] = useState(0);")],
        concepts=[ConceptHint("hooks", "Hooks", ["state", "effects"])],
    )

    assert "learning **React**" in prompt
    assert "### State with hooks" in prompt
    assert "- Learning objectives: useState; useEffect" in prompt
    assert "### src/App.tsx" in prompt
    assert "- **Hooks**: state; effects" in prompt


def test_content_batch_prompt_without_code() -> None:
    prompt = PromptBuilder().content_batch_prompt("Go", [], [])
    assert "(no source files available)" in prompt
    assert "Reference Concepts" not in prompt


def test_custom_templates_override_defaults(tmp_path: Path) -> None:
    (tmp_path / "knowledge.j2").write_text("Concepts for {{ tech_name }} {{ version }}", encoding="utf-8")

    builder = PromptBuilder(templates_dir=tmp_path)

    assert builder.knowledge_prompt("Prisma", "5.0") == "Concepts for Prisma 5.0\n"
    assert "Generate 5-7 core educational concepts for **Prisma**" in PromptBuilder().knowledge_prompt("Prisma")


def test_truncate() -> None:
    assert truncate("abc", 5) == "abc"
    assert truncate("abcdef", 3, marker="~") == "abc~"
