"""Builds generation prompts from Jinja2 templates."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..models import (
    DIFFICULTIES,
    IMPORTANCE_LEVELS,
    MODULE_TYPES,
    SECTION_TYPES,
    TECH_CATEGORIES,
    ConceptHint,
    Hint,
    OutlineModule,
    SnapshotFile,
    TechnologyRecord,
)

ANALYSIS_SYSTEM_PROMPT = (
    "You are a technology stack analysis expert. Respond ONLY with valid JSON. "
    "No explanations or markdown."
)

CURRICULUM_SYSTEM_PROMPT = (
    "You are an expert programming instructor. Respond ONLY with valid JSON. "
    "No explanations, no markdown code fences."
)

FILE_EXCERPT_CHARS = 8000
FILE_TRUNCATION_MARKER = "\n... [truncated]"


@dataclass(frozen=True)
class CodeExcerpt:
    path: str
    content: str


def truncate(content: str, limit: int, marker: str = FILE_TRUNCATION_MARKER) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + marker


class PromptBuilder:
    """Renders analysis, curriculum and knowledge prompts."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.templates_dir = templates_dir
        self._env = self._create_env(templates_dir)

    def analysis_prompt(self, files: Sequence[SnapshotFile], hints: Sequence[Hint]) -> str:
        rendered_files = [
            {
                "path": item.path,
                "declared_type": item.declared_type,
                "content": truncate(item.content or "", FILE_EXCERPT_CHARS),
            }
            for item in files
            if item.content
        ]
        return self._render("analysis.j2", files=rendered_files, hints=list(hints))

    def digest_analysis_prompt(self, digest: str, hints: Sequence[Hint]) -> str:
        return self._render("digest_analysis.j2", digest=digest, hints=list(hints))

    def structure_prompt(
        self,
        technologies: Sequence[TechnologyRecord],
        digest: str,
        *,
        level: str = "beginner",
        knowledge: Mapping[str, Sequence[ConceptHint]] | None = None,
    ) -> str:
        return self._render(
            "structure.j2",
            technologies=list(technologies),
            digest=digest,
            level=level,
            knowledge=dict(knowledge or {}),
        )

    def content_batch_prompt(
        self,
        tech_name: str,
        modules: Sequence[OutlineModule],
        code: Iterable[CodeExcerpt],
        *,
        level: str = "beginner",
        concepts: Sequence[ConceptHint] = (),
    ) -> str:
        return self._render(
            "content_batch.j2",
            tech_name=tech_name,
            modules=list(modules),
            code=list(code),
            level=level,
            concepts=list(concepts),
        )

    def knowledge_prompt(self, tech_name: str, version: Optional[str] = None) -> str:
        return self._render("knowledge.j2", tech_name=tech_name, version=version)

    def _render(self, template_name: str, **context: object) -> str:
        template = self._env.get_template(template_name)
        return template.render(**self._globals(), **context).strip() + "\n"

    @staticmethod
    def _globals() -> Dict[str, object]:
        return {
            "categories": TECH_CATEGORIES,
            "importance_levels": IMPORTANCE_LEVELS,
            "module_types": MODULE_TYPES,
            "difficulties": DIFFICULTIES,
            "section_types": SECTION_TYPES,
        }

    @staticmethod
    def _create_env(templates_dir: Path | None) -> Environment:
        directories: List[str] = []
        if templates_dir:
            directories.append(str(templates_dir))
        default_dir = str(Path(__file__).with_name("templates"))
        if default_dir not in directories:
            directories.append(default_dir)
        return Environment(
            loader=FileSystemLoader(directories),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )


__all__ = [
    "ANALYSIS_SYSTEM_PROMPT",
    "CURRICULUM_SYSTEM_PROMPT",
    "CodeExcerpt",
    "PromptBuilder",
    "truncate",
]
