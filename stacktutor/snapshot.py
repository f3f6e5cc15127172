"""File classification and local directory snapshot building."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterator, List, Sequence

from .logging import get_logger
from .models import Snapshot, SnapshotFile

logger = get_logger("snapshot")

DEPENDENCY_FILES = frozenset(
    {
        "package.json",
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "requirements.txt",
        "Pipfile",
        "pyproject.toml",
        "setup.py",
        "Cargo.toml",
        "go.mod",
        "Gemfile",
        "composer.json",
        "build.gradle",
        "pom.xml",
    }
)

AI_CONFIG_FILES = frozenset(
    {
        "CLAUDE.md",
        ".cursorrules",
        ".windsurfrules",
        "CONVENTIONS.md",
        ".codex",
        ".gemini",
        "AGENTS.md",
    }
)

BUILD_CONFIG_FILES = frozenset(
    {
        "tsconfig.json",
        "next.config.js",
        "next.config.mjs",
        "next.config.ts",
        "vite.config.ts",
        "vite.config.js",
        "webpack.config.js",
        "tailwind.config.js",
        "tailwind.config.ts",
        "postcss.config.js",
        "postcss.config.mjs",
        ".eslintrc.json",
        ".eslintrc.js",
        "eslint.config.js",
        "eslint.config.mjs",
        ".prettierrc",
        "Dockerfile",
        "docker-compose.yml",
        "docker-compose.yaml",
        "vercel.json",
        "netlify.toml",
        "drizzle.config.ts",
        "prisma/schema.prisma",
    }
)

SOURCE_EXTENSIONS = frozenset(
    {
        ".ts",
        ".tsx",
        ".js",
        ".jsx",
        ".mjs",
        ".cjs",
        ".py",
        ".rs",
        ".go",
        ".java",
        ".kt",
        ".rb",
        ".php",
        ".vue",
        ".svelte",
        ".astro",
    }
)

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".next",
    ".turbo",
    "dist",
    "build",
    "coverage",
    ".idea",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}


def classify_file(path: str) -> str:
    """Return the declared type for a project-relative path.

    Exact basename matches win over extension checks, so ``package.json``
    is a dependency manifest even though it also looks like plain JSON.
    """
    normalized = path.replace("\\", "/")
    basename = normalized.rsplit("/", 1)[-1]
    if basename in DEPENDENCY_FILES:
        return "dependency"
    if basename in AI_CONFIG_FILES:
        return "ai_config"
    if basename in BUILD_CONFIG_FILES or normalized in BUILD_CONFIG_FILES:
        return "build_config"
    suffix = os.path.splitext(basename)[1].lower()
    if suffix in SOURCE_EXTENSIONS:
        return "source_code"
    return "other"


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or configuration."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            return self.directory_only and rel_path.startswith(f"{self.pattern}/")

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.exists():
        return []

    rules: List[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8", errors="ignore").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


class SnapshotBuilder:
    """Walks a local directory and produces an immutable Snapshot."""

    def __init__(
        self,
        *,
        max_file_bytes: int = 200_000,
        exclude_paths: Sequence[str] = (),
    ) -> None:
        self.max_file_bytes = max_file_bytes
        self.exclude_paths = list(exclude_paths)

    def build(self, root: str | Path, *, project_name: str | None = None) -> Snapshot:
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Project path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Project path is not a directory: {root}")

        rules = _parse_gitignore(root_path / ".gitignore")
        for pattern in self.exclude_paths:
            rule = build_ignore_rule(pattern)
            if rule is not None:
                rules.append(rule)

        files: List[SnapshotFile] = []
        for path in sorted(self._iter_files(root_path, rules)):
            rel_path = path.relative_to(root_path).as_posix()
            declared_type = classify_file(rel_path)
            if declared_type == "other":
                continue
            files.append(SnapshotFile(rel_path, declared_type, self._read(path, rel_path)))

        logger.debug("Snapshot of %s contains %d files", root_path, len(files))
        return Snapshot(project_name=project_name or root_path.name, files=tuple(files))

    def _read(self, path: Path, rel_path: str) -> str | None:
        try:
            size = path.stat().st_size
            if size > self.max_file_bytes:
                logger.debug("Skipping content of %s (%d bytes exceeds cap)", rel_path, size)
                return None
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Unable to read %s: %s", rel_path, exc)
            return None

    @staticmethod
    def _iter_files(root: Path, rules: Sequence[IgnoreRule]) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(root):
            current_dir = Path(dirpath)
            rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

            kept_dirs = []
            for name in dirnames:
                if name in _EXCLUDED_DIRS:
                    continue
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                if _should_ignore(rel_path, True, rules):
                    continue
                kept_dirs.append(name)
            dirnames[:] = kept_dirs

            for filename in filenames:
                if filename in _EXCLUDED_FILES:
                    continue
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if _should_ignore(rel_path, False, rules):
                    continue
                yield current_dir / filename


__all__ = [
    "AI_CONFIG_FILES",
    "BUILD_CONFIG_FILES",
    "DEPENDENCY_FILES",
    "SOURCE_EXTENSIONS",
    "IgnoreRule",
    "SnapshotBuilder",
    "build_ignore_rule",
    "classify_file",
]
