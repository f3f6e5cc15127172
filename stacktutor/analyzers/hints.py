"""Deterministic technology hints derived from manifests and config files."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from ..logging import get_logger
from ..models import Hint, SnapshotFile
from .manifests import clean_version, parse_manifest

logger = get_logger("analyzers.hints")

RUNTIME_CONFIDENCE = 0.9
DEV_CONFIDENCE = 0.8

NPM_HINTS: Dict[str, Tuple[str, str]] = {
    "next": ("Next.js", "framework"),
    "react": ("React", "framework"),
    "react-dom": ("React DOM", "framework"),
    "vue": ("Vue.js", "framework"),
    "nuxt": ("Nuxt.js", "framework"),
    "svelte": ("Svelte", "framework"),
    "angular": ("Angular", "framework"),
    "express": ("Express.js", "framework"),
    "fastify": ("Fastify", "framework"),
    "tailwindcss": ("Tailwind CSS", "styling"),
    "@supabase/supabase-js": ("Supabase", "database"),
    "prisma": ("Prisma", "database"),
    "@prisma/client": ("Prisma", "database"),
    "drizzle-orm": ("Drizzle ORM", "database"),
    "mongoose": ("MongoDB (Mongoose)", "database"),
    "next-auth": ("NextAuth.js", "auth"),
    "@clerk/nextjs": ("Clerk", "auth"),
    "stripe": ("Stripe", "library"),
    "typescript": ("TypeScript", "language"),
    "jest": ("Jest", "testing"),
    "vitest": ("Vitest", "testing"),
    "playwright": ("Playwright", "testing"),
    "@playwright/test": ("Playwright", "testing"),
    "cypress": ("Cypress", "testing"),
    "webpack": ("Webpack", "build_tool"),
    "vite": ("Vite", "build_tool"),
    "esbuild": ("esbuild", "build_tool"),
    "eslint": ("ESLint", "build_tool"),
    "prettier": ("Prettier", "build_tool"),
}

PYTHON_HINTS: Dict[str, Tuple[str, str]] = {
    "django": ("Django", "framework"),
    "flask": ("Flask", "framework"),
    "fastapi": ("FastAPI", "framework"),
    "sqlalchemy": ("SQLAlchemy", "database"),
    "pytest": ("pytest", "testing"),
    "numpy": ("NumPy", "library"),
    "pandas": ("Pandas", "library"),
    "tensorflow": ("TensorFlow", "library"),
    "torch": ("PyTorch", "library"),
}

# (basename prefix, exact match?) -> hint template
FILE_HINTS: Tuple[Tuple[str, bool, str, str, float], ...] = (
    ("tsconfig.json", True, "TypeScript", "language", 0.99),
    ("next.config", False, "Next.js", "framework", 0.99),
    ("vite.config", False, "Vite", "build_tool", 0.99),
    ("Dockerfile", True, "Docker", "deploy", 0.95),
    ("docker-compose.yml", True, "Docker", "deploy", 0.95),
    ("docker-compose.yaml", True, "Docker", "deploy", 0.95),
    ("vercel.json", True, "Vercel", "deploy", 0.95),
    ("netlify.toml", True, "Netlify", "deploy", 0.95),
    ("Cargo.toml", True, "Rust", "language", 0.99),
    ("go.mod", True, "Go", "language", 0.99),
)


def _npm_hint(name: str, version: str, is_dev: bool, source: str) -> Optional[Hint]:
    mapping = NPM_HINTS.get(name)
    if mapping is None:
        return None
    display, category = mapping
    return Hint(
        name=display,
        category=category,
        confidence=DEV_CONFIDENCE if is_dev else RUNTIME_CONFIDENCE,
        source=source,
        version=clean_version(version) or None,
    )


def _python_hint(name: str, version: str, source: str) -> Optional[Hint]:
    mapping = PYTHON_HINTS.get(name.lower())
    if mapping is None:
        return None
    display, category = mapping
    return Hint(
        name=display,
        category=category,
        confidence=RUNTIME_CONFIDENCE,
        source=source,
        version=None if version in ("", "*") else version,
    )


def hints_for_file(item: SnapshotFile) -> List[Hint]:
    """Return the raw (undeduplicated) hints contributed by one file."""
    if not item.content:
        return []
    basename = item.basename
    hints: List[Hint] = []

    if item.declared_type == "dependency" and basename == "package.json":
        for dep in parse_manifest(basename, item.content).dependencies:
            hint = _npm_hint(dep.name, dep.version, dep.is_dev, basename)
            if hint is not None:
                hints.append(hint)

    if basename in ("requirements.txt", "pyproject.toml"):
        hints.append(Hint(name="Python", category="language", confidence=0.95, source=basename))
        for dep in parse_manifest(basename, item.content).dependencies:
            hint = _python_hint(dep.name, dep.version, basename)
            if hint is not None:
                hints.append(hint)

    for prefix, exact, display, category, confidence in FILE_HINTS:
        if (basename == prefix) if exact else basename.startswith(prefix):
            hints.append(Hint(name=display, category=category, confidence=confidence, source=basename))

    return hints


def deduplicate(hints: Iterable[Hint]) -> List[Hint]:
    """Keep one hint per case-insensitive name, preferring the highest confidence."""
    seen: Dict[str, Hint] = {}
    for hint in hints:
        key = hint.name.lower()
        existing = seen.get(key)
        if existing is None or hint.confidence > existing.confidence:
            seen[key] = hint
    return list(seen.values())


def extract_hints(files: Iterable[SnapshotFile]) -> List[Hint]:
    collected: List[Hint] = []
    for item in files:
        try:
            collected.extend(hints_for_file(item))
        except Exception as exc:  # pragma: no cover - parsers are tolerant already
            logger.debug("Hint extraction failed for %s: %s", item.path, exc)
    return deduplicate(collected)


def find_hint(hints: Iterable[Hint], name: str) -> Optional[Hint]:
    """Return the hint whose name matches case-insensitively, if any."""
    lowered = name.strip().lower()
    for hint in hints:
        if hint.name.lower() == lowered:
            return hint
    return None


__all__ = [
    "FILE_HINTS",
    "NPM_HINTS",
    "PYTHON_HINTS",
    "deduplicate",
    "extract_hints",
    "find_hint",
    "hints_for_file",
]
