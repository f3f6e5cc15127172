"""Architecture pattern tags derived from file presence, dependencies, and source text."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, FrozenSet, List, Sequence, Set, Tuple

from ..models import SnapshotFile
from .routes import normalize_path

LLM_PACKAGES: Tuple[str, ...] = (
    "@anthropic-ai/sdk",
    "openai",
    "@google/generative-ai",
    "groq-sdk",
    "@mistralai/mistralai",
    "ai",
    "@ai-sdk/core",
    "anthropic",
    "cohere",
)

_APP_LAYOUTS = ("app/layout.tsx", "app/layout.ts", "app/layout.jsx", "app/layout.js")
_PAGES_APPS = ("pages/_app.tsx", "pages/_app.js")
_CLIENT_MARKERS = ('"use client"', "'use client'")
_SERVER_MARKERS = ('"use server"', "'use server'")
_ENCRYPTION_MARKERS = ("aes-256-gcm", "AES-GCM", "createCipheriv")
_API_KEY_MARKERS = ("x-api-key", "X-API-Key", "authorization", "Authorization")
_DARK_MODE_MARKERS = ("dark:", "darkMode", "dark-mode", 'class="dark"')
_RESPONSIVE_MARKERS = ("sm:", "md:", "lg:", "@media")


@dataclass
class PatternContext:
    """Inputs shared by every pattern predicate."""

    paths: FrozenSet[str]
    dependencies: FrozenSet[str]
    sources: Sequence[Tuple[str, str]] = field(default_factory=tuple)
    workspaces: bool = False

    def has_file(self, *candidates: str) -> bool:
        return any(candidate in self.paths for candidate in candidates)

    def has_dependency(self, *names: str) -> bool:
        return any(name in self.dependencies for name in names)

    def any_source(self, predicate: Callable[[str, str], bool]) -> bool:
        return any(predicate(path, content) for path, content in self.sources)

    def any_marker(self, markers: Sequence[str]) -> bool:
        return any(marker in content for _, content in self.sources for marker in markers)

    @property
    def llm_packages(self) -> List[str]:
        return [name for name in LLM_PACKAGES if name in self.dependencies]


def _contains_any(content: str, markers: Sequence[str]) -> bool:
    return any(marker in content for marker in markers)


def _is_server_component(path: str, content: str) -> bool:
    return (
        path.startswith("app/")
        and path.endswith((".tsx", ".jsx"))
        and not _contains_any(content, _CLIENT_MARKERS)
    )


def _is_api_key_guard(path: str, content: str) -> bool:
    return ("middleware" in path or "api/" in path) and _contains_any(content, _API_KEY_MARKERS)


def _is_auth_middleware(path: str, _content: str) -> bool:
    return path in ("middleware.ts", "middleware.js") or "server/middleware/" in path


PatternRule = Tuple[str, Callable[[PatternContext], bool]]

PATTERN_RULES: Tuple[PatternRule, ...] = (
    ("next-app-router", lambda ctx: ctx.has_file(*_APP_LAYOUTS)),
    (
        "next-pages-router",
        lambda ctx: ctx.has_dependency("next")
        and not ctx.has_file(*_APP_LAYOUTS)
        and ctx.has_file(*_PAGES_APPS),
    ),
    ("use-client", lambda ctx: ctx.any_marker(_CLIENT_MARKERS)),
    ("server-components", lambda ctx: ctx.any_source(_is_server_component)),
    ("server-actions", lambda ctx: ctx.any_marker(_SERVER_MARKERS)),
    (
        "supabase-auth",
        lambda ctx: ctx.has_dependency(
            "@supabase/supabase-js", "@supabase/ssr", "@supabase/auth-helpers-nextjs"
        ),
    ),
    ("next-auth", lambda ctx: ctx.has_dependency("next-auth", "@auth/core")),
    ("clerk-auth", lambda ctx: ctx.has_dependency("@clerk/nextjs", "@clerk/clerk-react")),
    ("stripe-integration", lambda ctx: ctx.has_dependency("stripe", "@stripe/stripe-js")),
    ("multi-llm", lambda ctx: len(ctx.llm_packages) > 1),
    ("llm-integration", lambda ctx: len(ctx.llm_packages) == 1),
    (
        "byok-encryption",
        lambda ctx: bool(ctx.llm_packages) and ctx.any_marker(_ENCRYPTION_MARKERS),
    ),
    ("api-key-auth", lambda ctx: ctx.any_source(_is_api_key_guard)),
    ("middleware-auth", lambda ctx: ctx.any_source(_is_auth_middleware)),
    ("mcp-server", lambda ctx: ctx.has_dependency("@modelcontextprotocol/sdk", "mcp")),
    ("tailwind-css", lambda ctx: ctx.has_dependency("tailwindcss", "@tailwindcss/postcss")),
    ("dark-mode", lambda ctx: ctx.any_marker(_DARK_MODE_MARKERS)),
    ("responsive-design", lambda ctx: ctx.any_marker(_RESPONSIVE_MARKERS)),
    ("supabase-db", lambda ctx: ctx.has_dependency("@supabase/supabase-js", "supabase")),
    ("prisma-orm", lambda ctx: ctx.has_dependency("prisma", "@prisma/client")),
    ("drizzle-orm", lambda ctx: ctx.has_dependency("drizzle-orm")),
    ("sqlalchemy-orm", lambda ctx: ctx.has_dependency("SQLAlchemy", "sqlalchemy")),
    ("vitest-testing", lambda ctx: ctx.has_dependency("vitest")),
    ("jest-testing", lambda ctx: ctx.has_dependency("jest")),
    ("pytest-testing", lambda ctx: ctx.has_dependency("pytest")),
    ("playwright-e2e", lambda ctx: ctx.has_dependency("playwright", "@playwright/test")),
    ("monorepo", lambda ctx: ctx.workspaces),
)


def detect_patterns(context: PatternContext) -> List[str]:
    """Evaluate every rule independently and return the sorted tag set."""
    tags: Set[str] = {name for name, predicate in PATTERN_RULES if predicate(context)}
    return sorted(tags)


def build_context(
    files: Sequence[SnapshotFile],
    dependencies: Sequence[str],
    *,
    workspaces: bool = False,
) -> PatternContext:
    sources = tuple(
        (normalize_path(item.path), item.content)
        for item in files
        if item.declared_type == "source_code" and item.content
    )
    return PatternContext(
        paths=frozenset(normalize_path(item.path) for item in files),
        dependencies=frozenset(dependencies),
        sources=sources,
        workspaces=workspaces,
    )


__all__ = ["LLM_PACKAGES", "PATTERN_RULES", "PatternContext", "build_context", "detect_patterns"]
