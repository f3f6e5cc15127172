"""Tests for architecture pattern detection."""

from __future__ import annotations

from stacktutor.analyzers.patterns import PatternContext, build_context, detect_patterns
from stacktutor.models import SnapshotFile


def _context(paths=(), dependencies=(), sources=(), workspaces=False) -> PatternContext:
    return PatternContext(
        paths=frozenset(paths),
        dependencies=frozenset(dependencies),
        sources=tuple(sources),
        workspaces=workspaces,
    )


def test_empty_context_has_no_patterns() -> None:
    assert detect_patterns(_context()) == []


def test_app_router_and_server_components() -> None:
    context = _context(
        paths={"app/layout.tsx", "app/page.tsx"},
        dependencies={"next", "react"},
        sources=[
            ("app/page.tsx", "export default function Page() { return <main/>; }"),
            ("app/counter.tsx", '"use client"\nexport function Counter() {}'),
        ],
    )

    tags = detect_patterns(context)

    assert "next-app-router" in tags
    assert "next-pages-router" not in tags
    assert "server-components" in tags
    assert "use-client" in tags


def test_pages_router_requires_missing_app_layout() -> None:
    context = _context(paths={"pages/_app.tsx"}, dependencies={"next"})
    assert detect_patterns(context) == ["next-pages-router"]


def test_single_and_multiple_llm_packages() -> None:
    assert "llm-integration" in detect_patterns(_context(dependencies={"openai"}))
    tags = detect_patterns(_context(dependencies={"openai", "@anthropic-ai/sdk"}))
    assert "multi-llm" in tags
    assert "llm-integration" not in tags


def test_byok_encryption_needs_llm_dependency() -> None:
    source = [("lib/crypto.ts", "const cipher = createCipheriv('aes-256-gcm', key, iv);")]
    assert "byok-encryption" not in detect_patterns(_context(sources=source))
    assert "byok-encryption" in detect_patterns(_context(dependencies={"openai"}, sources=source))


def test_result_is_sorted_and_unique() -> None:
    context = _context(
        dependencies={"tailwindcss", "@supabase/supabase-js", "vitest", "stripe"},
        workspaces=True,
    )
    tags = detect_patterns(context)
    assert tags == sorted(set(tags))
    assert tags == [
        "monorepo",
        "stripe-integration",
        "supabase-auth",
        "supabase-db",
        "tailwind-css",
        "vitest-testing",
    ]


def test_build_context_only_reads_source_files() -> None:
    files = [
        SnapshotFile("./middleware.ts", "source_code", "export function middleware() {}"),
        SnapshotFile("CLAUDE.md", "ai_config", "Use 'use client' sparingly"),
        SnapshotFile("app/layout.tsx", "source_code", None),
    ]

    context = build_context(files, ["next"])

    assert context.paths == frozenset({"middleware.ts", "CLAUDE.md", "app/layout.tsx"})
    assert [path for path, _ in context.sources] == ["middleware.ts"]
    tags = detect_patterns(context)
    assert "middleware-auth" in tags
    assert "use-client" not in tags
    assert "next-app-router" in tags
