"""Import/require extraction and classification for source files."""

from __future__ import annotations

import re
from collections import Counter
from typing import Iterable, List, Optional, Sequence, Tuple

from ..models import ImportEdge, SnapshotFile

FRAMEWORK_PACKAGES = frozenset(
    {
        "next",
        "react",
        "react-dom",
        "vue",
        "nuxt",
        "svelte",
        "@sveltejs/kit",
        "@remix-run/react",
        "astro",
        "express",
        "fastify",
        "hono",
        "@nestjs/core",
        "@angular/core",
        "django",
        "flask",
        "fastapi",
    }
)

INTERNAL_PREFIXES: Tuple[str, ...] = ("./", "../", "@/", "~/")

_ES_IMPORT = re.compile(r"""import\s+(?:type\s+)?(?:[^"';]*?\s+from\s+)?["']([^"']+)["']""")
_REQUIRE = re.compile(r"""require\s*\(\s*["']([^"']+)["']\s*\)""")
_PY_IMPORT = re.compile(r"^\s*import\s+([A-Za-z_][\w.]*(?:\s*,\s*[A-Za-z_][\w.]*)*)", re.MULTILINE)
_PY_FROM = re.compile(r"^\s*from\s+(\.*[A-Za-z_][\w.]*|\.+)\s+import\s", re.MULTILINE)

_SCRIPT_SUFFIXES = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".vue", ".svelte", ".astro")


def extract_specifiers(content: str, *, path: str = "") -> List[str]:
    """Return module specifiers referenced by a source file, in textual order."""
    if path.endswith(".py"):
        return _python_specifiers(content)
    found: List[str] = []
    for pattern in (_ES_IMPORT, _REQUIRE):
        found.extend(match.group(1) for match in pattern.finditer(content))
    return found


def _python_specifiers(content: str) -> List[str]:
    found: List[str] = []
    for match in _PY_IMPORT.finditer(content):
        found.extend(part.strip() for part in match.group(1).split(","))
    for match in _PY_FROM.finditer(content):
        module = match.group(1)
        # Relative imports are normalised to the "./" convention.
        found.append(f"./{module.lstrip('.')}" if module.startswith(".") else module)
    return found


def package_name(specifier: str) -> str:
    """Reduce an external specifier to its package name.

    Scoped packages keep the ``@scope/name`` pair; dotted Python modules
    reduce to their top-level package.
    """
    if specifier.startswith("@"):
        return "/".join(specifier.split("/")[:2])
    head = specifier.split("/", 1)[0]
    if "." in head and not head.startswith("."):
        head = head.split(".", 1)[0]
    return head


def is_internal(specifier: str) -> bool:
    return specifier.startswith(INTERNAL_PREFIXES) or specifier.startswith("/")


def classify_imports(path: str, content: str) -> Optional[ImportEdge]:
    """Return the import edge for one file, or None when it imports nothing."""
    specifiers = extract_specifiers(content, path=path)
    if not specifiers:
        return None

    frameworks: List[str] = []
    libraries: List[str] = []
    internal: List[str] = []
    for specifier in specifiers:
        if is_internal(specifier):
            _append_unique(internal, specifier)
            continue
        name = package_name(specifier)
        if not name:
            continue
        if name in FRAMEWORK_PACKAGES:
            _append_unique(frameworks, name)
        else:
            _append_unique(libraries, name)

    return ImportEdge(
        file=path,
        frameworks=tuple(sorted(frameworks)),
        libraries=tuple(sorted(libraries)),
        internal=tuple(sorted(internal)),
    )


def build_import_graph(files: Iterable[SnapshotFile]) -> List[ImportEdge]:
    edges: List[ImportEdge] = []
    for item in files:
        if item.declared_type != "source_code" or not item.content:
            continue
        if not item.path.endswith(_SCRIPT_SUFFIXES + (".py",)):
            continue
        edge = classify_imports(item.path, item.content)
        if edge is not None:
            edges.append(edge)
    return edges


def top_imported(edges: Sequence[ImportEdge], limit: int = 20) -> List[Tuple[str, int]]:
    """Count files per external module; ties are broken alphabetically."""
    counter: Counter[str] = Counter()
    for edge in edges:
        for name in set(edge.frameworks) | set(edge.libraries):
            counter[name] += 1
    ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return ranked[:limit]


def _append_unique(target: List[str], value: str) -> None:
    if value not in target:
        target.append(value)


__all__ = [
    "FRAMEWORK_PACKAGES",
    "INTERNAL_PREFIXES",
    "build_import_graph",
    "classify_imports",
    "extract_specifiers",
    "is_internal",
    "package_name",
    "top_imported",
]
