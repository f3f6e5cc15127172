"""Digest assembly and markdown rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .analyzers.imports import build_import_graph, top_imported
from .analyzers.manifests import ManifestResult, clean_version, parse_manifest, parse_tsconfig
from .analyzers.patterns import build_context, detect_patterns
from .analyzers.routes import ROUTE_TYPE_ORDER, normalize_path, routes_from_snapshot
from .logging import get_logger
from .models import DependencyEntry, Digest, DigestConfig, Snapshot, SnapshotFile
from .snapshot import AI_CONFIG_FILES
from .stores.digest_cache import DigestCache

logger = get_logger("digest")

TRUNCATION_MARKER = "\n...(truncated)"

FRAMEWORK_NAMES: Dict[str, str] = {
    "next": "Next.js",
    "nuxt": "Nuxt.js",
    "@sveltejs/kit": "SvelteKit",
    "@remix-run/react": "Remix",
    "astro": "Astro",
    "django": "Django",
    "fastapi": "FastAPI",
    "flask": "Flask",
}

STYLING_NAMES: Dict[str, str] = {
    "tailwindcss": "Tailwind CSS",
    "@tailwindcss/postcss": "Tailwind CSS",
    "styled-components": "Styled Components",
    "@emotion/react": "Emotion",
    "@emotion/styled": "Emotion",
    "sass": "Sass",
    "less": "Less",
    "@chakra-ui/react": "Chakra UI",
    "@mui/material": "Material UI",
    "@mantine/core": "Mantine",
    "radix-ui": "Radix UI",
    "shadcn-ui": "shadcn/ui",
}

_DEPLOY_FILES: Dict[str, str] = {
    "vercel.json": "vercel",
    "netlify.toml": "netlify",
    "Dockerfile": "docker",
    "docker-compose.yml": "docker",
    "docker-compose.yaml": "docker",
}


def styling_name(package: str) -> Optional[str]:
    if package.startswith("@radix-ui/"):
        return "Radix UI"
    return STYLING_NAMES.get(package)


@dataclass
class DigestAssembler:
    """Merges manifest and scanner output for one Snapshot into a Digest."""

    instruction_excerpt_chars: int = 500
    _manifests: Dict[str, ManifestResult] = field(default_factory=dict, init=False, repr=False)

    def assemble(self, snapshot: Snapshot) -> Digest:
        self._manifests = {}
        dependencies: List[DependencyEntry] = []
        config = DigestConfig()
        excerpt: Optional[str] = None
        workspaces = False

        for item in snapshot.files:
            if not item.content:
                continue
            try:
                excerpt = self._process_file(item, dependencies, config) or excerpt
            except Exception as exc:  # one bad file only loses its own contribution
                logger.debug("Digest step failed for %s: %s", item.path, exc)
                continue
            manifest = self._manifests.get(item.path)
            if manifest is not None and manifest.workspaces:
                workspaces = True

        imports = build_import_graph(snapshot.files)
        routes = routes_from_snapshot(snapshot.files)
        patterns = detect_patterns(
            build_context(snapshot.files, [dep.name for dep in dependencies], workspaces=workspaces)
        )

        return Digest(
            project_name=snapshot.project_name,
            dependencies=dependencies,
            file_tree=build_file_tree([item.path for item in snapshot.files]),
            imports=imports,
            routes=routes,
            config=config,
            patterns=patterns,
            instruction_excerpt=excerpt,
        )

    def _process_file(
        self,
        item: SnapshotFile,
        dependencies: List[DependencyEntry],
        config: DigestConfig,
    ) -> Optional[str]:
        basename = item.basename
        content = item.content or ""

        if item.declared_type == "dependency":
            manifest = parse_manifest(basename, content)
            self._manifests[item.path] = manifest
            dependencies.extend(
                DependencyEntry(name=dep.name, version=dep.version, is_dev=dep.is_dev, source=basename)
                for dep in manifest.dependencies
            )
            self._apply_manifest(manifest, config)

        if basename == "tsconfig.json" and item.declared_type == "build_config":
            ts = parse_tsconfig(content)
            config.typescript = {
                key: value
                for key, value in (("strict", ts.strict), ("target", ts.target), ("jsx", ts.jsx))
                if value is not None
            }

        if basename.startswith("next.config") and item.declared_type == "build_config":
            if config.framework is None:
                config.framework = "Next.js"

        deploy = _DEPLOY_FILES.get(basename)
        if deploy:
            _append_unique(config.deploy, deploy)

        if basename in AI_CONFIG_FILES:
            return self._excerpt(content)
        return None

    @staticmethod
    def _apply_manifest(manifest: ManifestResult, config: DigestConfig) -> None:
        if config.framework_version is None:
            for dep in manifest.dependencies:
                name = FRAMEWORK_NAMES.get(dep.name.lower())
                if name is None:
                    continue
                config.framework = name
                config.framework_version = clean_version(dep.version) or None
                break

        for dep in manifest.dependencies:
            label = styling_name(dep.name)
            if label:
                _append_unique(config.styling, label)

        names = set(manifest.names)
        if "vercel" in names or "@vercel/node" in names:
            _append_unique(config.deploy, "vercel")
        script_text = " ".join(manifest.scripts.values())
        for target in ("vercel", "netlify", "docker"):
            if target in script_text:
                _append_unique(config.deploy, target)

    def _excerpt(self, content: str) -> str:
        limit = self.instruction_excerpt_chars
        if len(content) <= limit:
            return content
        return content[:limit] + TRUNCATION_MARKER


def build_file_tree(paths: Sequence[str]) -> List[str]:
    """Compact tree: root files first, then each directory with indented basenames."""
    root_files: List[str] = []
    directories: Dict[str, List[str]] = {}
    for path in sorted(normalize_path(p) for p in paths):
        if "/" not in path:
            root_files.append(path)
            continue
        directory, filename = path.rsplit("/", 1)
        directories.setdefault(directory, []).append(filename)

    tree = list(root_files)
    for directory in sorted(directories):
        tree.append(f"{directory}/")
        tree.extend(f"  {name}" for name in directories[directory])
    return tree


def render_digest(digest: Digest, *, top_imports: int = 20) -> str:
    """Render the digest as markdown; equal digests always render identically."""
    lines: List[str] = [f"# Project Digest: {digest.project_name}", ""]

    production = [dep for dep in digest.dependencies if not dep.is_dev]
    development = [dep for dep in digest.dependencies if dep.is_dev]
    if production or development:
        lines.extend(["## Dependencies", ""])
        for heading, group in (("Production", production), ("Dev", development)):
            if not group:
                continue
            lines.append(f"### {heading}")
            lines.extend(f"- {dep.name}@{dep.version}" for dep in group)
            lines.append("")

    if digest.file_tree:
        lines.extend(["## File Tree", "", "```"])
        lines.extend(digest.file_tree)
        lines.extend(["```", ""])

    ranked = top_imported(digest.imports, top_imports)
    if ranked:
        lines.extend(["## Import Graph", ""])
        for name, count in ranked:
            lines.append(f"- {name} ({count} file{'s' if count > 1 else ''})")
        lines.append("")

    if digest.routes:
        lines.extend(["## Routes", ""])
        for route_type in ROUTE_TYPE_ORDER:
            group = [route for route in digest.routes if route.type == route_type]
            if not group:
                continue
            lines.append(f"### {route_type.capitalize()}s")
            for route in group:
                suffix = f" [{', '.join(route.methods)}]" if route.methods else ""
                lines.append(f"- {route.path}{suffix}")
            lines.append("")

    if not digest.config.is_empty():
        lines.extend(["## Config", ""])
        lines.extend(_config_lines(digest.config))
        lines.append("")

    if digest.patterns:
        lines.extend(["## Patterns", ""])
        lines.extend(f"- {pattern}" for pattern in digest.patterns)
        lines.append("")

    if digest.instruction_excerpt:
        lines.extend(["## AI Rules (excerpt)", "", digest.instruction_excerpt, ""])

    return "\n".join(lines)


def digest_document(
    snapshot: Snapshot,
    *,
    assembler: DigestAssembler | None = None,
    top_imports: int = 20,
    cache: DigestCache | None = None,
) -> str:
    """Return the rendered digest for a snapshot, consulting the cache first."""
    assembler = assembler or DigestAssembler()
    signature = f"top={top_imports};excerpt={assembler.instruction_excerpt_chars}"
    fingerprint = snapshot.fingerprint()
    if cache is not None:
        cached = cache.get(fingerprint, signature=signature)
        if cached is not None:
            logger.debug("Digest cache hit for %s", snapshot.project_name)
            return cached

    document = render_digest(assembler.assemble(snapshot), top_imports=top_imports)
    if cache is not None:
        cache.store(fingerprint, signature=signature, document=document)
    return document


def _config_lines(config: DigestConfig) -> List[str]:
    lines: List[str] = []
    if config.framework:
        version = f" v{config.framework_version}" if config.framework_version else ""
        lines.append(f"- Framework: {config.framework}{version}")
    if config.typescript:
        parts = []
        if "strict" in config.typescript:
            parts.append(f"strict={str(config.typescript['strict']).lower()}")
        for key in ("target", "jsx"):
            if config.typescript.get(key):
                parts.append(f"{key}={config.typescript[key]}")
        if parts:
            lines.append(f"- TypeScript: {', '.join(parts)}")
    if config.styling:
        lines.append(f"- Styling: {', '.join(config.styling)}")
    if config.deploy:
        lines.append(f"- Deploy: {', '.join(config.deploy)}")
    return lines


def _append_unique(target: List[str], value: str) -> None:
    if value not in target:
        target.append(value)


__all__ = [
    "DigestAssembler",
    "FRAMEWORK_NAMES",
    "TRUNCATION_MARKER",
    "build_file_tree",
    "digest_document",
    "render_digest",
    "styling_name",
]
