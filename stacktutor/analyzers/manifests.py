"""Tolerant parsers for dependency-declaration and build-config files.

Every parser accepts raw text and never raises: malformed input yields an
empty result so one broken manifest only loses its own contribution.
"""

from __future__ import annotations

import json
import re
import tomllib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..logging import get_logger

logger = get_logger("analyzers.manifests")

_VERSION_PREFIX = re.compile(r"^[\^~>=<]+")
_REQUIREMENT_LINE = re.compile(r"^([A-Za-z0-9_.\-]+)(?:\[[^\]]*\])?\s*(?:([=<>!~]+)\s*(.+))?$")
_SPLIT_SPECIFIER = re.compile(r"[<>=!~;\[\s]")


@dataclass(frozen=True)
class ManifestDependency:
    name: str
    version: str
    is_dev: bool = False


@dataclass
class ManifestResult:
    """Normalized view of one dependency manifest."""

    dependencies: List[ManifestDependency] = field(default_factory=list)
    scripts: Dict[str, str] = field(default_factory=dict)
    name: Optional[str] = None
    version: Optional[str] = None
    workspaces: bool = False

    @property
    def names(self) -> List[str]:
        return [dep.name for dep in self.dependencies]


@dataclass
class TsConfigResult:
    target: Optional[str] = None
    module: Optional[str] = None
    strict: Optional[bool] = None
    jsx: Optional[str] = None
    paths: Dict[str, List[str]] = field(default_factory=dict)


def clean_version(version: str) -> str:
    """Strip range operators such as ``^`` or ``>=`` from a version string."""
    return _VERSION_PREFIX.sub("", version.strip())


def parse_package_json(content: str) -> ManifestResult:
    """Parse package.json text into runtime/dev dependencies and scripts."""
    try:
        data = json.loads(content)
    except (TypeError, ValueError) as exc:
        logger.debug("package.json could not be parsed: %s", exc)
        return ManifestResult()
    if not isinstance(data, dict):
        return ManifestResult()

    dependencies: List[ManifestDependency] = []
    for key, is_dev in (("dependencies", False), ("devDependencies", True)):
        section = data.get(key)
        if not isinstance(section, dict):
            continue
        for name, version in section.items():
            if not isinstance(name, str):
                continue
            dependencies.append(
                ManifestDependency(name=name, version=version if isinstance(version, str) else "*", is_dev=is_dev)
            )

    scripts_raw = data.get("scripts")
    scripts = (
        {str(k): str(v) for k, v in scripts_raw.items() if isinstance(v, str)}
        if isinstance(scripts_raw, dict)
        else {}
    )
    workspaces = data.get("workspaces")

    return ManifestResult(
        dependencies=dependencies,
        scripts=scripts,
        name=data.get("name") if isinstance(data.get("name"), str) else None,
        version=data.get("version") if isinstance(data.get("version"), str) else None,
        workspaces=isinstance(workspaces, (list, dict)) and bool(workspaces),
    )


def parse_requirements(content: str) -> ManifestResult:
    """Parse requirements.txt lines, skipping comments and pip options."""
    dependencies: List[ManifestDependency] = []
    for raw_line in content.splitlines():
        line = raw_line.split(" #", 1)[0].strip()
        if not line or line.startswith(("#", "-")):
            continue
        match = _REQUIREMENT_LINE.match(line)
        if match:
            version = (match.group(3) or "*").strip()
            dependencies.append(ManifestDependency(name=match.group(1), version=version))
            continue
        name = _SPLIT_SPECIFIER.split(line, 1)[0].strip()
        if name:
            dependencies.append(ManifestDependency(name=name, version="*"))
    return ManifestResult(dependencies=dependencies)


def parse_pyproject(content: str) -> ManifestResult:
    """Parse PEP 621 and Poetry dependency tables from pyproject.toml."""
    try:
        data = tomllib.loads(content)
    except (tomllib.TOMLDecodeError, TypeError) as exc:
        logger.debug("pyproject.toml could not be parsed: %s", exc)
        return ManifestResult()

    dependencies: List[ManifestDependency] = []
    project = data.get("project")
    if isinstance(project, dict):
        for spec in project.get("dependencies", []) or []:
            dep = _from_pep508(spec, is_dev=False)
            if dep:
                dependencies.append(dep)
        optional = project.get("optional-dependencies", {}) or {}
        if isinstance(optional, dict):
            for values in optional.values():
                for spec in values or []:
                    dep = _from_pep508(spec, is_dev=True)
                    if dep:
                        dependencies.append(dep)

    tool = data.get("tool")
    poetry = tool.get("poetry", {}) if isinstance(tool, dict) else {}
    if isinstance(poetry, dict):
        for key, is_dev in (("dependencies", False), ("dev-dependencies", True)):
            table = poetry.get(key, {}) or {}
            if not isinstance(table, dict):
                continue
            for name, spec in table.items():
                if name.lower() == "python":
                    continue
                version = spec if isinstance(spec, str) else str(spec.get("version", "*")) if isinstance(spec, dict) else "*"
                dependencies.append(ManifestDependency(name=name, version=version, is_dev=is_dev))

    scripts: Dict[str, str] = {}
    if isinstance(project, dict) and isinstance(project.get("scripts"), dict):
        scripts = {str(k): str(v) for k, v in project["scripts"].items()}

    return ManifestResult(
        dependencies=dependencies,
        scripts=scripts,
        name=project.get("name") if isinstance(project, dict) else None,
        version=project.get("version") if isinstance(project, dict) else None,
    )


def _from_pep508(spec: Any, *, is_dev: bool) -> Optional[ManifestDependency]:
    if not isinstance(spec, str):
        return None
    name = _SPLIT_SPECIFIER.split(spec.strip(), 1)[0].strip()
    if not name or name.lower() == "python":
        return None
    version = spec.strip()[len(name):].split(";", 1)[0].strip()
    return ManifestDependency(name=name, version=version or "*", is_dev=is_dev)


def parse_tsconfig(content: str) -> TsConfigResult:
    """Extract compiler options from tsconfig.json; comments are tolerated."""
    try:
        data = json.loads(_strip_json_comments(content))
    except (TypeError, ValueError) as exc:
        logger.debug("tsconfig.json could not be parsed: %s", exc)
        return TsConfigResult()
    if not isinstance(data, dict):
        return TsConfigResult()
    options = data.get("compilerOptions")
    if not isinstance(options, dict):
        return TsConfigResult()

    paths = options.get("paths")
    return TsConfigResult(
        target=options.get("target") if isinstance(options.get("target"), str) else None,
        module=options.get("module") if isinstance(options.get("module"), str) else None,
        strict=options.get("strict") if isinstance(options.get("strict"), bool) else None,
        jsx=options.get("jsx") if isinstance(options.get("jsx"), str) else None,
        paths=paths if isinstance(paths, dict) else {},
    )


def _strip_json_comments(text: str) -> str:
    # Line comments are only removed when they start a line so URLs inside strings survive.
    without_blocks = re.sub(r"/\*.*?\*/", "", text, flags=re.DOTALL)
    lines = [line for line in without_blocks.splitlines() if not line.lstrip().startswith("//")]
    return re.sub(r",(\s*[}\]])", r"\1", "\n".join(lines))


MANIFEST_PARSERS = {
    "package.json": parse_package_json,
    "requirements.txt": parse_requirements,
    "pyproject.toml": parse_pyproject,
}


def parse_manifest(basename: str, content: str) -> ManifestResult:
    """Dispatch to the parser registered for a manifest basename."""
    parser = MANIFEST_PARSERS.get(basename)
    if parser is None:
        return ManifestResult()
    return parser(content)


__all__ = [
    "MANIFEST_PARSERS",
    "ManifestDependency",
    "ManifestResult",
    "TsConfigResult",
    "clean_version",
    "parse_manifest",
    "parse_package_json",
    "parse_pyproject",
    "parse_requirements",
    "parse_tsconfig",
]
