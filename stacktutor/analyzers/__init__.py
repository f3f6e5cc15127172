"""Static analyzers that turn snapshot files into shallow structural signals."""

from __future__ import annotations

from .hints import extract_hints, find_hint
from .imports import build_import_graph, classify_imports, top_imported
from .manifests import parse_manifest, parse_package_json, parse_pyproject, parse_requirements, parse_tsconfig
from .patterns import build_context, detect_patterns
from .routes import detect_routes, file_path_to_route, routes_from_snapshot

__all__ = [
    "build_context",
    "build_import_graph",
    "classify_imports",
    "detect_patterns",
    "detect_routes",
    "extract_hints",
    "file_path_to_route",
    "find_hint",
    "parse_manifest",
    "parse_package_json",
    "parse_pyproject",
    "parse_requirements",
    "parse_tsconfig",
    "routes_from_snapshot",
    "top_imported",
]
