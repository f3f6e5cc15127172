"""Route table detection for file-system routed web projects."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Mapping, Optional

from ..models import Route, SnapshotFile

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")

ROUTE_TYPE_ORDER: Dict[str, int] = {"middleware": 0, "layout": 1, "page": 2, "api": 3}

_MIDDLEWARE_FILES = {"middleware.ts", "middleware.js"}
_SPECIAL_BASENAME = re.compile(r"^(page|route|layout)\.(tsx?|jsx?)$")
_FILE_SUFFIX = re.compile(r"(?:^|/)(?:page|route|layout)\.(?:tsx?|jsx?)$")
_GROUP_SEGMENT = re.compile(r"\([^)]+\)/?")
_MULTI_SLASH = re.compile(r"/+")
_VERB_PATTERNS = {
    method: re.compile(rf"export\s+(?:async\s+)?(?:function|const)\s+{method}\b")
    for method in HTTP_METHODS
}
_KIND_BY_BASENAME = {"page": "page", "route": "api", "layout": "layout"}


def normalize_path(path: str) -> str:
    """Strip a leading ``./`` or ``/`` and use forward slashes."""
    return re.sub(r"^\.?/", "", path.replace("\\", "/"))


def file_path_to_route(path: str) -> str:
    """Derive the URL path served by an ``app/`` route file.

    >>> file_path_to_route("app/(auth)/login/page.tsx")
    '/login'
    """
    route = re.sub(r"^app/", "", normalize_path(path))
    route = _FILE_SUFFIX.sub("", route)
    route = _GROUP_SEGMENT.sub("", route)
    route = _MULTI_SLASH.sub("/", route)
    if not route.startswith("/"):
        route = "/" + route
    if len(route) > 1 and route.endswith("/"):
        route = route[:-1]
    return route


def detect_http_methods(content: Optional[str]) -> List[str]:
    if not content:
        return []
    return [method for method in HTTP_METHODS if _VERB_PATTERNS[method].search(content)]


def detect_routes(paths: Iterable[str], contents: Mapping[str, str] | None = None) -> List[Route]:
    """Return routes sorted by type precedence, then lexicographically by path."""
    contents = contents or {}
    routes: List[Route] = []
    for raw_path in paths:
        normalized = normalize_path(raw_path)
        if normalized in _MIDDLEWARE_FILES:
            routes.append(Route(path="/", type="middleware"))
            continue
        if not normalized.startswith("app/"):
            continue

        match = _SPECIAL_BASENAME.match(normalized.rsplit("/", 1)[-1])
        if not match:
            continue
        kind = _KIND_BY_BASENAME[match.group(1)]
        methods: tuple[str, ...] = ()
        if kind == "api":
            methods = tuple(detect_http_methods(contents.get(raw_path)))
        routes.append(Route(path=file_path_to_route(normalized), type=kind, methods=methods))

    routes.sort(key=lambda route: (ROUTE_TYPE_ORDER.get(route.type, len(ROUTE_TYPE_ORDER)), route.path))
    return routes


def routes_from_snapshot(files: Iterable[SnapshotFile]) -> List[Route]:
    items = list(files)
    contents = {item.path: item.content for item in items if item.content}
    return detect_routes([item.path for item in items], contents)


__all__ = [
    "HTTP_METHODS",
    "ROUTE_TYPE_ORDER",
    "detect_http_methods",
    "detect_routes",
    "file_path_to_route",
    "normalize_path",
    "routes_from_snapshot",
]
