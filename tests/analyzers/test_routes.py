"""Tests for route table detection."""

from __future__ import annotations

import pytest

from stacktutor.analyzers.routes import detect_http_methods, detect_routes, file_path_to_route


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("app/page.tsx", "/"),
        ("app/(marketing)/page.tsx", "/"),
        ("app/(auth)/login/page.tsx", "/login"),
        ("app/dashboard/settings/page.jsx", "/dashboard/settings"),
        ("app/api/users/[id]/route.ts", "/api/users/[id]"),
        ("app/(shop)/blog/(posts)/page.tsx", "/blog"),
        ("./app/docs//intro/page.tsx", "/docs/intro"),
    ],
)
def test_file_path_to_route(path: str, expected: str) -> None:
    assert file_path_to_route(path) == expected


def test_derived_paths_never_keep_groups_or_trailing_slashes() -> None:
    paths = [
        "app/(a)/page.tsx",
        "app/(a)/(b)/x/page.tsx",
        "app/x/(b)/layout.tsx",
        "app/(group)/api/ping/route.ts",
    ]
    for route in detect_routes(paths):
        assert "(" not in route.path
        assert route.path == "/" or not route.path.endswith("/")


def test_detect_routes_orders_by_type_then_path() -> None:
    paths = [
        "app/api/users/route.ts",
        "app/page.tsx",
        "app/layout.tsx",
        "middleware.ts",
        "app/about/page.tsx",
        "components/page.tsx",
        "app/about/utils.ts",
    ]
    contents = {
        "app/api/users/route.ts": "export async function GET() {}\nexport const POST = async () => {}\n",
    }

    routes = detect_routes(paths, contents)

    assert [(route.type, route.path) for route in routes] == [
        ("middleware", "/"),
        ("layout", "/"),
        ("page", "/"),
        ("page", "/about"),
        ("api", "/api/users"),
    ]
    assert routes[-1].methods == ("GET", "POST")


def test_detect_http_methods_requires_export() -> None:
    assert detect_http_methods("function GET() {}") == []
    assert detect_http_methods("export function DELETE() {}") == ["DELETE"]
    assert detect_http_methods(None) == []
