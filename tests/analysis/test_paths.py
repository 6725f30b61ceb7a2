"""Tests for identifier-derived display paths."""

from __future__ import annotations

import pytest

from packlens.analysis.paths import base_name_for, file_name_for, resolve_paths


def test_file_name_drops_loader_prefixes() -> None:
    identifier = "/app/node_modules/babel-loader/lib/index.js??ref--4!/app/src/index.js"
    assert file_name_for(identifier) == "/app/src/index.js"


@pytest.mark.parametrize(
    ("identifier", "expected"),
    [
        ("./~/moment/moment.js", "moment/moment.js"),
        ("(webpack)/buildin/module.js", "(webpack)/buildin/module.js"),
        ("./src/bad-bundle.js", "./src/bad-bundle.js"),
        ("/app/node_modules/moment/locale /es/", "moment/locale"),
        ("/app/node_modules/moment/locale sync ^\\.\\/.*$", "moment/locale"),
        ("/app/node_modules/foo/index.js?abc123", "foo/index.js"),
        ("/app/src/index.js + 4 modules", "/app/src/index.js"),
    ],
)
def test_base_name_strips_suffixes_and_package_dirs(identifier: str, expected: str) -> None:
    assert base_name_for(identifier) == expected


def test_nested_copies_share_base_name() -> None:
    top = "/app/node_modules/lodash/lodash.js"
    nested = "/app/node_modules/request/node_modules/lodash/lodash.js"
    assert base_name_for(top) == base_name_for(nested) == "lodash/lodash.js"


def test_resolve_paths_reads_scoped_pnpm_package() -> None:
    paths = resolve_paths(
        "/app/node_modules/.pnpm/@babel+runtime@7.22.5_react@18.2.0"
        "/node_modules/@babel/runtime/helpers/extends.js"
    )
    assert paths.base_name == "@babel/runtime/helpers/extends.js"
    assert paths.package_name == "@babel/runtime"
    assert paths.package_version == "7.22.5"


def test_resolve_paths_without_version_directory() -> None:
    paths = resolve_paths("/app/node_modules/lodash/lodash.js")
    assert paths.package_name == "lodash"
    assert paths.package_version is None


def test_resolve_paths_for_project_file_has_no_package() -> None:
    paths = resolve_paths("./src/index.js")
    assert paths.file_name == "./src/index.js"
    assert paths.package_name is None
    assert paths.package_version is None
