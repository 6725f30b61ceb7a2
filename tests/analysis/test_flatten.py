"""Tests for manifest and bundle-text flattening."""

from __future__ import annotations

import json

import pytest

from packlens.analysis.flatten import ModuleTreeFlattener
from packlens.errors import ParseError
from packlens.models import AnalysisRequest, ModuleType
from tests._fixtures.bundle_builder import BundleBuilder


def test_container_is_replaced_by_its_leaves(bundle_builder: BundleBuilder) -> None:
    leaves = [
        bundle_builder.leaf("/app/src/locale/a.js", "a" * 10),
        bundle_builder.leaf("/app/src/locale/b.js", "b" * 20),
        bundle_builder.leaf("/app/src/locale/c.js", "c" * 30),
    ]
    manifest = bundle_builder.manifest([bundle_builder.container("/app/src/locale /^\\.\\/.*$/", leaves)])

    modules = ModuleTreeFlattener().flatten_manifest(manifest)

    assert [module.identifier for module in modules] == [
        "/app/src/locale/a.js",
        "/app/src/locale/b.js",
        "/app/src/locale/c.js",
    ]
    assert [module.id for module in modules] == ["0", "1", "2"]
    assert all(module.type is ModuleType.CODE for module in modules)


def test_manifest_ids_are_kept_verbatim_and_unsorted(bundle_builder: BundleBuilder) -> None:
    manifest = bundle_builder.manifest(
        [
            bundle_builder.leaf("./demo/index.js", "x", id=39),
            bundle_builder.leaf("(webpack)/buildin/global.js", "y", id="1"),
            bundle_builder.leaf("./~/lodash/lodash.js", "z", id="a3f9"),
        ]
    )

    modules = ModuleTreeFlattener().flatten_manifest(manifest)

    assert [module.id for module in modules] == ["39", "1", "a3f9"]
    assert modules[2].base_name == "lodash/lodash.js"
    assert modules[2].package_name == "lodash"


def test_nested_containers_flatten_depth_first(bundle_builder: BundleBuilder) -> None:
    inner = bundle_builder.container(
        "inner",
        [bundle_builder.leaf("./b.js", "b"), bundle_builder.leaf("./c.js", "c")],
    )
    outer = bundle_builder.container("outer", [bundle_builder.leaf("./a.js", "a"), inner])
    manifest = bundle_builder.manifest([outer, bundle_builder.leaf("./d.js", "d")])

    modules = ModuleTreeFlattener().flatten_manifest(manifest)

    assert [module.file_name for module in modules] == ["./a.js", "./b.js", "./c.js", "./d.js"]


def test_flattening_is_deterministic(bundle_builder: BundleBuilder) -> None:
    manifest = bundle_builder.manifest(
        [
            bundle_builder.container("group", [bundle_builder.leaf("./a.js", "a"), bundle_builder.synthetic("ctx", 5)]),
            bundle_builder.leaf("./b.js", "b", id=7),
        ]
    )
    flattener = ModuleTreeFlattener()

    first = flattener.flatten_manifest(manifest)
    second = flattener.flatten_manifest(manifest)

    assert [module.id for module in first] == [module.id for module in second]
    assert len(first) == len(second) == 3


def test_node_without_source_or_modules_is_synthetic(bundle_builder: BundleBuilder) -> None:
    manifest = bundle_builder.manifest(
        [bundle_builder.synthetic("/app/node_modules/moment/locale /es/", 235)]
    )

    (module,) = ModuleTreeFlattener().flatten_manifest(manifest)

    assert module.type is ModuleType.SYNTHETIC
    assert module.size == 235
    assert module.source is None
    assert module.base_name == "moment/locale"


def test_depth_cap_raises_parse_error(bundle_builder: BundleBuilder) -> None:
    node = bundle_builder.leaf("./deep.js", "deep")
    for level in range(3):
        node = bundle_builder.container(f"level-{level}", [node])
    manifest = bundle_builder.manifest([node])

    with pytest.raises(ParseError) as excinfo:
        ModuleTreeFlattener(max_depth=3).flatten_manifest(manifest)

    assert excinfo.value.position == "modules[0].modules[0].modules[0].modules[0]"


def test_source_and_modules_together_are_rejected(bundle_builder: BundleBuilder) -> None:
    broken = bundle_builder.leaf("./broken.js", "x")
    broken["modules"] = [bundle_builder.leaf("./child.js", "y")]
    manifest = bundle_builder.manifest([bundle_builder.leaf("./ok.js", "ok"), broken])

    with pytest.raises(ParseError) as excinfo:
        ModuleTreeFlattener().flatten_manifest(manifest)

    assert excinfo.value.position == "modules[1]"


def test_missing_identifier_reports_nested_position(bundle_builder: BundleBuilder) -> None:
    child = bundle_builder.leaf("./child.js", "y")
    del child["identifier"]
    manifest = bundle_builder.manifest([bundle_builder.container("group", [bundle_builder.leaf("./a.js", "a"), child])])

    with pytest.raises(ParseError) as excinfo:
        ModuleTreeFlattener().flatten_manifest(manifest)

    assert excinfo.value.position == "modules[0].modules[1]"


def test_duplicate_ids_are_rejected(bundle_builder: BundleBuilder) -> None:
    manifest = bundle_builder.manifest(
        [bundle_builder.leaf("./a.js", "a", id=1), bundle_builder.leaf("./b.js", "b", id="1")]
    )

    with pytest.raises(ParseError, match="duplicate module id"):
        ModuleTreeFlattener().flatten_manifest(manifest)


def test_non_list_modules_is_a_parse_error() -> None:
    with pytest.raises(ParseError) as excinfo:
        ModuleTreeFlattener().flatten_manifest({"assets": [], "modules": {"oops": True}})

    assert excinfo.value.position == "modules"


def test_array_form_bundle_text(bundle_builder: BundleBuilder) -> None:
    code = bundle_builder.array_bundle(
        [
            (0, "./~/moment/moment.js", "module.exports = moment;"),
            (1, "(webpack)/buildin/module.js", "module.exports = function(module) {};"),
            (2, "./src/bad-bundle.js", ""),
        ]
    )

    modules = ModuleTreeFlattener().flatten_bundle(code)

    assert [module.id for module in modules] == ["0", "1", "2"]
    assert modules[0].base_name == "moment/moment.js"
    assert modules[0].source == "module.exports = moment;"
    assert modules[1].file_name == "(webpack)/buildin/module.js"
    assert modules[2].source == ""
    assert all(module.type is ModuleType.CODE for module in modules)


def test_object_form_bundle_text(bundle_builder: BundleBuilder) -> None:
    code = bundle_builder.object_bundle(
        [
            ("./src/index.js", "console.log('index');"),
            ("./node_modules/lodash/lodash.js", "module.exports = {};"),
        ]
    )

    modules = ModuleTreeFlattener().flatten_bundle(code)

    assert [module.id for module in modules] == ["./src/index.js", "./node_modules/lodash/lodash.js"]
    assert modules[1].base_name == "lodash/lodash.js"
    assert modules[1].source == "module.exports = {};"


def test_marker_without_banner_uses_fallback_identifier(bundle_builder: BundleBuilder) -> None:
    code = bundle_builder.array_bundle([(7, None, "var seven = 7;")])

    (module,) = ModuleTreeFlattener().flatten_bundle(code)

    assert module.id == "7"
    assert module.identifier == "module-7"


def test_bundle_without_markers_has_no_modules() -> None:
    assert ModuleTreeFlattener().flatten_bundle("console.log('hello');\n") == []


def test_marker_without_wrapper_reports_offset() -> None:
    code = "var x = 1;\n/* 0 */\nconsole.log(x);\n"

    with pytest.raises(ParseError) as excinfo:
        ModuleTreeFlattener().flatten_bundle(code)

    assert excinfo.value.position == code.index("/* 0 */")


def test_unclosed_wrapper_is_a_parse_error() -> None:
    code = "/* 0 */\n/***/ (function(module, exports) {\nmodule.exports = 1;\n"

    with pytest.raises(ParseError, match="never closed"):
        ModuleTreeFlattener().flatten_bundle(code)


def test_flatten_detects_manifest_embedded_in_code(bundle_builder: BundleBuilder) -> None:
    manifest = bundle_builder.manifest([bundle_builder.leaf("./a.js", "a", id=3)])
    request = AnalysisRequest(code=json.dumps(manifest))

    (module,) = ModuleTreeFlattener().flatten(request)

    assert module.id == "3"
    assert module.source == "a"


def test_crlf_bundle_text_is_split_like_lf(bundle_builder: BundleBuilder) -> None:
    code = bundle_builder.array_bundle(
        [
            (0, "./src/a.js", "module.exports = 'a';"),
            (1, "./src/b.js", "module.exports = 'b';"),
        ]
    ).replace("\n", "\r\n")

    modules = ModuleTreeFlattener().flatten_bundle(code)

    assert [module.id for module in modules] == ["0", "1"]
    assert [module.identifier for module in modules] == ["./src/a.js", "./src/b.js"]
    assert modules[1].source == "module.exports = 'b';"


def test_crlf_object_form_keeps_banner_identifier(bundle_builder: BundleBuilder) -> None:
    code = bundle_builder.object_bundle([("./src/index.js", "console.log('index');")]).replace("\n", "\r\n")

    (module,) = ModuleTreeFlattener().flatten_bundle(code)

    assert module.id == "./src/index.js"
    assert module.source == "console.log('index');"


def test_marker_shaped_comment_inside_body_is_source(bundle_builder: BundleBuilder) -> None:
    body = "var steps = [];\n/* 1 */\nsteps.push('one');"
    code = bundle_builder.array_bundle(
        [
            (0, "./src/steps.js", body),
            (1, "./src/next.js", "module.exports = 2;"),
        ]
    )

    modules = ModuleTreeFlattener().flatten_bundle(code)

    assert [module.id for module in modules] == ["0", "1"]
    assert modules[0].source == body
    assert modules[1].identifier == "./src/next.js"


def test_marker_with_annotation_lines_before_wrapper() -> None:
    code = (
        "/* 4 */\n"
        "/*!*****************!*\\\n"
        "  !*** ./src/a.js ***!\n"
        "  \\*****************/\n"
        "/*! no static exports found */\n"
        "/***/ (function(module, exports) {\n"
        "module.exports = 4;\n"
        "/***/ })\n"
    )

    (module,) = ModuleTreeFlattener().flatten_bundle(code)

    assert module.id == "4"
    assert module.identifier == "./src/a.js"
    assert module.source == "module.exports = 4;"


def test_positional_ids_skip_ids_declared_elsewhere(bundle_builder: BundleBuilder) -> None:
    manifest = bundle_builder.manifest(
        [
            bundle_builder.container("concatenated", [bundle_builder.leaf("./a.js", "a")]),
            bundle_builder.leaf("./b.js", "b", id=0),
            bundle_builder.leaf("./c.js", "c"),
        ]
    )

    modules = ModuleTreeFlattener().flatten_manifest(manifest)

    assert [module.file_name for module in modules] == ["./a.js", "./b.js", "./c.js"]
    assert [module.id for module in modules] == ["1", "0", "2"]
