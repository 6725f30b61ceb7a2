"""Flatten module manifests and raw bundle text into ordered module lists."""

from __future__ import annotations

import json
import re
from typing import Any, List, Mapping, Optional, Set, Tuple

from ..errors import ParseError
from ..logging import get_logger
from ..models import AnalysisRequest, Module, ModuleType
from .paths import resolve_paths

MAX_MANIFEST_DEPTH = 64

# Array form: "/* 12 */" alone on a line. Object form: '/***/ "./src/a.js":'.
_MARKER_RE = re.compile(
    r'^/\*\s*(?P<index>\d+)\s*\*/[ \t]*\r?$'
    r'|^/\*\*\*/[ \t]*(?:"(?P<key>(?:[^"\\\n]|\\.)*)"|(?P<numkey>\d+))[ \t]*:[ \t]*\r?$',
    re.MULTILINE,
)
# Lines allowed between a marker and its wrapper: blanks, the pathinfo banner
# box and "/*! ... */" annotations.
_PREAMBLE_RE = re.compile(r"\n(?:[ \t]*(?:/\*!.*?|!\*\*\*.*?\*\*\*!|\\\*+/)?[ \t]*\r?\n)*")
_BANNER_RE = re.compile(r"^[ \t]*!\*\*\* (?P<path>.+?) \*\*\*![ \t]*\r?$", re.MULTILINE)
_WRAPPER_OPEN_RE = re.compile(
    r"^/\*\*\*/[ \t]*\(?[ \t]*"
    r"(?:function[ \t]*\([^)\n]*\)|\([^)\n]*\)[ \t]*=>|[A-Za-z_$][\w$]*[ \t]*=>)"
    r"[ \t]*\{[ \t]*\r?$",
    re.MULTILINE,
)
_WRAPPER_CLOSE_RE = re.compile(r"^/\*\*\*/[ \t]*\}\)?[ \t]*[,;]?[ \t]*\r?$", re.MULTILINE)

logger = get_logger("flatten")


class ModuleTreeFlattener:
    """Produces the flat, ordered module list for one analysis pass."""

    def __init__(self, max_depth: int = MAX_MANIFEST_DEPTH) -> None:
        self.max_depth = max_depth

    def flatten(self, request: AnalysisRequest) -> List[Module]:
        if request.manifest is not None:
            return self.flatten_manifest(request.manifest)
        manifest = _embedded_manifest(request.code)
        if manifest is not None:
            return self.flatten_manifest(manifest)
        return self.flatten_bundle(request.code)

    # ------------------------------------------------------------------
    # Structured manifests

    def flatten_manifest(self, manifest: Mapping[str, Any]) -> List[Module]:
        """Depth-first, pre-order walk emitting leaf and synthetic nodes only."""
        if not isinstance(manifest, Mapping):
            raise ParseError("manifest must be a mapping", "$")
        _validate_assets(manifest.get("assets"))
        nodes = manifest.get("modules")
        if not isinstance(nodes, list):
            raise ParseError("manifest 'modules' must be a list", "modules")

        modules: List[Module] = []
        seen_ids: Set[str] = set()
        declared_ids = _declared_ids(nodes, self.max_depth)
        stack: List[Tuple[Any, str, int]] = [
            (node, f"modules[{index}]", 1) for index, node in reversed(list(enumerate(nodes)))
        ]
        while stack:
            node, position, depth = stack.pop()
            if depth > self.max_depth:
                raise ParseError(
                    f"manifest nesting exceeds maximum depth of {self.max_depth}", position
                )
            identifier, size, chunks = _validate_node(node, position)
            children = node.get("modules")
            source = node.get("source")
            if children is not None:
                if source is not None:
                    raise ParseError("node declares both 'source' and 'modules'", position)
                if not isinstance(children, list):
                    raise ParseError("'modules' must be a list", position)
                for index in range(len(children) - 1, -1, -1):
                    stack.append((children[index], f"{position}.modules[{index}]", depth + 1))
                continue
            if source is not None and not isinstance(source, str):
                raise ParseError("'source' must be a string", position)

            module_id = _node_id(node, position)
            if module_id is None:
                # Positional ids never take an id declared elsewhere in the manifest.
                index = len(modules)
                while str(index) in declared_ids or str(index) in seen_ids:
                    index += 1
                module_id = str(index)
            elif module_id in seen_ids:
                raise ParseError(f"duplicate module id {module_id!r}", position)
            seen_ids.add(module_id)
            modules.append(
                _build_module(
                    module_id,
                    identifier,
                    source=source,
                    declared_size=size,
                    chunks=chunks,
                )
            )

        logger.debug("Flattened manifest into %d modules", len(modules))
        return modules

    # ------------------------------------------------------------------
    # Raw bundle text

    def flatten_bundle(self, code: str) -> List[Module]:
        """Split concatenated bundle text on webpack module boundary markers.

        A marker line only opens a module when the wrapper line follows it,
        separated by nothing but banner and annotation lines. Marker-shaped
        comments inside a module body are part of that body.
        """
        boundaries = _module_boundaries(code)
        modules: List[Module] = []
        seen_ids: Set[str] = set()
        for position, (marker, opening) in enumerate(boundaries):
            end = boundaries[position + 1][0].start() if position + 1 < len(boundaries) else len(code)
            closing: Optional[re.Match[str]] = None
            for closing in _WRAPPER_CLOSE_RE.finditer(code, opening.end(), end):
                pass
            if closing is None:
                raise ParseError("module wrapper is never closed", opening.start())

            body_start = opening.end()
            if code.startswith("\n", body_start):
                body_start += 1
            source = code[body_start:closing.start()]
            # The newline before the closing wrapper line belongs to the wrapper.
            if source.endswith("\r\n"):
                source = source[:-2]
            elif source.endswith("\n"):
                source = source[:-1]

            key = marker.group("key")
            if key is not None:
                module_id = key
            else:
                module_id = marker.group("index") or marker.group("numkey")
            if module_id in seen_ids:
                raise ParseError(f"duplicate module id {module_id!r}", marker.start())
            seen_ids.add(module_id)

            banner = _BANNER_RE.search(code, marker.end(), opening.start())
            if banner is not None:
                identifier = banner.group("path")
            elif key is not None:
                identifier = key
            else:
                identifier = f"module-{module_id}"
            modules.append(_build_module(module_id, identifier, source=source))

        logger.debug("Found %d module markers in bundle text", len(modules))
        return modules


def _module_boundaries(code: str) -> List[Tuple[re.Match[str], re.Match[str]]]:
    """Pair each module-opening marker with its wrapper line."""
    boundaries: List[Tuple[re.Match[str], re.Match[str]]] = []
    for marker in _MARKER_RE.finditer(code):
        preamble = _PREAMBLE_RE.match(code, marker.end())
        opening = _WRAPPER_OPEN_RE.match(code, preamble.end()) if preamble else None
        if opening is not None:
            boundaries.append((marker, opening))
        elif not boundaries:
            raise ParseError("module marker is not followed by a module wrapper", marker.start())
    return boundaries


def _embedded_manifest(code: str) -> Optional[Mapping[str, Any]]:
    stripped = code.lstrip()
    if not stripped.startswith("{"):
        return None
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    if isinstance(data, dict) and isinstance(data.get("modules"), list):
        return data
    return None


def _validate_assets(assets: Any) -> None:
    if assets is None:
        return
    if not isinstance(assets, list):
        raise ParseError("manifest 'assets' must be a list", "assets")
    for index, asset in enumerate(assets):
        position = f"assets[{index}]"
        if not isinstance(asset, Mapping):
            raise ParseError("asset must be a mapping", position)
        if not isinstance(asset.get("name"), str):
            raise ParseError("asset 'name' must be a string", position)
        if not _is_size(asset.get("size")):
            raise ParseError("asset 'size' must be a non-negative number", position)


def _validate_node(node: Any, position: str) -> Tuple[str, int, List[Any]]:
    if not isinstance(node, Mapping):
        raise ParseError("module node must be a mapping", position)
    identifier = node.get("identifier")
    if not isinstance(identifier, str) or not identifier:
        raise ParseError("module node requires a string 'identifier'", position)
    size = node.get("size")
    if not _is_size(size):
        raise ParseError("module 'size' must be a non-negative number", position)
    chunks = node.get("chunks", [])
    if not isinstance(chunks, list) or not all(
        isinstance(chunk, (str, int)) and not isinstance(chunk, bool) for chunk in chunks
    ):
        raise ParseError("module 'chunks' must be a list of strings or numbers", position)
    return identifier, int(size), list(chunks)


def _declared_ids(nodes: List[Any], max_depth: int) -> Set[str]:
    declared: Set[str] = set()
    stack: List[Tuple[Any, int]] = [(node, 1) for node in nodes]
    while stack:
        node, depth = stack.pop()
        if not isinstance(node, Mapping) or depth > max_depth:
            continue
        children = node.get("modules")
        if isinstance(children, list):
            stack.extend((child, depth + 1) for child in children)
            continue
        raw = node.get("id")
        if isinstance(raw, (str, int)) and not isinstance(raw, bool):
            declared.add(str(raw))
    return declared


def _node_id(node: Mapping[str, Any], position: str) -> Optional[str]:
    raw = node.get("id")
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (str, int)):
        raise ParseError("module 'id' must be a string or number", position)
    return str(raw)


def _is_size(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


def _build_module(
    module_id: str,
    identifier: str,
    *,
    source: Optional[str],
    declared_size: int = 0,
    chunks: Optional[List[Any]] = None,
) -> Module:
    paths = resolve_paths(identifier)
    return Module(
        id=module_id,
        identifier=identifier,
        file_name=paths.file_name,
        base_name=paths.base_name,
        type=ModuleType.CODE if source is not None else ModuleType.SYNTHETIC,
        size=declared_size,
        package_name=paths.package_name,
        package_version=paths.package_version,
        chunks=chunks or [],
        source=source,
    )


__all__ = ["MAX_MANIFEST_DEPTH", "ModuleTreeFlattener"]
