"""Display names and package coordinates derived from module identifiers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

# ``?query`` and ``|hash`` parts webpack appends to resolved requests.
_QUERY_RE = re.compile(r"[?|].*$", re.DOTALL)
# Context modules: "<dir> /<regex>/<flags>" or "<dir> <mode> <regex>".
_CONTEXT_RE = re.compile(
    r"\s+(?:(?:sync|lazy|lazy-once|eager|weak|async-weak)\s+.*|/.*/[a-z]*)$"
)
# Concatenated module roots: "<path> + 3 modules".
_CONCAT_RE = re.compile(r"\s+\+\s+\d+\s+modules?$")
_PACKAGE_DIR_RE = re.compile(r"(?:^|/)(?:node_modules|~)/")
_PNPM_DIR_RE = re.compile(r"(?:^|/)node_modules/\.pnpm/([^/]+)/node_modules/")


@dataclass(frozen=True)
class ModulePaths:
    """Display paths and package coordinates for one identifier."""

    file_name: str
    base_name: str
    package_name: Optional[str] = None
    package_version: Optional[str] = None


def file_name_for(identifier: str) -> str:
    """Strip loader prefixes (``loader!loader!path``) from an identifier."""
    return identifier.rsplit("!", 1)[-1].replace("\\", "/")


def strip_resolution_suffix(name: str) -> str:
    name = _QUERY_RE.sub("", name)
    name = _CONCAT_RE.sub("", name)
    return _CONTEXT_RE.sub("", name)


def base_name_for(identifier: str) -> str:
    """Return the logical path shared by every on-disk copy of a file."""
    name = strip_resolution_suffix(file_name_for(identifier))
    matches = list(_PACKAGE_DIR_RE.finditer(name))
    if matches:
        return name[matches[-1].end():]
    return name


def resolve_paths(identifier: str) -> ModulePaths:
    file_name = file_name_for(identifier)
    base_name = base_name_for(identifier)
    package_name = None
    package_version = None
    if _PACKAGE_DIR_RE.search(strip_resolution_suffix(file_name)):
        package_name = _package_name(base_name)
        if package_name is not None:
            package_version = _package_version(file_name, package_name)
    return ModulePaths(
        file_name=file_name,
        base_name=base_name,
        package_name=package_name,
        package_version=package_version,
    )


def _package_name(base_name: str) -> Optional[str]:
    parts = [part for part in base_name.split("/") if part]
    if not parts:
        return None
    if parts[0].startswith("@"):
        if len(parts) < 2:
            return None
        return f"{parts[0]}/{parts[1]}"
    return parts[0]


def _package_version(file_name: str, package_name: str) -> Optional[str]:
    # pnpm store layout: node_modules/.pnpm/<name>@<version>[_peers]/node_modules/<name>/
    for match in reversed(list(_PNPM_DIR_RE.finditer(file_name))):
        entry = match.group(1)
        at = entry.find("@", 1 if entry.startswith("@") else 0)
        if at <= 0:
            continue
        name = entry[:at].replace("+", "/")
        if name != package_name:
            continue
        version = re.split(r"[_(]", entry[at + 1:], maxsplit=1)[0]
        return version or None
    return None


__all__ = [
    "ModulePaths",
    "base_name_for",
    "file_name_for",
    "resolve_paths",
    "strip_resolution_suffix",
]
