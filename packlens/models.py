"""Core data models shared across packlens components."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

Chunk = Union[str, int]


class ModuleType(str, Enum):
    """Kind of a flattened bundle module."""

    CODE = "code"
    SYNTHETIC = "synthetic"
    DUPLICATE = "duplicate"


@dataclass
class Module:
    """One unit of bundled code, flattened out of a bundle or manifest."""

    id: str
    identifier: str
    file_name: str
    base_name: str
    type: ModuleType
    size: int = 0
    minified_size: Optional[int] = None
    gzip_size: Optional[int] = None
    package_name: Optional[str] = None
    package_version: Optional[str] = None
    chunks: List[Chunk] = field(default_factory=list)
    source: Optional[str] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "identifier": self.identifier,
            "fileName": self.file_name,
            "baseName": self.base_name,
            "type": self.type.value,
            "size": self.size,
            "minifiedSize": self.minified_size,
            "gzipSize": self.gzip_size,
            "packageName": self.package_name,
            "packageVersion": self.package_version,
            "chunks": list(self.chunks),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Module":
        return cls(
            id=str(payload["id"]),
            identifier=str(payload["identifier"]),
            file_name=str(payload["fileName"]),
            base_name=str(payload["baseName"]),
            type=ModuleType(payload["type"]),
            size=int(payload["size"]),
            minified_size=payload.get("minifiedSize"),
            gzip_size=payload.get("gzipSize"),
            package_name=payload.get("packageName"),
            package_version=payload.get("packageVersion"),
            chunks=list(payload.get("chunks") or []),
        )


@dataclass
class DuplicateGroup:
    """Modules sharing normalized content under the same base name."""

    base_name: str
    hash: str
    size: int
    module_ids: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.module_ids)

    @property
    def wasted_bytes(self) -> int:
        return max(self.count - 1, 0) * self.size

    def to_dict(self) -> Dict[str, Any]:
        return {
            "baseName": self.base_name,
            "hash": self.hash,
            "size": self.size,
            "moduleIds": list(self.module_ids),
            "wastedBytes": self.wasted_bytes,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DuplicateGroup":
        return cls(
            base_name=str(payload["baseName"]),
            hash=str(payload["hash"]),
            size=int(payload["size"]),
            module_ids=[str(item) for item in payload.get("moduleIds") or []],
        )


@dataclass
class AnalysisOptions:
    """Analysis options; the core only reads ``minified`` and ``gzip``."""

    format: str = "object"
    minified: bool = False
    gzip: bool = False
    root: Optional[str] = None
    suspect_patterns: bool = False
    suspect_files: bool = False
    suspect_parses: bool = False
    parse_fns: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AnalysisOptions":
        """Build options from camelCase or snake_case keys; unknown keys are ignored."""

        def _pick(*names: str, default: Any = None) -> Any:
            for name in names:
                if name in data:
                    return data[name]
            return default

        return cls(
            format=_pick("format", default="object"),
            minified=_pick("minified", default=False),
            gzip=_pick("gzip", default=False),
            root=_pick("root"),
            suspect_patterns=_pick("suspectPatterns", "suspect_patterns", default=False),
            suspect_files=_pick("suspectFiles", "suspect_files", default=False),
            suspect_parses=_pick("suspectParses", "suspect_parses", default=False),
            parse_fns=_pick("parseFns", "parse_fns", default=None) or {},
        )


@dataclass
class AnalysisRequest:
    """Bundle text plus options, optionally with a structured module manifest."""

    code: str = ""
    options: AnalysisOptions = field(default_factory=AnalysisOptions)
    manifest: Optional[Mapping[str, Any]] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AnalysisRequest":
        """Build a request from a flat mapping such as ``{"code": ..., "gzip": True}``."""
        return cls(
            code=data.get("code") or "",
            options=AnalysisOptions.from_mapping(data),
            manifest=data.get("manifest"),
        )


@dataclass
class AnalysisResult:
    """Flat, sized module model returned by the engine."""

    meta: Dict[str, int]
    sizes: List[Module]
    duplicates: Optional[List[DuplicateGroup]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "meta": dict(self.meta),
            "sizes": [module.to_dict() for module in self.sizes],
        }
        if self.duplicates is not None:
            data["duplicates"] = [group.to_dict() for group in self.duplicates]
        return data

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AnalysisResult":
        duplicates = payload.get("duplicates")
        return cls(
            meta={str(key): int(value) for key, value in (payload.get("meta") or {}).items()},
            sizes=[Module.from_dict(item) for item in payload.get("sizes") or []],
            duplicates=(
                [DuplicateGroup.from_dict(item) for item in duplicates]
                if duplicates is not None
                else None
            ),
        )


@dataclass
class CacheEntry:
    """Stored analysis result keyed by request fingerprint."""

    fingerprint: str
    kind: str
    result: AnalysisResult
    created_at: str
