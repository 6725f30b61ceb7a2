"""Analysis pipeline: flatten, size and optionally group duplicate modules."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from ..errors import OptionError
from ..logging import StageTimer, get_logger
from ..models import AnalysisOptions, AnalysisRequest, AnalysisResult, DuplicateGroup, Module, ModuleType
from .duplicates import DuplicateGrouper, num_files_with_duplicates
from .flatten import ModuleTreeFlattener
from .sizes import SizeEstimator

FORMATS = frozenset({"object", "json", "text", "tsv"})


class AnalysisKind(str, Enum):
    """Selects which pipeline stages run."""

    SIZES = "sizes"
    DUPLICATES = "duplicates"
    COMBINED = "combined"

    @property
    def groups_duplicates(self) -> bool:
        return self is not AnalysisKind.SIZES

    @classmethod
    def parse(cls, value: "AnalysisKind | str") -> "AnalysisKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            choices = ", ".join(kind.value for kind in cls)
            raise OptionError(f"Unknown analysis kind {value!r}; expected one of: {choices}") from None


class AnalysisEngine:
    """Pure, reentrant analysis over one request at a time."""

    def __init__(
        self,
        flattener: ModuleTreeFlattener | None = None,
        estimator: SizeEstimator | None = None,
        grouper: DuplicateGrouper | None = None,
    ) -> None:
        self.flattener = flattener or ModuleTreeFlattener()
        self.estimator = estimator or SizeEstimator()
        self.grouper = grouper or DuplicateGrouper()
        self.logger = get_logger("engine")

    def analyze(self, kind: AnalysisKind | str, request: AnalysisRequest) -> AnalysisResult:
        kind = AnalysisKind.parse(kind)
        validate_options(request)
        options = request.options

        timer = StageTimer()
        with timer.stage("flatten"):
            modules = self.flattener.flatten(request)
        with timer.stage("sizes"):
            self.estimator.estimate(modules, options)

        groups: Optional[List[DuplicateGroup]] = None
        if kind.groups_duplicates:
            with timer.stage("duplicates"):
                groups = self.grouper.group(modules)

        self.logger.debug("%s analysis of %d modules: %s", kind.value, len(modules), timer.summary())

        meta = self._build_meta(modules, groups, options)
        for module in modules:
            module.source = None
        return AnalysisResult(meta=meta, sizes=modules, duplicates=groups)

    def _build_meta(
        self,
        modules: List[Module],
        groups: Optional[List[DuplicateGroup]],
        options: AnalysisOptions,
    ) -> Dict[str, int]:
        meta: Dict[str, int] = {
            "numFiles": len(modules),
            "numCode": sum(1 for module in modules if module.type is not ModuleType.SYNTHETIC),
            "numSynthetic": sum(1 for module in modules if module.type is ModuleType.SYNTHETIC),
        }
        meta.update(self.estimator.totals(modules, options))
        if groups is not None:
            meta["numFilesWithDuplicates"] = num_files_with_duplicates(groups)
            meta["numDuplicateGroups"] = len(groups)
            meta["numDuplicateModules"] = sum(group.count for group in groups)
            meta["wastedBytes"] = sum(group.wasted_bytes for group in groups)
        return meta


def validate_options(request: AnalysisRequest) -> None:
    """Reject option values the engine cannot honour."""
    options = request.options
    if not isinstance(options, AnalysisOptions):
        raise OptionError("options must be an AnalysisOptions instance")
    for name in ("minified", "gzip"):
        if not isinstance(getattr(options, name), bool):
            raise OptionError(f"Option '{name}' must be a boolean")
    if options.format not in FORMATS:
        choices = ", ".join(sorted(FORMATS))
        raise OptionError(f"Unknown format {options.format!r}; expected one of: {choices}")
    if not isinstance(request.code, str):
        raise OptionError("Request 'code' must be a string")
    if (options.minified or options.gzip) and not request.code and request.manifest is None:
        raise OptionError("Size options require bundle text or a manifest to read sources from")


__all__ = ["AnalysisEngine", "AnalysisKind", "FORMATS", "validate_options"]
