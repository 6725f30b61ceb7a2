"""Raw, minified and compressed size accounting for bundle modules."""

from __future__ import annotations

import gzip
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence

import rjsmin

from ..models import AnalysisOptions, Module, ModuleType


@dataclass(frozen=True)
class SizeReport:
    size: int
    minified_size: Optional[int] = None
    gzip_size: Optional[int] = None


def byte_length(text: str) -> int:
    return len(text.encode("utf-8"))


def minified_length(source: str) -> int:
    return byte_length(rjsmin.jsmin(source))


def gzip_length(payload: str) -> int:
    # mtime=0 keeps the gzip header, and so the length, deterministic.
    return len(gzip.compress(payload.encode("utf-8"), mtime=0))


def measure(source: str, *, minified: bool = False, gzip: bool = False) -> SizeReport:
    """Size a single unit of source text."""
    return SizeReport(
        size=byte_length(source),
        minified_size=minified_length(source) if minified else None,
        gzip_size=gzip_length(source) if gzip else None,
    )


class SizeEstimator:
    """Fills ``size`` and, on request, ``minified_size``/``gzip_size`` in place."""

    def estimate(self, modules: Sequence[Module], options: AnalysisOptions) -> None:
        for module in modules:
            if module.type is ModuleType.SYNTHETIC or module.source is None:
                # No retrievable source: keep the declared size, claim no savings.
                if options.minified:
                    module.minified_size = module.size
                if options.gzip:
                    module.gzip_size = gzip_length("")
                continue
            report = measure(module.source, minified=options.minified, gzip=options.gzip)
            module.size = report.size
            module.minified_size = report.minified_size
            module.gzip_size = report.gzip_size

    @staticmethod
    def totals(modules: Iterable[Module], options: AnalysisOptions) -> Dict[str, int]:
        """Aggregate sizes across modules for result metadata."""
        items = list(modules)
        totals = {"size": sum(module.size for module in items)}
        if options.minified:
            totals["minifiedSize"] = sum(module.minified_size or 0 for module in items)
        if options.gzip:
            totals["gzipSize"] = sum(module.gzip_size or 0 for module in items)
        return totals


__all__ = ["SizeEstimator", "SizeReport", "byte_length", "gzip_length", "measure", "minified_length"]
