"""Bundle analysis engine and its pipeline stages."""

from __future__ import annotations

from .duplicates import DuplicateGrouper
from .engine import AnalysisEngine, AnalysisKind
from .flatten import ModuleTreeFlattener
from .sizes import SizeEstimator

__all__ = [
    "AnalysisEngine",
    "AnalysisKind",
    "DuplicateGrouper",
    "ModuleTreeFlattener",
    "SizeEstimator",
]
