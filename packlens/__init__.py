"""Static analysis of bundler output: module sizes, duplicates and cached results."""

from .analysis import AnalysisEngine, AnalysisKind
from .daemon import ResultCache
from .errors import OptionError, PacklensError, ParseError, StoreError
from .models import (
    AnalysisOptions,
    AnalysisRequest,
    AnalysisResult,
    CacheEntry,
    DuplicateGroup,
    Module,
    ModuleType,
)

__version__ = "1.0.0"

__all__ = [
    "AnalysisEngine",
    "AnalysisKind",
    "AnalysisOptions",
    "AnalysisRequest",
    "AnalysisResult",
    "CacheEntry",
    "DuplicateGroup",
    "Module",
    "ModuleType",
    "OptionError",
    "PacklensError",
    "ParseError",
    "ResultCache",
    "StoreError",
]
