"""Fingerprint-keyed, persisted cache in front of the analysis engine."""

from __future__ import annotations

import asyncio
import hashlib
import json
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from .analysis.engine import AnalysisEngine, AnalysisKind, validate_options
from .config import PacklensConfig
from .errors import StoreError
from .logging import get_logger
from .models import AnalysisRequest, AnalysisResult, CacheEntry
from .stores import ResultStore
from .stores.result_store import utc_timestamp

RequestLike = Union[AnalysisRequest, Mapping[str, Any]]


@dataclass
class CacheStats:
    """Counters describing how requests were served."""

    hits: int = 0
    misses: int = 0
    coalesced: int = 0


def fingerprint(kind: AnalysisKind | str, request: AnalysisRequest) -> str:
    """Deterministic hash over the operation, the input and the options that shape the result."""
    kind = AnalysisKind.parse(kind)
    payload = {
        "kind": kind.value,
        "code": request.code,
        "manifest": request.manifest,
        "options": {
            "minified": request.options.minified,
            "gzip": request.options.gzip,
        },
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class ResultCache:
    """Memoizes engine results across calls and process lifetimes.

    Requests with the same fingerprint share a single cold computation: the
    first caller submits it to the worker pool and later callers attach to the
    same future until it settles. A failed computation is reported to every
    attached caller and then forgotten, so the next call retries.
    """

    def __init__(
        self,
        store_path: Path | str,
        *,
        engine: AnalysisEngine | None = None,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self.store = ResultStore(Path(store_path))
        self.engine = engine or AnalysisEngine()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(thread_name_prefix="packlens-analysis")
        self._inflight: Dict[str, Future[AnalysisResult]] = {}
        self._lock = threading.Lock()
        self.stats = CacheStats()
        self.logger = get_logger("daemon")

    @classmethod
    def create(
        cls,
        config: PacklensConfig | None = None,
        *,
        store_path: Path | str | None = None,
        engine: AnalysisEngine | None = None,
    ) -> "ResultCache":
        """Build a cache from explicit path or the configured store location."""
        if store_path is None:
            if config is None:
                raise ValueError("Either config or store_path is required")
            store_path = config.cache.path
        return cls(store_path, engine=engine)

    # ------------------------------------------------------------------
    # Operations

    async def sizes(self, request: RequestLike) -> AnalysisResult:
        return await self.analyze(AnalysisKind.SIZES, request)

    async def duplicates(self, request: RequestLike) -> AnalysisResult:
        return await self.analyze(AnalysisKind.DUPLICATES, request)

    async def combined(self, request: RequestLike) -> AnalysisResult:
        return await self.analyze(AnalysisKind.COMBINED, request)

    async def analyze(self, kind: AnalysisKind | str, request: RequestLike) -> AnalysisResult:
        kind = AnalysisKind.parse(kind)
        if not isinstance(request, AnalysisRequest):
            request = AnalysisRequest.from_mapping(request)
        validate_options(request)
        key = fingerprint(kind, request)

        entry = await asyncio.to_thread(self.store.get, key)
        if entry is not None:
            with self._lock:
                self.stats.hits += 1
            self.logger.debug("Cache hit for %s %s", kind.value, key[:12])
            return entry.result

        with self._lock:
            future = self._inflight.get(key)
            if future is None:
                future = self._executor.submit(self._compute, kind, request, key)
                self._inflight[key] = future
            else:
                self.stats.coalesced += 1
                self.logger.debug("Joining in-flight %s analysis %s", kind.value, key[:12])
        future.add_done_callback(lambda done: self._forget(key, done))

        # Shield so an abandoned caller never cancels the shared computation.
        return await asyncio.shield(asyncio.wrap_future(future))

    # ------------------------------------------------------------------
    # Lifecycle

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    async def __aenter__(self) -> "ResultCache":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await asyncio.to_thread(self.close)

    # ------------------------------------------------------------------
    # Internal helpers

    def _compute(self, kind: AnalysisKind, request: AnalysisRequest, key: str) -> AnalysisResult:
        # A computation that finished between the store lookup and submission
        # has already been written.
        entry = self.store.get(key)
        if entry is not None:
            with self._lock:
                self.stats.hits += 1
            return entry.result

        with self._lock:
            self.stats.misses += 1
        self.logger.debug("Cache miss for %s %s; running analysis", kind.value, key[:12])
        result = self.engine.analyze(kind, request)
        try:
            self.store.put(
                CacheEntry(
                    fingerprint=key,
                    kind=kind.value,
                    result=result,
                    created_at=utc_timestamp(),
                )
            )
        except StoreError as exc:
            self.logger.error("Failed to persist %s analysis %s: %s", kind.value, key[:12], exc)
            raise
        return result

    def _forget(self, key: str, future: Future[AnalysisResult]) -> None:
        with self._lock:
            if self._inflight.get(key) is future:
                del self._inflight[key]


def create(config: PacklensConfig | None = None, **kwargs: Any) -> ResultCache:
    """Module-level shortcut for :meth:`ResultCache.create`."""
    return ResultCache.create(config, **kwargs)


__all__ = ["CacheStats", "ResultCache", "create", "fingerprint"]
