"""Persistent store for analysis results keyed by request fingerprint."""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import StoreError
from ..logging import get_logger
from ..models import AnalysisResult, CacheEntry

_STORE_VERSION = 1

logger = get_logger("stores.result_store")


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class ResultStore:
    """File-backed mapping of fingerprint to serialized analysis result.

    Every ``put`` rewrites the whole file through a temporary sibling and an
    atomic rename, so a crash mid-write leaves the previous complete file in
    place.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._load(self._path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, fingerprint: str) -> Optional[CacheEntry]:
        with self._lock:
            raw = self._entries.get(fingerprint)
        if raw is None:
            return None
        return CacheEntry(
            fingerprint=fingerprint,
            kind=str(raw["kind"]),
            result=AnalysisResult.from_dict(raw["result"]),
            created_at=str(raw["createdAt"]),
        )

    def put(self, entry: CacheEntry) -> None:
        serialised = {
            "kind": entry.kind,
            "createdAt": entry.created_at,
            "result": entry.result.to_dict(),
        }
        with self._lock:
            previous = self._entries.get(entry.fingerprint)
            self._entries[entry.fingerprint] = serialised
            try:
                self._write()
            except StoreError:
                if previous is None:
                    self._entries.pop(entry.fingerprint, None)
                else:
                    self._entries[entry.fingerprint] = previous
                raise

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._write()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            return fingerprint in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Internal helpers

    def _load(self, path: Path) -> None:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StoreError(f"Unable to read result store {path}: {exc}") from exc
        if not text.strip():
            return
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StoreError(f"Result store {path} is corrupted: {exc}") from exc
        if not isinstance(data, dict) or data.get("version") != _STORE_VERSION:
            raise StoreError(f"Result store {path} has an unsupported layout")
        entries = data.get("entries")
        if not isinstance(entries, dict):
            raise StoreError(f"Result store {path} has no entries mapping")
        valid_entries: Dict[str, Dict[str, Any]] = {}
        for key, raw in entries.items():
            if not isinstance(raw, dict):
                continue
            if "kind" not in raw or "createdAt" not in raw or not isinstance(raw.get("result"), dict):
                continue
            valid_entries[key] = raw
        skipped = len(entries) - len(valid_entries)
        if skipped:
            logger.warning("Ignored %d malformed entries in %s", skipped, path)
        self._entries = valid_entries

    def _write(self) -> None:
        payload = {"version": _STORE_VERSION, "entries": self._entries}
        tmp: Optional[Path] = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            # Unique sibling per write; stores sharing a path never share a temp file.
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f"{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp = Path(handle.name)
                json.dump(payload, handle, sort_keys=True)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp, self._path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp is not None:
                with contextlib.suppress(OSError):
                    tmp.unlink()
            raise StoreError(f"Unable to write result store {self._path}: {exc}") from exc


__all__ = ["ResultStore", "utc_timestamp"]
