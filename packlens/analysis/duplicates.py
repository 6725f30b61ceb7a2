"""Content-equality grouping of duplicated bundle modules."""

from __future__ import annotations

import hashlib
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..models import DuplicateGroup, Module, ModuleType

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_source(source: str) -> str:
    """Collapse whitespace-only differences."""
    return _WHITESPACE_RE.sub(" ", source).strip()


def content_hash(source: str) -> Optional[str]:
    """Hash normalized source; empty sources have no hash and never group."""
    normalized = normalize_source(source)
    if not normalized:
        return None
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class DuplicateGrouper:
    """Groups modules whose normalized source and base name both match."""

    def group(self, modules: Sequence[Module]) -> List[DuplicateGroup]:
        buckets: Dict[Tuple[str, str], List[Module]] = {}
        for module in modules:
            if module.source is None:
                continue
            digest = content_hash(module.source)
            if digest is None:
                continue
            # dicts keep insertion order, so buckets follow first occurrence.
            buckets.setdefault((module.base_name, digest), []).append(module)

        groups: List[DuplicateGroup] = []
        for (base_name, digest), members in buckets.items():
            if len(members) < 2:
                continue
            for member in members:
                member.type = ModuleType.DUPLICATE
            groups.append(
                DuplicateGroup(
                    base_name=base_name,
                    hash=digest,
                    size=members[0].size,
                    module_ids=[member.id for member in members],
                )
            )
        return groups


def num_files_with_duplicates(groups: Iterable[DuplicateGroup]) -> int:
    return len({group.base_name for group in groups})


__all__ = ["DuplicateGrouper", "content_hash", "normalize_source", "num_files_with_duplicates"]
