from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.bundle_builder import BundleBuilder


@pytest.fixture
def bundle_builder(tmp_path: Path) -> BundleBuilder:
    """Provide a bundle/manifest builder rooted at the pytest tmp_path."""
    return BundleBuilder(tmp_path)
