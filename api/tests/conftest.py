"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _reset_env_between_tests() -> None:
    for key in ("DATABASE_URL", "INTERNAL_API_KEY", "PACKAGE_STORE_PATH", "CORE_SLOW_OPERATION_MS"):
        os.environ.pop(key, None)


@pytest.fixture
def store():
    """Fresh in-memory store per test."""
    from app.adapters.package_store import InMemoryPackageStore

    return InMemoryPackageStore(persist_path=None)
