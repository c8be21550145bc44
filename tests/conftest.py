from __future__ import annotations

import pytest
from helpers import FakeDirectory

from peering_audit import config


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def clean_settings(monkeypatch: pytest.MonkeyPatch):
    """Settings loaded from the test environment only, never from a local .env."""
    monkeypatch.setattr(config, "load_dotenv", lambda **_: None)
    config._load_settings_cached.cache_clear()
    yield
    config._load_settings_cached.cache_clear()
