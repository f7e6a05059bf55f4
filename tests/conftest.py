"""Shared fixtures: isolate tests from MCAP_* environment overrides."""
from __future__ import annotations

import pytest

_ENV_KEYS = ("MCAP_CONFIG_PATH", "MCAP_DEFAULT_DAYS", "MCAP_HTTP_TIMEOUT_S", "MCAP_PROVIDER_PRIORITY")


@pytest.fixture(autouse=True)
def _clean_mcap_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
