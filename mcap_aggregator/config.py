"""
Load config from config.yaml with optional env overrides.
Single source of truth for provider priority, rate-limit spacing, cache TTLs and defaults.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

# Defaults if no YAML or env
_DEFAULTS: Dict[str, Any] = {
    "providers": {
        "priority": ["geckoterminal", "coingecko", "dexscreener"],
        "geckoterminal": {
            "base_url": "https://api.geckoterminal.com/api/v2",
            "min_interval_s": 2.1,
            "cache_ttl_s": 300,
        },
        "coingecko": {
            "base_url": "https://api.coingecko.com/api/v3",
            "min_interval_s": 3.0,
            "cache_ttl_s": 300,
        },
        "dexscreener": {
            "base_url": "https://api.dexscreener.com",
            "min_interval_s": 0.2,
            "cache_ttl_s": 300,
        },
    },
    "rate_limit": {"cooldown_s": 60, "max_retries": 2},
    "http": {"timeout_s": 15.0},
    "cache": {"result_ttl_s": 300},
    "defaults": {"days": 30},
}


def _config_yaml_path() -> Path:
    """Config.yaml lives at repo root (parent of package dir) unless MCAP_CONFIG_PATH is set."""
    override = os.environ.get("MCAP_CONFIG_PATH")
    if override:
        return Path(override)
    return Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    config_path = _config_yaml_path()
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _env_overrides() -> dict:
    overrides: dict = {}
    days = os.environ.get("MCAP_DEFAULT_DAYS")
    if days:
        overrides.setdefault("defaults", {})["days"] = int(days)
    timeout = os.environ.get("MCAP_HTTP_TIMEOUT_S")
    if timeout:
        overrides.setdefault("http", {})["timeout_s"] = float(timeout)
    priority = os.environ.get("MCAP_PROVIDER_PRIORITY")
    if priority:
        names = [p.strip() for p in priority.split(",") if p.strip()]
        overrides.setdefault("providers", {})["priority"] = names
    return overrides


def get_config() -> dict:
    """Return merged config: defaults <- config.yaml <- env."""
    merged = _deep_merge(_DEFAULTS, _load_yaml())
    merged = _deep_merge(merged, _env_overrides())
    return merged


# Convenience accessors
def provider_priority() -> List[str]:
    return list(get_config()["providers"]["priority"])


def provider_settings(name: str) -> Dict[str, Any]:
    """Per-provider block (base_url, min_interval_s, cache_ttl_s); empty dict if unknown."""
    block = get_config()["providers"].get(name)
    return dict(block) if isinstance(block, dict) else {}


def cooldown_seconds() -> int:
    return int(get_config()["rate_limit"]["cooldown_s"])


def max_throttle_retries() -> int:
    return int(get_config()["rate_limit"]["max_retries"])


def http_timeout_s() -> float:
    return float(get_config()["http"]["timeout_s"])


def result_cache_ttl_s() -> float:
    return float(get_config()["cache"]["result_ttl_s"])


def default_days() -> int:
    return int(get_config()["defaults"]["days"])
