"""
Load config from config.yaml with optional env overrides.
Single source of truth for HTTP timeouts, retry policy, provider ordering,
health-marking policy, and CLI defaults.
"""
from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

# Defaults if no YAML or env
_DEFAULTS: Dict[str, Any] = {
    "api": {
        "timeout_s": 10.0,
        "health_timeout_s": 5.0,
        "user_agent": "ChainChirp-CLI/1.0.0",
    },
    "defaults": {
        "currency": "usd",
        "watch_interval_s": 30,
        "clear_screen": True,
    },
    "retry": {
        "max_retries": 3,
        "base_delay_s": 1.0,
        "backoff_factor": 2.0,
    },
    "providers": {
        "market_priority": [
            "coingecko",
            "coinmarketcap",
            "coinapi",
            "binance",
            "coinbase",
            "kraken",
        ],
        "chain_priority": ["mempool", "blockstream", "blockchain_info"],
        "skip": [],
    },
    "health": {
        # Status codes that flip a provider to unhealthy; override in config.yaml.
        "unhealthy_status_codes": [401, 403, 404, 500, 502, 503, 504],
        "mark_network_errors": True,
        "mark_normalization_errors": False,
    },
    "debug": False,
}

_TRUTHY = {"1", "true", "yes", "on"}


def _config_yaml_path() -> Path:
    """Config.yaml lives at repo root (parent of package dir) unless CHAINCHIRP_CONFIG is set."""
    override = os.environ.get("CHAINCHIRP_CONFIG", "").strip()
    if override:
        return Path(override)
    return Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    config_path = _config_yaml_path()
    if not config_path.exists():
        return {}
    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        logger.warning("Ignoring unreadable config %s: %s", config_path, exc)
        return {}
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
    timeout = os.environ.get("CHAINCHIRP_API_TIMEOUT")
    if timeout:
        try:
            overrides.setdefault("api", {})["timeout_s"] = float(timeout)
        except ValueError:
            logger.warning("Ignoring non-numeric CHAINCHIRP_API_TIMEOUT=%r", timeout)
    currency = os.environ.get("CHAINCHIRP_CURRENCY")
    if currency:
        overrides.setdefault("defaults", {})["currency"] = currency.strip().lower()
    debug = os.environ.get("CHAINCHIRP_DEBUG") or os.environ.get("DEBUG")
    if debug and debug.strip().lower() in _TRUTHY:
        overrides["debug"] = True
    return overrides


def get_config() -> dict:
    """Return merged config: defaults <- config.yaml <- env."""
    merged = _deep_merge(copy.deepcopy(_DEFAULTS), _load_yaml())
    merged = _deep_merge(merged, _env_overrides())
    return merged


# Convenience accessors
def default_currency() -> str:
    return str(get_config()["defaults"]["currency"]).lower()


def watch_interval_s() -> int:
    return int(get_config()["defaults"]["watch_interval_s"])


def clear_screen() -> bool:
    return bool(get_config()["defaults"]["clear_screen"])


def debug_enabled() -> bool:
    return bool(get_config().get("debug", False))


def provider_secret(env_name: str, default: str = "DEMO_KEY") -> str:
    """Resolve an externally supplied provider secret; falls back to the public demo key."""
    value = os.environ.get(env_name, "").strip()
    return value or default
