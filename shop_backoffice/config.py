from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_API_TIMEOUT,
    EXCHANGE_SEARCH_DEBOUNCE_MS,
    LOG_DIR,
    SEARCH_DEBOUNCE_MS,
)

BASE_DIR = Path(__file__).resolve().parent


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}.") from None


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    return int(_env_float(env, key, float(default)))


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings for the back office client.

    Values come from SHOP_* environment variables; anything unset falls back
    to the defaults in constants.py.
    """
    api_base_url: str = DEFAULT_API_BASE_URL
    api_token: Optional[str] = None
    api_timeout: float = DEFAULT_API_TIMEOUT
    search_debounce_ms: int = SEARCH_DEBOUNCE_MS  # reserved, see constants.py
    exchange_search_debounce_ms: int = EXCHANGE_SEARCH_DEBOUNCE_MS
    log_dir: Path = BASE_DIR.parent / LOG_DIR

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        log_dir = env.get("SHOP_LOG_DIR")
        return cls(
            api_base_url=(env.get("SHOP_API_BASE_URL") or DEFAULT_API_BASE_URL).rstrip("/"),
            api_token=env.get("SHOP_API_TOKEN") or None,
            api_timeout=_env_float(env, "SHOP_API_TIMEOUT", DEFAULT_API_TIMEOUT),
            search_debounce_ms=_env_int(env, "SHOP_SEARCH_DEBOUNCE_MS", SEARCH_DEBOUNCE_MS),
            exchange_search_debounce_ms=_env_int(
                env, "SHOP_EXCHANGE_SEARCH_DEBOUNCE_MS", EXCHANGE_SEARCH_DEBOUNCE_MS
            ),
            log_dir=Path(log_dir) if log_dir else BASE_DIR.parent / LOG_DIR,
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Process-wide settings, read from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
