"""Configuration and API key resolution for Twelve Data access.

The API key is resolved once per process, in this order:

1. an explicit key passed by the caller,
2. the process-wide cache (filled on first use from 3 and 4),
3. the ``api_key`` (or ``api``) entry of the YAML config file,
4. the ``TWELVEDATA_API_KEY`` environment variable.

The config file lives in ``$TWELVEDATA_CONFIG_DIR`` when set, otherwise in
``$XDG_CONFIG_HOME/twelvedata`` (``~/.config/twelvedata``), and is named
``config.yaml``. A one-line ``api: YOUR_KEY`` file is valid YAML and works too.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import yaml

from twelvedata_provider.errors import TwelveDataInvalidArgumentError, TwelveDataNotConfiguredError
from twelvedata_provider.formats import TIME_INDEX_SUPPORT_MODES, TimeIndexSupport

logger = logging.getLogger(__name__)

API_KEY_ENV = "TWELVEDATA_API_KEY"
CONFIG_DIR_ENV = "TWELVEDATA_CONFIG_DIR"
CONFIG_FILE_NAME = "config.yaml"
DEFAULT_BASE_URL = "https://api.twelvedata.com"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_TIME_INDEX_SUPPORT = "native"
DEFAULT_TIMEZONE = "UTC"

_FILE_KEYS = ("api_key", "api")

_cache_lock = threading.Lock()
_cache_loaded = False
_cached_api_key: Optional[str] = None


def _strip_or_none(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _env_float(name: str, default: float) -> float:
    raw = _strip_or_none(os.environ.get(name))
    if raw is None:
        return float(default)
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return float(default)


def default_config_path() -> Path:
    override = _strip_or_none(os.environ.get(CONFIG_DIR_ENV))
    if override:
        return Path(override).expanduser() / CONFIG_FILE_NAME
    xdg = _strip_or_none(os.environ.get("XDG_CONFIG_HOME"))
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / "twelvedata" / CONFIG_FILE_NAME


def load_api_key_from_file(path: Union[str, Path, None] = None) -> Optional[str]:
    """Return the key stored in the config file, or None when there is none."""
    target = Path(path) if path is not None else default_config_path()
    if not target.is_file():
        return None

    with open(target, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return None
    if not isinstance(data, dict):
        raise TwelveDataNotConfiguredError(
            f"Twelve Data config file {target} must hold a mapping.",
            payload={"path": str(target)},
        )

    for key in _FILE_KEYS:
        value = _strip_or_none(data.get(key))
        if value:
            return value
    return None


def load_api_key_from_env() -> Optional[str]:
    return _strip_or_none(os.environ.get(API_KEY_ENV))


def _load_uncached(config_path: Union[str, Path, None]) -> Optional[str]:
    from_file = load_api_key_from_file(config_path)
    if from_file:
        logger.debug("Twelve Data API key loaded from config file")
        return from_file
    from_env = load_api_key_from_env()
    if from_env:
        logger.debug("Twelve Data API key loaded from %s", API_KEY_ENV)
    return from_env


def cached_api_key() -> Optional[str]:
    """Return the process-wide key, reading file and environment on first use."""
    global _cache_loaded, _cached_api_key
    if _cache_loaded:
        return _cached_api_key
    with _cache_lock:
        if not _cache_loaded:
            _cached_api_key = _load_uncached(None)
            _cache_loaded = True
    return _cached_api_key


def clear_cached_api_key() -> None:
    global _cache_loaded, _cached_api_key
    with _cache_lock:
        _cache_loaded = False
        _cached_api_key = None


def resolve_api_key(explicit: Optional[str] = None, *, config_path: Union[str, Path, None] = None) -> str:
    """Resolve the API key or raise :class:`TwelveDataNotConfiguredError`.

    Passing ``config_path`` bypasses the process-wide cache and reads that file
    (then the environment) directly.
    """
    key = _strip_or_none(explicit)
    if key:
        return key

    key = _load_uncached(config_path) if config_path is not None else cached_api_key()
    if not key:
        raise TwelveDataNotConfiguredError(
            f"No Twelve Data API key: pass one explicitly, write it to {default_config_path()} "
            f"or set {API_KEY_ENV}.",
        )
    return key


def save_api_key(api_key: str, *, config_path: Union[str, Path, None] = None) -> Path:
    """Store ``api_key`` in the config file, keeping any other entries."""
    key = _strip_or_none(api_key)
    if not key:
        raise TwelveDataNotConfiguredError("Refusing to store an empty Twelve Data API key.")

    target = Path(config_path) if config_path is not None else default_config_path()
    data: dict = {}
    if target.is_file():
        with open(target, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
        if isinstance(loaded, dict):
            data = loaded
    data.pop("api", None)
    data["api_key"] = key

    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False)
    clear_cached_api_key()
    logger.info("Twelve Data API key written to %s", target)
    return target


@dataclass(frozen=True)
class TwelveDataConfig:
    """Runtime configuration for the Twelve Data client.

    ``time_index_support`` selects how time-indexed output is produced
    (``native``, ``fallback`` to tabular, or ``unavailable``).
    ``default_timezone`` is used for intraday values when neither the request
    nor the response names a zone.
    """

    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    time_index_support: TimeIndexSupport = DEFAULT_TIME_INDEX_SUPPORT
    default_timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self) -> None:
        if self.time_index_support not in TIME_INDEX_SUPPORT_MODES:
            raise TwelveDataInvalidArgumentError(
                f"time_index_support must be one of {list(TIME_INDEX_SUPPORT_MODES)}, got {self.time_index_support!r}."
            )

    @staticmethod
    def from_env(
        *,
        api_key: Optional[str] = None,
        require_api_key: bool = True,
        config_path: Union[str, Path, None] = None,
    ) -> "TwelveDataConfig":
        if require_api_key:
            key = resolve_api_key(api_key, config_path=config_path)
        else:
            key = _strip_or_none(api_key) or (
                _load_uncached(config_path) if config_path is not None else cached_api_key()
            )

        support = (_strip_or_none(os.environ.get("TWELVEDATA_TIME_INDEX_SUPPORT")) or DEFAULT_TIME_INDEX_SUPPORT).lower()
        return TwelveDataConfig(
            api_key=str(key or ""),
            base_url=_strip_or_none(os.environ.get("TWELVEDATA_BASE_URL")) or DEFAULT_BASE_URL,
            timeout_seconds=_env_float("TWELVEDATA_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
            time_index_support=support,
            default_timezone=_strip_or_none(os.environ.get("TWELVEDATA_DEFAULT_TIMEZONE")) or DEFAULT_TIMEZONE,
        )
