"""Process-wide settings for memocache.

Settings come from three places, later ones winning: the dataclass defaults,
a YAML file (``CacheSettings.from_yaml``) and ``MEMOCACHE_*`` environment
variables (``CacheSettings.from_env``). Most callers just use
:func:`get_settings`, which reads the environment once per process.

Usage:
    from memocache.config import get_settings

    capacity = get_settings().default_capacity

Environment Variables:
    MEMOCACHE_DEFAULT_CAPACITY: Default cache capacity (default: 16)
    MEMOCACHE_DEFAULT_LOAD_FACTOR: Default load factor (default: 0.75)
    MEMOCACHE_PRESSURE_CHECK_INTERVAL: Seconds between memory pressure
        probes in soft-valued caches (default: 1.0)
    MEMOCACHE_METRICS_ENABLED: Record Prometheus metrics (default: true)
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from memocache.errors import ConfigurationError

logger = logging.getLogger(__name__)

_ENV_KEYS = {
    "default_capacity": "MEMOCACHE_DEFAULT_CAPACITY",
    "default_load_factor": "MEMOCACHE_DEFAULT_LOAD_FACTOR",
    "pressure_check_interval_seconds": "MEMOCACHE_PRESSURE_CHECK_INTERVAL",
    "metrics_enabled": "MEMOCACHE_METRICS_ENABLED",
}


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class CacheSettings:
    """Defaults applied by the cache factory and soft-valued caches."""

    default_capacity: int = 16
    default_load_factor: float = 0.75
    pressure_check_interval_seconds: float = 1.0
    metrics_enabled: bool = True

    def validate(self) -> CacheSettings:
        """Raise ConfigurationError for out-of-range values; return self."""
        if self.default_capacity < 1:
            raise ConfigurationError(
                "default_capacity can not be < 1",
                parameter="default_capacity",
                value=self.default_capacity,
            )
        if self.default_load_factor <= 0:
            raise ConfigurationError(
                "default_load_factor must be > 0",
                parameter="default_load_factor",
                value=self.default_load_factor,
            )
        if self.pressure_check_interval_seconds < 0:
            raise ConfigurationError(
                "pressure_check_interval_seconds must be >= 0",
                parameter="pressure_check_interval_seconds",
                value=self.pressure_check_interval_seconds,
            )
        return self

    def with_overrides(self, **overrides: Any) -> CacheSettings:
        """Return a validated copy with the given fields replaced."""
        return replace(self, **overrides).validate()

    @classmethod
    def _coerce(cls, raw: dict[str, Any]) -> dict[str, Any]:
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for name, value in raw.items():
            if name not in known:
                logger.warning(f"[CacheSettings] Ignoring unknown setting: {name}")
                continue
            try:
                if name == "metrics_enabled":
                    values[name] = _parse_bool(value) if isinstance(value, str) else bool(value)
                elif name == "default_capacity":
                    values[name] = int(value)
                else:
                    values[name] = float(value)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"invalid value for {name}: {value!r}",
                    parameter=name,
                    value=value,
                ) from e
        return values

    @classmethod
    def from_env(cls, base: CacheSettings | None = None) -> CacheSettings:
        """Overlay ``MEMOCACHE_*`` environment variables onto ``base``."""
        raw = {
            name: os.environ[env_key]
            for name, env_key in _ENV_KEYS.items()
            if env_key in os.environ
        }
        return replace(base or cls(), **cls._coerce(raw)).validate()

    @classmethod
    def from_yaml(cls, path: str | Path, apply_env: bool = True) -> CacheSettings:
        """Load settings from a YAML mapping; missing keys keep defaults.

        The mapping may be top-level or nested under a ``memocache`` key;
        an empty section keeps the defaults. ``MEMOCACHE_*`` environment
        variables are overlaid on the result unless ``apply_env`` is False.
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"settings file must contain a mapping: {path}",
                context={"path": str(path)},
            )
        section = data.get("memocache", data) or {}
        if not isinstance(section, dict):
            raise ConfigurationError(
                f"memocache section must be a mapping: {path}",
                context={"path": str(path)},
            )
        settings = cls(**cls._coerce(section)).validate()
        if apply_env:
            return cls.from_env(base=settings)
        return settings


_settings: CacheSettings | None = None
_settings_lock = threading.Lock()


def get_settings() -> CacheSettings:
    """Return the process-wide settings, reading the environment on first use."""
    global _settings
    if _settings is None:
        with _settings_lock:
            if _settings is None:
                _settings = CacheSettings.from_env()
    return _settings


def configure(settings: CacheSettings) -> CacheSettings:
    """Install ``settings`` as the process-wide settings."""
    global _settings
    with _settings_lock:
        _settings = settings.validate()
    return _settings


def reset_settings() -> None:
    """Forget the cached settings so the next lookup re-reads the environment."""
    global _settings
    with _settings_lock:
        _settings = None
