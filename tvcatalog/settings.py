"""
Configuration loading.

Settings come from an optional YAML file and are then overridden by
environment variables, so a serverless deployment can run from the
environment alone.

Deutsch:
    Laden der Konfiguration aus YAML-Datei und Umgebungsvariablen.
"""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from .errors import ConfigurationIncomplete

ENV_OVERRIDES = {
    "DATA_PROVIDER": "provider",
    "XTREAM_HOST": "base_url",
    "XTREAM_URL": "base_url",
    "XTREAM_USER": "username",
    "XTREAM_USERNAME": "username",
    "XTREAM_PASSWORD": "password",
    "M3U_URL": "m3u_url",
    "TVCATALOG_OFFSET": "offset",
    "TVCATALOG_TTL_MINUTES": "ttl_minutes",
    "TVCATALOG_REDIS_URL": "redis_url",
    "TVCATALOG_HISTORY_PATH": "history_path",
    "TVCATALOG_TIMEZONE": "timezone",
}

# XTREAM_HOST wins over XTREAM_URL, XTREAM_USER over XTREAM_USERNAME.
_ENV_PRIORITY = ("XTREAM_URL", "XTREAM_USERNAME")


class ProviderKind(str, Enum):
    XTREAM = "xtream"
    M3U = "m3u"


@dataclass
class Settings:
    """
    Deployment configuration. The core only uses it to drive the provider and
    to derive the cache key.

    Deutsch:
        Konfiguration einer Installation.
    """

    provider: ProviderKind = ProviderKind.XTREAM
    base_url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    m3u_url: Optional[str] = None
    offset: Optional[str] = None
    ttl_minutes: float = 20.0
    request_timeout: float = 10.0
    guide_timeout: float = 3.0
    max_entries: int = 2500
    catalog_limit: int = 1000
    history_capacity: int = 12
    history_path: Optional[Path] = None
    redis_url: Optional[str] = None
    local_cache_size: int = 8
    timezone: str = "Europe/Bucharest"
    upcoming_limit: int = 4

    def __post_init__(self) -> None:
        self.provider = ProviderKind(str(getattr(self.provider, "value", self.provider)).strip().lower())
        if self.base_url:
            self.base_url = self.base_url.rstrip("/")
        if self.history_path is not None and not isinstance(self.history_path, Path):
            self.history_path = Path(self.history_path)
        self.ttl_minutes = float(self.ttl_minutes)
        self.request_timeout = float(self.request_timeout)
        self.guide_timeout = float(self.guide_timeout)
        for name in ("max_entries", "catalog_limit", "history_capacity", "local_cache_size", "upcoming_limit"):
            setattr(self, name, int(getattr(self, name)))

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_minutes * 60.0

    def validate(self) -> None:
        if self.provider is ProviderKind.XTREAM:
            missing = [name for name in ("base_url", "username", "password") if not getattr(self, name)]
        else:
            missing = [] if self.m3u_url else ["m3u_url"]
        if missing:
            raise ConfigurationIncomplete(f"{self.provider.value} provider requires: {', '.join(missing)}")
        if self.ttl_minutes <= 0:
            raise ConfigurationIncomplete("ttl_minutes must be positive")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigurationIncomplete(f"unknown timezone {self.timezone}") from exc

    def cache_key(self) -> str:
        """
        Stable hash of everything that identifies the upstream data set.

        Deutsch:
            Stabiler Hash über Anbieter, Zugangsdaten und Offset.
        """

        identity = {
            "provider": self.provider.value,
            "url": self.base_url if self.provider is ProviderKind.XTREAM else self.m3u_url,
            "username": self.username,
            "password": self.password,
            "offset": self.offset,
        }
        encoded = json.dumps(identity, sort_keys=True, separators=(",", ":")).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()


def load_settings(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    values: Dict[str, Any] = {}
    if path is not None:
        values.update(_load_yaml(Path(path)))
    env = os.environ if environ is None else environ
    for env_name, attr in ENV_OVERRIDES.items():
        if env_name in _ENV_PRIORITY:
            continue
        value = env.get(env_name)
        if value is None or not value.strip():
            for fallback in _ENV_PRIORITY:
                if ENV_OVERRIDES[fallback] == attr and env.get(fallback, "").strip():
                    value = env[fallback]
                    break
        if value is not None and value.strip():
            values[attr] = value.strip()
    known = {item.name for item in fields(Settings)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationIncomplete(f"unknown configuration keys: {', '.join(unknown)}")
    try:
        return Settings(**values)
    except ValueError as exc:
        raise ConfigurationIncomplete(f"invalid configuration: {exc}") from exc


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationIncomplete("config must be a mapping")
    return {str(key): value for key, value in data.items()}
