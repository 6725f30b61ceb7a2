"""Configuration loading for packlens (.packlens.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_FILENAME = ".packlens.yml"
DEFAULT_CACHE_PATH = Path(".packlens") / "cache.json"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class CacheConfig:
    """Location of the persisted result store."""

    path: Path


@dataclass
class AnalysisDefaults:
    """Default analysis options applied when a request does not set them."""

    minified: bool = False
    gzip: bool = False
    format: str = "object"


@dataclass
class ServiceConfig:
    """Bind address for the optional HTTP service."""

    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class PacklensConfig:
    """Represents the settings defined in .packlens.yml."""

    root: Path
    cache: CacheConfig
    analysis: AnalysisDefaults = field(default_factory=AnalysisDefaults)
    service: ServiceConfig = field(default_factory=ServiceConfig)


def load_config(config_path: Path) -> PacklensConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()
    defaults = PacklensConfig(root=root, cache=CacheConfig(path=root / DEFAULT_CACHE_PATH))

    if not config_file.exists():
        return defaults

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    cache = defaults.cache
    cache_data = _as_dict(data.get("cache"))
    cache_path = _as_str(cache_data.get("path")) if cache_data else None
    if cache_path:
        cache = CacheConfig(path=(root / Path(cache_path).expanduser()).resolve())

    analysis = AnalysisDefaults()
    analysis_data = _as_dict(data.get("analysis"))
    if analysis_data:
        analysis.minified = _as_bool(analysis_data.get("minified")) or False
        analysis.gzip = _as_bool(analysis_data.get("gzip")) or False
        analysis.format = _as_str(analysis_data.get("format")) or analysis.format

    service = ServiceConfig()
    service_data = _as_dict(data.get("service"))
    if service_data:
        service.host = _as_str(service_data.get("host")) or service.host
        port = _as_int(service_data.get("port"))
        if port is not None:
            if not 0 < port < 65536:
                raise ConfigError(f"service.port must be between 1 and 65535, got {port}")
            service.port = port

    return PacklensConfig(root=root, cache=cache, analysis=analysis, service=service)


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


__all__ = [
    "AnalysisDefaults",
    "CacheConfig",
    "CONFIG_FILENAME",
    "ConfigError",
    "PacklensConfig",
    "ServiceConfig",
    "load_config",
]
