"""YAML config loader."""

import os
from dataclasses import dataclass, field
from typing import Dict

import yaml

from .errors import ConfigurationError


@dataclass
class HttpConfig:
    timeout: float = 120.0
    connect_timeout: float = 30.0
    user_agent: str = "curl/7.74.0"


@dataclass
class BuildConfig:
    workers: int = 1


@dataclass
class VendorConfig:
    enabled: bool = True
    max_in_flight: int = 0  # 0 means the vendor's own default


@dataclass
class AppConfig:
    data_dir: str = "."
    log_dir: str = "logs"
    http: HttpConfig = field(default_factory=HttpConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    vendors: Dict[str, VendorConfig] = field(default_factory=dict)

    def vendor(self, name: str) -> VendorConfig:
        return self.vendors.get(name, VendorConfig())


def _pick(cls, raw):
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigurationError(f"expected a mapping for {cls.__name__}, got {raw!r}")
    return cls(**{k: v for k, v in raw.items() if k in cls.__dataclass_fields__})


def load_config(config_path: str = "config.yaml") -> AppConfig:
    """Load the config file; a missing file yields the defaults."""
    if not os.path.exists(config_path):
        return AppConfig()

    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"could not load config {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"config {config_path} must be a mapping")

    vendors = {}
    for name, v_raw in (raw.get("vendors") or {}).items():
        vendors[name] = _pick(VendorConfig, v_raw)

    build = _pick(BuildConfig, raw.get("build"))
    if build.workers < 1:
        raise ConfigurationError(f"build.workers must be >= 1, got {build.workers}")

    return AppConfig(
        data_dir=raw.get("data_dir", "."),
        log_dir=raw.get("log_dir", "logs"),
        http=_pick(HttpConfig, raw.get("http")),
        build=build,
        vendors=vendors,
    )
