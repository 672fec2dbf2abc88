"""TOML config loading, profiles and logging setup."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

# Default config search path (project root or cwd)
_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"
_CWD_CONFIG = Path.cwd() / "config"


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override values take precedence."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir(config_dir: Path | None = None) -> Path:
    if config_dir is not None:
        return config_dir
    if _CWD_CONFIG.exists():
        return _CWD_CONFIG
    return _CONFIG_DIR


def load_config(profile: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Load merged config from default.toml and optional profile overlay."""
    config_dir = _find_config_dir(config_dir)
    default_path = config_dir / "default.toml"
    base: dict[str, Any] = _load_toml(default_path) if default_path.exists() else {}
    if profile:
        profile_path = config_dir / f"{profile}.toml"
        if profile_path.exists():
            overlay = _load_toml(profile_path)
            base = _deep_merge(base, overlay)
    return base


def get_settings(profile: str | None = None, config_dir: Path | None = None) -> Settings:
    """Return Settings instance from merged config."""
    raw = load_config(profile, config_dir)
    return Settings.from_dict(raw)


class Settings:
    """Application settings from TOML config."""

    def __init__(
        self,
        *,
        gateway: dict[str, Any] | None = None,
        chain: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
        api: dict[str, Any] | None = None,
    ):
        self.gateway = gateway or {}
        self.chain = chain or {}
        self.logging = logging or {}
        self.api = api or {}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        return cls(
            gateway=raw.get("gateway"),
            chain=raw.get("chain"),
            logging=raw.get("logging"),
            api=raw.get("api"),
        )

    # Convenience accessors with defaults
    @property
    def gateway_base_url(self) -> str:
        return self.gateway.get("base_url", "https://gateway.pinata.cloud/ipfs/")

    @property
    def native_scheme(self) -> str:
        return self.gateway.get("native_scheme", "ipfs://")

    @property
    def gateway_timeout_sec(self) -> float:
        return float(self.gateway.get("timeout_sec", 30.0))

    @property
    def gateway_max_retries(self) -> int:
        return int(self.gateway.get("max_retries", 0))

    @property
    def retry_base_delay_sec(self) -> float:
        return float(self.gateway.get("retry_base_delay_sec", 0.5))

    @property
    def rpc_url(self) -> str:
        return self.chain.get("rpc_url", "http://127.0.0.1:8545")

    @property
    def asset_registry_address(self) -> str:
        return self.chain.get("asset_registry_address", "")

    @property
    def marketplace_registry_address(self) -> str:
        return self.chain.get("marketplace_registry_address", "")

    @property
    def account(self) -> str | None:
        return self.chain.get("account") or None

    @property
    def private_key(self) -> str | None:
        env_name = self.chain.get("private_key_env", "NFTCAT_PRIVATE_KEY")
        return os.environ.get(env_name) or None

    @property
    def price_max_retries(self) -> int:
        return int(self.chain.get("price_max_retries", 0))

    @property
    def confirmation_timeout_sec(self) -> float:
        return float(self.chain.get("confirmation_timeout_sec", 120.0))

    @property
    def api_host(self) -> str:
        return self.api.get("host", "127.0.0.1")

    @property
    def api_port(self) -> int:
        return int(self.api.get("port", 8000))

    @property
    def logging_level(self) -> str:
        return self.logging.get("level", "INFO").upper()

    @property
    def logging_format(self) -> str:
        return self.logging.get("format", "console")

    @property
    def logging_level_num(self) -> int:
        return getattr(logging, self.logging_level, logging.INFO)


def configure_logging(settings: Settings) -> None:
    """Configure structlog with settings. Call once at application entry."""
    import structlog

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.logging_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
