"""
Config loader: YAML file -> validated mapping -> frozen dataclass tree.

Schema:   docs/config/history_config.schema.json
Example:  config.example.yaml

The wallet address and API base URL can come from the environment
(PACIFICA_WALLET, PACIFICA_API_URL); the file wins when both are set.
Without a config file every value falls back to its default.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml

logger = logging.getLogger("pacifica.config")


def _find_project_root() -> Path:
    """Walk up from this file looking for pyproject.toml; fall back to CWD."""
    candidate = Path(__file__).resolve().parent
    for _ in range(10):
        if (candidate / "pyproject.toml").exists():
            return candidate
        parent = candidate.parent
        if parent == candidate:
            break
        candidate = parent
    return Path.cwd()


_PROJECT_ROOT = _find_project_root()

DEFAULT_SCHEMA_PATH = _PROJECT_ROOT / "docs" / "config" / "history_config.schema.json"


class ConfigError(ValueError):
    """Config file is unreadable or fails schema validation."""


@dataclass(frozen=True)
class ApiConfig:
    base_url: str = "https://api.pacifica.fi/api/v1"
    timeout_seconds: float = 30.0
    max_retries: int = 3
    page_limit: int = 100


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests_per_minute: int = 120
    delay_ms: int = 500


@dataclass(frozen=True)
class OutputConfig:
    dir: str = "./output"
    format: str = "json"  # "json" | "console"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    structured_logs: bool = False


@dataclass(frozen=True)
class AppConfig:
    wallet: str = ""
    api: ApiConfig = field(default_factory=ApiConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _validate_schema(raw: dict, schema_path: Path) -> None:
    if not schema_path.exists():
        raise ConfigError(f"Config schema not found: {schema_path}")
    with open(schema_path) as f:
        schema = json.load(f)
    try:
        jsonschema.validate(instance=raw, schema=schema)
    except jsonschema.ValidationError as exc:
        location = "/".join(str(p) for p in exc.absolute_path) or "<root>"
        raise ConfigError(f"Config validation failed at {location}: {exc.message}") from exc


def _build_config(raw: dict[str, Any]) -> AppConfig:
    api_raw = raw.get("api", {})
    api_cfg = ApiConfig(
        base_url=str(api_raw.get("base_url") or os.environ.get("PACIFICA_API_URL") or ApiConfig.base_url),
        timeout_seconds=float(api_raw.get("timeout_seconds", 30.0)),
        max_retries=int(api_raw.get("max_retries", 3)),
        page_limit=int(api_raw.get("page_limit", 100)),
    )

    rl_raw = raw.get("rate_limit", {})
    rl_cfg = RateLimitConfig(
        max_requests_per_minute=int(rl_raw.get("max_requests_per_minute", 120)),
        delay_ms=int(rl_raw.get("delay_ms", 500)),
    )

    out_raw = raw.get("output", {})
    out_cfg = OutputConfig(
        dir=str(out_raw.get("dir", "./output")),
        format=str(out_raw.get("format", "json")),
    )

    log_raw = raw.get("logging", {})
    log_cfg = LoggingConfig(
        level=str(log_raw.get("level", "INFO")).upper(),
        structured_logs=bool(log_raw.get("structured_logs", False)),
    )

    return AppConfig(
        wallet=str(raw.get("wallet") or os.environ.get("PACIFICA_WALLET", "")),
        api=api_cfg,
        rate_limit=rl_cfg,
        output=out_cfg,
        logging=log_cfg,
    )


def load_config(
    path: str | Path | None = None,
    schema_path: str | Path | None = None,
) -> AppConfig:
    """
    Load configuration from a YAML file, or defaults when *path* is None.

    Raises FileNotFoundError for a missing file and ConfigError when the
    file is not a YAML mapping or fails schema validation.
    """
    if path is None:
        logger.debug("No config file given, using defaults")
        return _build_config({})

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file is not valid YAML: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    _validate_schema(raw, Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH)
    logger.info("Loaded config: %s", config_path)
    return _build_config(raw)
