"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``MTD_RANKER_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

The refresh controller, the web app and every CLI command receive an
``AppConfig`` instance, never raw dicts or scattered env var lookups.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class SourceConfig(BaseModel):
    """Instrument-list scraper settings."""

    model_config = ConfigDict(frozen=True)

    url: str = "https://en.wikipedia.org/wiki/List_of_S%26P_500_companies"
    user_agent: str = "Mozilla/5.0 (X11; Linux x86_64) mtd-ranker/0.1"
    timeout_seconds: float = 30.0
    max_errors: int = 20
    symbol_dot_to_dash: bool = True   # BRK.B -> BRK-B for Yahoo symbols

    @field_validator("max_errors")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}.")
        return v


class ExecutorConfig(BaseModel):
    """Parallel fetch settings."""

    model_config = ConfigDict(frozen=True)

    max_workers: int = 10
    deadline_seconds: Optional[float] = 1800.0

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}.")
        return v

    @field_validator("deadline_seconds")
    @classmethod
    def validate_deadline(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError(f"deadline_seconds must be positive, got {v}.")
        return v


class PipelineConfig(BaseModel):
    """Refresh pipeline policy."""

    model_config = ConfigDict(frozen=True)

    # None disables the per-item failure circuit breaker.
    max_item_errors: Optional[int] = None
    # Fail (and keep the installed snapshot) when no instrument produced a return.
    require_success: bool = False

    @field_validator("max_item_errors")
    @classmethod
    def validate_ceiling(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError(f"max_item_errors must be >= 0, got {v}.")
        return v


class RefreshConfig(BaseModel):
    """Refresh concurrency policy."""

    model_config = ConfigDict(frozen=True)

    single_flight: bool = True


class OutputConfig(BaseModel):
    """Side-output settings."""

    model_config = ConfigDict(frozen=True)

    csv_path: str = "sp500_mtd_returns.csv"
    write_csv: bool = True


class ServerConfig(BaseModel):
    """HTTP query surface settings."""

    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = 8080
    refresh_on_start: bool = False

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError(f"port must be in 1..65535, got {v}.")
        return v


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = ""
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth.

    Constructed by ``load_config()`` which merges TOML + .env + env vars.
    ``AppConfig()`` with no arguments gives the built-in defaults, which is
    what the tests use.
    """

    model_config = ConfigDict(frozen=True)

    source: SourceConfig = SourceConfig()
    executor: ExecutorConfig = ExecutorConfig()
    pipeline: PipelineConfig = PipelineConfig()
    refresh: RefreshConfig = RefreshConfig()
    output: OutputConfig = OutputConfig()
    server: ServerConfig = ServerConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    # 1. Load .env file (silently skip if missing)
    load_dotenv(dotenv_path=root / ".env", override=False)

    # 2. Load TOML config
    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    # 3. Apply MTD_RANKER_* environment variable overrides
    raw = _apply_env_overrides(raw)

    # 4. Build and validate AppConfig
    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply MTD_RANKER_* env vars to the raw config dict.

    Supported overrides:
      MTD_RANKER_LOG_LEVEL    → raw["logging"]["level"]
      MTD_RANKER_MAX_WORKERS  → raw["executor"]["max_workers"]
      MTD_RANKER_CSV_PATH     → raw["output"]["csv_path"]
      MTD_RANKER_PORT         → raw["server"]["port"]
      MTD_RANKER_DEBUG        → raw["debug"]
    """
    if log_level := os.environ.get("MTD_RANKER_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if max_workers := os.environ.get("MTD_RANKER_MAX_WORKERS"):
        raw.setdefault("executor", {})["max_workers"] = int(max_workers)

    if csv_path := os.environ.get("MTD_RANKER_CSV_PATH"):
        raw.setdefault("output", {})["csv_path"] = csv_path

    if port := os.environ.get("MTD_RANKER_PORT"):
        raw.setdefault("server", {})["port"] = int(port)

    if debug := os.environ.get("MTD_RANKER_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        source=SourceConfig(**raw.get("source", {})),
        executor=ExecutorConfig(**raw.get("executor", {})),
        pipeline=PipelineConfig(**raw.get("pipeline", {})),
        refresh=RefreshConfig(**raw.get("refresh", {})),
        output=OutputConfig(**raw.get("output", {})),
        server=ServerConfig(**raw.get("server", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
