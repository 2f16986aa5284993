"""Tests for mtd_ranker.config."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from mtd_ranker.config import (
    AppConfig,
    ExecutorConfig,
    LoggingConfig,
    ServerConfig,
    SourceConfig,
    _deep_merge,
    load_config,
)

_ENV_VARS = (
    "MTD_RANKER_LOG_LEVEL",
    "MTD_RANKER_MAX_WORKERS",
    "MTD_RANKER_CSV_PATH",
    "MTD_RANKER_PORT",
    "MTD_RANKER_DEBUG",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _write_toml(path: Path, body: str) -> Path:
    path.write_text(body, encoding="utf-8")
    return path


class TestDefaults:
    def test_builtin_defaults(self):
        cfg = AppConfig()
        assert cfg.executor.max_workers == 10
        assert cfg.executor.deadline_seconds == 1800.0
        assert cfg.source.max_errors == 20
        assert cfg.refresh.single_flight is True
        assert cfg.pipeline.max_item_errors is None
        assert cfg.pipeline.require_success is False
        assert cfg.output.csv_path == "sp500_mtd_returns.csv"
        assert cfg.server.port == 8080

    def test_committed_default_toml_loads(self):
        cfg = load_config()
        assert cfg.executor.max_workers == 10
        assert cfg.logging.level == "INFO"


class TestValidation:
    def test_log_level_uppercased(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_bad_log_level(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")

    @pytest.mark.parametrize("port", [0, 70000])
    def test_bad_port(self, port):
        with pytest.raises(ValidationError):
            ServerConfig(port=port)

    def test_bad_workers(self):
        with pytest.raises(ValidationError):
            ExecutorConfig(max_workers=0)

    def test_bad_deadline(self):
        with pytest.raises(ValidationError):
            ExecutorConfig(deadline_seconds=0)

    def test_bad_max_errors(self):
        with pytest.raises(ValidationError):
            SourceConfig(max_errors=0)


class TestLoading:
    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.toml")

    def test_toml_values_and_local_override(self, tmp_path: Path):
        cfg_path = _write_toml(
            tmp_path / "default.toml",
            "[executor]\nmax_workers = 4\n[pipeline]\nmax_item_errors = 50\n"
            "[project]\ndebug = true\n",
        )
        _write_toml(tmp_path / "local.toml", "[executor]\nmax_workers = 6\n")

        cfg = load_config(cfg_path)

        assert cfg.executor.max_workers == 6
        assert cfg.pipeline.max_item_errors == 50
        assert cfg.debug is True

    def test_env_overrides(self, tmp_path: Path, monkeypatch):
        cfg_path = _write_toml(tmp_path / "default.toml", "[executor]\nmax_workers = 4\n")
        monkeypatch.setenv("MTD_RANKER_MAX_WORKERS", "3")
        monkeypatch.setenv("MTD_RANKER_LOG_LEVEL", "warning")
        monkeypatch.setenv("MTD_RANKER_CSV_PATH", "out/x.csv")
        monkeypatch.setenv("MTD_RANKER_PORT", "9000")
        monkeypatch.setenv("MTD_RANKER_DEBUG", "yes")

        cfg = load_config(cfg_path)

        assert cfg.executor.max_workers == 3
        assert cfg.logging.level == "WARNING"
        assert cfg.output.csv_path == "out/x.csv"
        assert cfg.server.port == 9000
        assert cfg.debug is True

    def test_invalid_value_raises(self, tmp_path: Path):
        cfg_path = _write_toml(tmp_path / "default.toml", "[server]\nport = 0\n")
        with pytest.raises(ValidationError):
            load_config(cfg_path)


def test_deep_merge_nested():
    merged = _deep_merge({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}, "c": 4})
    assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}
