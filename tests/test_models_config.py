"""Tests for configuration models."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from pagewatch.models.config import (
    DEFAULT_SELECTORS,
    MonitorConfig,
    ProductConfig,
    TrackedSelector,
    ViewportConfig,
)


class TestDefaults:

    def test_monitor_config_defaults(self):
        cfg = MonitorConfig()
        assert cfg.products == {}
        assert cfg.viewport == ViewportConfig(width=1920, height=1080)
        assert cfg.pixel_diff_threshold == 10.0
        assert cfg.color_threshold == 0.01
        assert cfg.keep_runs_count == 5
        assert cfg.max_parallel_contexts == 3
        assert cfg.lock_timeout_seconds == 5.0
        assert cfg.report_formats == ["html", "json"]

    def test_default_selectors(self):
        cfg = MonitorConfig()
        assert len(cfg.selectors) == len(DEFAULT_SELECTORS) == 17
        assert cfg.selectors[0] == TrackedSelector(selector="header", label="Header")
        assert TrackedSelector(selector="h1", label="Main Heading") in cfg.selectors

    def test_selectors_are_not_shared_between_instances(self):
        a, b = MonitorConfig(), MonitorConfig()
        a.selectors.append(TrackedSelector(selector=".x", label="X"))
        assert len(b.selectors) == 17


class TestValidation:

    def test_negative_pixel_threshold(self):
        with pytest.raises(ValidationError):
            MonitorConfig(pixel_diff_threshold=-1)

    @pytest.mark.parametrize("value", [-0.1, 1.5])
    def test_color_threshold_range(self, value):
        with pytest.raises(ValidationError):
            MonitorConfig(color_threshold=value)

    def test_keep_runs_at_least_one(self):
        with pytest.raises(ValidationError):
            MonitorConfig(keep_runs_count=0)


class TestPaths:

    def test_default_storage_state(self):
        cfg = MonitorConfig(products={"Acme": ProductConfig(urls=["https://a"])})
        assert cfg.storage_state_for("Acme") == Path("auth") / "auth-acme.json"

    def test_explicit_storage_state(self):
        cfg = MonitorConfig(products={"Acme": ProductConfig(storage_state="/secrets/acme.json")})
        assert cfg.storage_state_for("Acme") == Path("/secrets/acme.json")

    def test_results_path(self):
        cfg = MonitorConfig(report_dir="out")
        assert cfg.results_path("2025-01-02") == Path("out") / "results-2025-01-02.json"


class TestLoadSave:

    def test_round_trip(self, monitor_config, temp_config_file):
        loaded = MonitorConfig.load(temp_config_file, environ={})
        assert loaded == monitor_config

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            MonitorConfig.load(tmp_path / "nope.json")

    def test_env_overrides(self, temp_config_file):
        cfg = MonitorConfig.load(
            temp_config_file,
            environ={"PIXEL_DIFF_THRESHOLD": "4.5", "KEEP_RUNS_COUNT": "9"},
        )
        assert cfg.pixel_diff_threshold == 4.5
        assert cfg.keep_runs_count == 9

    def test_empty_env_values_are_ignored(self, temp_config_file):
        cfg = MonitorConfig.load(temp_config_file, environ={"PIXEL_DIFF_THRESHOLD": ""})
        assert cfg.pixel_diff_threshold == 10.0

    def test_partial_file_uses_defaults(self, tmp_path):
        path = tmp_path / "cfg.json"
        path.write_text(json.dumps({"products": {"Acme": {"urls": ["https://a"]}}}))
        cfg = MonitorConfig.load(path, environ={})
        assert cfg.products["Acme"].urls == ["https://a"]
        assert cfg.products["Acme"].requires_auth is True
        assert cfg.daily_dir == "screenshots/daily"
