"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from helpers import make_element, make_layout
from pagewatch.models.config import MonitorConfig, ProductConfig, ViewportConfig
from pagewatch.models.layout import ElementLayout, PageLayout


# ============================================================================
# Layout Fixtures
# ============================================================================


@pytest.fixture
def header() -> ElementLayout:
    return make_element("header", "Header", x=0, y=0, width=1920, height=80)


@pytest.fixture
def heading() -> ElementLayout:
    return make_element("h1", "Main Heading", x=100, y=100, width=400, height=50)


@pytest.fixture
def base_layout(header: ElementLayout, heading: ElementLayout) -> PageLayout:
    return make_layout(header, heading)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def monitor_config(tmp_path: Path) -> MonitorConfig:
    """A config whose directories all live under tmp_path."""
    return MonitorConfig(
        products={
            "Acme": ProductConfig(urls=["https://app.example.com/dashboard"]),
        },
        viewport=ViewportConfig(width=1280, height=720),
        auth_dir=str(tmp_path / "auth"),
        daily_dir=str(tmp_path / "screenshots" / "daily"),
        diff_dir=str(tmp_path / "screenshots" / "diffs"),
        report_dir=str(tmp_path / "reports"),
        lock_timeout_seconds=0.2,
    )


@pytest.fixture
def temp_config_file(monitor_config: MonitorConfig, tmp_path: Path) -> Path:
    config_file = tmp_path / "pagewatch.json"
    monitor_config.save(config_file)
    return config_file
