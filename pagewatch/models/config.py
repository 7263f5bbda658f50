"""Configuration models for the regression monitor."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ViewportConfig(BaseModel):
    width: int = 1920
    height: int = 1080


class TrackedSelector(BaseModel):
    selector: str
    label: str


# Major page sections whose movement usually signals a real layout change
DEFAULT_SELECTORS: list[TrackedSelector] = [
    TrackedSelector(selector="header", label="Header"),
    TrackedSelector(selector="nav", label="Navigation"),
    TrackedSelector(selector="main", label="Main Content"),
    TrackedSelector(selector="footer", label="Footer"),
    TrackedSelector(selector='[role="banner"]', label="Banner"),
    TrackedSelector(selector='[role="navigation"]', label="Nav Bar"),
    TrackedSelector(selector='[role="main"]', label="Main Area"),
    TrackedSelector(selector='[role="complementary"]', label="Sidebar"),
    TrackedSelector(selector=".container", label="Container"),
    TrackedSelector(selector=".content", label="Content Area"),
    TrackedSelector(selector="h1", label="Main Heading"),
    TrackedSelector(selector="h2", label="Subheadings"),
    TrackedSelector(selector="button:visible", label="Buttons"),
    TrackedSelector(selector="a:visible", label="Links"),
    TrackedSelector(selector="form", label="Forms"),
    TrackedSelector(selector="img:visible", label="Images"),
    TrackedSelector(selector="[data-testid]", label="Test Elements"),
]


class ProductConfig(BaseModel):
    urls: list[str] = Field(default_factory=list)
    # Playwright storage-state file produced by the login setup step
    storage_state: Optional[str] = None
    requires_auth: bool = True


class MonitorConfig(BaseModel):
    # Pages to capture, grouped by product
    products: dict[str, ProductConfig] = Field(default_factory=dict)

    # Capture settings
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    selectors: list[TrackedSelector] = Field(
        default_factory=lambda: [s.model_copy() for s in DEFAULT_SELECTORS]
    )
    max_instances_per_selector: int = 10
    max_parallel_contexts: int = 3
    settle_time_ms: int = 1000
    navigation_timeout_ms: int = 60000
    auth_dir: str = "auth"

    # Comparison thresholds
    pixel_diff_threshold: float = 10.0  # percent of pixels; warning at a quarter of it
    color_threshold: float = 0.01  # per-pixel colour sensitivity (0-1)

    # Storage
    keep_runs_count: int = 5
    daily_dir: str = "screenshots/daily"
    diff_dir: str = "screenshots/diffs"
    report_dir: str = "reports"
    lock_timeout_seconds: float = 5.0

    # Reporting
    report_formats: list[str] = Field(default_factory=lambda: ["html", "json"])

    @field_validator("pixel_diff_threshold")
    @classmethod
    def check_pixel_threshold(cls, v: float) -> float:
        if v < 0:
            raise ValueError("pixel_diff_threshold must be >= 0")
        return v

    @field_validator("color_threshold")
    @classmethod
    def check_color_threshold(cls, v: float) -> float:
        if not 0 <= v <= 1:
            raise ValueError("color_threshold must be between 0 and 1")
        return v

    @field_validator("keep_runs_count")
    @classmethod
    def check_keep_runs(cls, v: int) -> int:
        if v < 1:
            raise ValueError("keep_runs_count must be >= 1")
        return v

    def storage_state_for(self, product: str) -> Path:
        """Return the storage-state file used to authenticate a product's pages."""
        product_cfg = self.products.get(product)
        if product_cfg and product_cfg.storage_state:
            return Path(product_cfg.storage_state)
        return Path(self.auth_dir) / f"auth-{product.lower()}.json"

    def results_path(self, date: str) -> Path:
        return Path(self.report_dir) / f"results-{date}.json"

    @classmethod
    def load(cls, path: str | Path, environ: dict[str, str] | None = None) -> "MonitorConfig":
        """Load config from a JSON file, then apply environment overrides.

        ``PIXEL_DIFF_THRESHOLD`` and ``KEEP_RUNS_COUNT`` take precedence over
        the file so scheduled runs can be tuned without editing it.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)

        env = os.environ if environ is None else environ
        if env.get("PIXEL_DIFF_THRESHOLD"):
            data["pixel_diff_threshold"] = float(env["PIXEL_DIFF_THRESHOLD"])
        if env.get("KEEP_RUNS_COUNT"):
            data["keep_runs_count"] = int(env["KEEP_RUNS_COUNT"])
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
