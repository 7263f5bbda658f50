"""Hybrid status fusion — combines the layout and pixel signals into one verdict."""

from __future__ import annotations

from dataclasses import dataclass

from pagewatch.models.layout import LayoutComparisonResult

from .layout_diff import get_layout_status

DEFAULT_PIXEL_DIFF_THRESHOLD = 10.0  # percent


@dataclass
class HybridSummary:
    status: str  # ok, warning, error
    icon: str
    description: str


def calculate_diff_percentage(diff_pixels: int, total_pixels: int) -> float:
    """Percentage of changed pixels, rounded to two decimals."""
    if total_pixels <= 0 or diff_pixels <= 0:
        return 0.0
    return round(diff_pixels / total_pixels * 100, 2)


def create_hybrid_summary(
    layout_result: LayoutComparisonResult | None,
    diff_pixels: int,
    total_pixels: int,
    pixel_diff_threshold: float = DEFAULT_PIXEL_DIFF_THRESHOLD,
) -> HybridSummary:
    """Fuse layout status and pixel diff percentage; the first matching rule wins.

    The error threshold is ``pixel_diff_threshold`` and the warning threshold
    a quarter of it.
    """
    layout_status = get_layout_status(layout_result).status if layout_result else "ok"
    diff_percent = calculate_diff_percentage(diff_pixels, total_pixels)

    error_threshold = pixel_diff_threshold
    warning_threshold = pixel_diff_threshold / 4

    if layout_status == "error" or diff_percent > error_threshold:
        return HybridSummary("error", "❌", "Major changes detected")
    if layout_status == "warning" or (diff_pixels > 0 and diff_percent > warning_threshold):
        return HybridSummary("warning", "⚠️", "Minor changes detected")
    if layout_result is not None and layout_result.total_changes > 0:
        return HybridSummary("warning", "⚠️", "Layout adjustments")
    if diff_pixels > 0:
        return HybridSummary("ok", "✅", "Minimal visual differences")
    return HybridSummary("ok", "✅", "No changes")


def resolve_page_status(errors: list[str], summary: HybridSummary) -> str:
    """Map a hybrid verdict to a report row status; page errors always win."""
    if errors:
        return "error"
    if summary.status == "error":
        return "error"
    if summary.status == "warning":
        return "diff"
    return "ok"
