"""Run-level statistics shared by the HTML and JSON reports."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from pagewatch.models.test_result import PageResult


@dataclass
class ReportStats:
    total: int = 0
    passed: int = 0
    changes: int = 0
    errors: int = 0
    visual_issues: int = 0
    layout_issues: int = 0
    console_issues: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def summarize_results(results: list[PageResult], pixel_diff_threshold: float) -> ReportStats:
    """Count rows by final status and by the kind of issue they carry.

    A page counts as a visual issue once its diff crosses the warning
    threshold (a quarter of ``pixel_diff_threshold``).
    """
    warning_threshold = pixel_diff_threshold / 4
    stats = ReportStats(total=len(results))
    for r in results:
        if r.status == "ok":
            stats.passed += 1
        elif r.status == "diff":
            stats.changes += 1
        elif r.status == "error":
            stats.errors += 1

        if r.diff_percentage > warning_threshold:
            stats.visual_issues += 1
        if r.has_layout_changes:
            stats.layout_issues += 1
        if r.errors:
            stats.console_issues += 1
    return stats
