"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from pagewatch.models.test_result import DateComparisonResult, PageResult

from .summary import summarize_results


def generate_json_report(
    results: list[PageResult],
    today: str,
    pixel_diff_threshold: float,
    output_path: Path,
) -> None:
    """Write a machine-readable summary of one day's results."""
    report = {
        "date": today,
        "pixel_diff_threshold": pixel_diff_threshold,
        "stats": summarize_results(results, pixel_diff_threshold).to_dict(),
        "results": [
            {
                **r.model_dump(by_alias=True),
                "status_label": r.status_label,
                "diff_percentage": r.diff_percentage,
            }
            for r in results
        ],
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)


def generate_comparison_json_report(
    rows: list[DateComparisonResult],
    date1: str,
    date2: str,
    output_path: Path,
) -> None:
    """Write the per-screenshot results of comparing two capture dates."""
    report = {
        "date1": date1,
        "date2": date2,
        "compared": len(rows),
        "changed": sum(1 for r in rows if r.status == "diff"),
        "results": [
            {**r.model_dump(), "diff_percentage": r.diff_percentage}
            for r in rows
        ],
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
