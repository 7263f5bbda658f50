"""Report generation orchestration — completes captured rows and writes reports."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from pagewatch.comparison.hybrid import create_hybrid_summary, resolve_page_status
from pagewatch.comparison.image_diff import ImageComparisonError, compare_images
from pagewatch.comparison.layout_diff import compare_layout_files
from pagewatch.comparison.overlay import generate_layout_overlay
from pagewatch.models.config import MonitorConfig
from pagewatch.models.test_result import DateComparisonResult, PageResult
from pagewatch.storage.history import DATE_DIR_RE, cleanup_old_files, scan_screenshots
from pagewatch.storage.results_store import ResultsStore

from .html_report import generate_comparison_html_report, generate_daily_html_report
from .json_report import generate_comparison_json_report, generate_json_report

logger = logging.getLogger(__name__)

_DATE_PART = r"\d{4}-\d{2}-\d{2}"
RETENTION_PATTERNS = {
    "summary_html": re.compile(rf"^summary-{_DATE_PART}\.html$"),
    "summary_json": re.compile(rf"^summary-{_DATE_PART}\.json$"),
    "results": re.compile(rf"^results-{_DATE_PART}\.json$"),
}


class Reporter:
    """Turns a day's pending results into a finished report."""

    def __init__(self, config: MonitorConfig, today: str):
        self.config = config
        self.today = today
        self.daily_dir = Path(config.daily_dir)
        self.diff_dir = Path(config.diff_dir)
        self.report_dir = Path(config.report_dir)

    def _diff_name(self, result: PageResult, suffix: str) -> Path:
        prefix = f"{result.product}-" if result.product else ""
        return self.diff_dir / f"{prefix}{result.view_name}-{suffix}.png"

    def generate_daily_report(self) -> dict[str, str]:
        """Complete every row of today's results and write the configured reports.

        Returns format -> file path. Raises FileNotFoundError when no capture
        has run today.
        """
        store = ResultsStore(
            self.config.results_path(self.today), lock_timeout=self.config.lock_timeout_seconds,
        )
        if not store.exists():
            raise FileNotFoundError(f"No results found for {self.today}: {store.path}")

        self.diff_dir.mkdir(parents=True, exist_ok=True)
        self.report_dir.mkdir(parents=True, exist_ok=True)

        with store.lock():
            results = store.load()
            logger.info("Processing %d results for %s", len(results), self.today)
            processed = [self._process_safely(r) for r in results]
            store.save(processed)

        generated = {}
        if "html" in self.config.report_formats:
            path = self.report_dir / f"summary-{self.today}.html"
            logger.debug("Generating HTML report...")
            generate_daily_html_report(processed, self.today, self.config.pixel_diff_threshold, path)
            generated["html"] = str(path)
            logger.info("HTML report: %s", path)

        if "json" in self.config.report_formats:
            path = self.report_dir / f"summary-{self.today}.json"
            logger.debug("Generating JSON report...")
            generate_json_report(processed, self.today, self.config.pixel_diff_threshold, path)
            generated["json"] = str(path)
            logger.info("JSON report: %s", path)

        return generated

    def _process_safely(self, result: PageResult) -> PageResult:
        try:
            return self.process_result(result)
        except Exception as e:
            logger.warning("Failed to process result for %s: %s", result.url, e)
            return result.model_copy(update={
                "status": "error" if result.errors else "diff",
                "comparison_note": "Comparison unavailable",
            })

    def process_result(self, result: PageResult) -> PageResult:
        """Run the visual and layout comparisons for one row and set its final status."""
        update: dict = {"diff_path": None, "layout_overlay_path": None, "layout_changes": None}
        diff_pixels = total_pixels = 0
        note = ""

        today_exists = Path(result.today_path).exists()
        if result.previous_path and Path(result.previous_path).exists() and today_exists:
            diff_path = self._diff_name(result, "diff")
            diff_path.unlink(missing_ok=True)
            try:
                comparison = compare_images(
                    result.previous_path, result.today_path, diff_path,
                    threshold=self.config.color_threshold,
                )
                diff_pixels = comparison.diff_pixels
                total_pixels = comparison.total_pixels
                update["image_width"] = comparison.width
                update["image_height"] = comparison.height
                if diff_pixels > 0:
                    update["diff_path"] = str(diff_path)
                    logger.info(
                        "Visual diff for %s: %d pixels (%.2f%%) [%dx%d]",
                        result.url, diff_pixels, diff_pixels / total_pixels * 100,
                        comparison.width, comparison.height,
                    )
            except ImageComparisonError as e:
                logger.warning("Failed to compare images for %s: %s", result.url, e)
                note = "Comparison unavailable"
        elif result.is_first_run:
            logger.info("First run for %s - no previous screenshot", result.url)
            note = "First run"
        else:
            logger.warning("Previous or today screenshot missing for %s", result.url)
            note = "Comparison unavailable"

        layout = None
        if result.previous_layout_path and result.today_layout_path:
            layout = compare_layout_files(result.previous_layout_path, result.today_layout_path)
            update["layout_changes"] = layout
            if layout and layout.total_changes > 0:
                logger.info(
                    "Layout changes for %s: %d changes (Score: %d/100)",
                    result.url, layout.total_changes, layout.layout_score,
                )
                overlay_path = self._diff_name(result, "layout-overlay")
                overlay_path.unlink(missing_ok=True)
                if today_exists and generate_layout_overlay(
                    result.today_path, layout,
                    result.previous_layout_path, result.today_layout_path,
                    overlay_path,
                ):
                    update["layout_overlay_path"] = str(overlay_path)

        summary = create_hybrid_summary(
            layout, diff_pixels, total_pixels, self.config.pixel_diff_threshold,
        )
        update.update(
            diff_pixels=diff_pixels,
            total_pixels=total_pixels,
            summary=summary.description,
            comparison_note=note,
            status=resolve_page_status(result.errors, summary),
        )
        return result.model_copy(update=update)

    def compare_dates(self, date1: str, date2: str) -> dict[str, str]:
        """Compare every screenshot present on both dates and write the reports.

        Raises ValueError on malformed dates or when the dates share no
        screenshots, FileNotFoundError when either date directory is missing.
        """
        for value in (date1, date2):
            if not DATE_DIR_RE.match(value):
                raise ValueError(f"Invalid date {value!r}. Use YYYY-MM-DD format.")

        dir1 = self.daily_dir / date1
        dir2 = self.daily_dir / date2
        for directory in (dir1, dir2):
            if not directory.is_dir():
                raise FileNotFoundError(f"Directory not found: {directory}")

        shots1 = scan_screenshots(dir1)
        shots2 = scan_screenshots(dir2)
        common = [name for name in shots1 if name in shots2]
        if not common:
            raise ValueError(f"No common screenshots found between {date1} and {date2}")
        logger.info("Comparing %d screenshots: %s vs %s", len(common), date1, date2)

        self.diff_dir.mkdir(parents=True, exist_ok=True)
        tag = f"{date1}-vs-{date2}"
        for stale in self.diff_dir.glob(f"*-{tag}-diff.png"):
            stale.unlink(missing_ok=True)

        rows = []
        for name in common:
            view_name = Path(name).stem
            diff_path = self.diff_dir / f"{view_name}-{tag}-diff.png"
            row = DateComparisonResult(
                view_name=view_name, date1=date1, date2=date2,
                path1=str(shots1[name]), path2=str(shots2[name]),
            )
            try:
                comparison = compare_images(
                    shots1[name], shots2[name], diff_path, threshold=self.config.color_threshold,
                )
                row = row.model_copy(update={
                    "diff_pixels": comparison.diff_pixels,
                    "total_pixels": comparison.total_pixels,
                    "diff_path": str(diff_path) if comparison.diff_pixels > 0 else None,
                    "status": "diff" if comparison.diff_pixels > 0 else "ok",
                })
            except ImageComparisonError as e:
                logger.warning("Failed to compare %s: %s", name, e)
                row = row.model_copy(update={"status": "unavailable"})
            rows.append(row)

        self.report_dir.mkdir(parents=True, exist_ok=True)
        json_path = self.report_dir / f"comparison-{tag}.json"
        html_path = self.report_dir / f"comparison-{tag}.html"
        generate_comparison_json_report(rows, date1, date2, json_path)
        generate_comparison_html_report(rows, date1, date2, html_path)
        logger.info("Comparison report: %s", html_path)
        return {"json": str(json_path), "html": str(html_path)}

    def cleanup_old_runs(self, keep_count: int | None = None) -> list[Path]:
        """Keep only the newest ``keep_count`` capture dates and their reports."""
        keep = keep_count if keep_count is not None else self.config.keep_runs_count
        if keep < 1:
            raise ValueError("keep_count must be >= 1")

        removed = cleanup_old_files(self.daily_dir, DATE_DIR_RE, keep)
        for pattern in RETENTION_PATTERNS.values():
            removed += cleanup_old_files(self.report_dir, pattern, keep)
        logger.info("Cleanup complete: removed %d entries, kept last %d runs", len(removed), keep)
        return removed
