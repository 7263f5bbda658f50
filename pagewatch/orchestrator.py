"""Pipeline orchestrator — coordinates capture, report, compare, and cleanup stages."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from pathlib import Path

from pagewatch.capture.page_capture import CaptureOutcome, PageCapturer
from pagewatch.models.config import MonitorConfig
from pagewatch.reporter.reporter import Reporter
from pagewatch.storage.history import list_available_dates, scan_screenshots
from pagewatch.storage.results_store import ResultsStore

logger = logging.getLogger(__name__)


def utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


class Orchestrator:
    """Coordinates the daily monitoring pipeline.

    ``today`` fixes the run date for every stage, so a capture that starts
    just before midnight still reports against the same day.
    """

    def __init__(self, config: MonitorConfig, today: str | None = None):
        self.config = config
        self.today = today or utc_today()
        self.store = ResultsStore(
            config.results_path(self.today), lock_timeout=config.lock_timeout_seconds,
        )
        self.reporter = Reporter(config, self.today)

    def run_capture(self) -> list[CaptureOutcome]:
        """Capture every configured page for today."""
        return asyncio.run(self._capture())

    async def _capture(self) -> list[CaptureOutcome]:
        capturer = PageCapturer(self.config, self.today, store=self.store)
        return await capturer.capture_all()

    def run_report(self) -> dict[str, str]:
        """Complete today's results and write the daily reports."""
        return self.reporter.generate_daily_report()

    def run_full_pipeline(self) -> dict:
        """Execute capture → report → cleanup."""
        start = time.time()
        logger.info("=== Starting monitoring run for %s ===", self.today)

        logger.info("--- Stage 1: Capture ---")
        stage_start = time.time()
        outcomes = self.run_capture()
        failures = {o.result.url: o.failure_reasons for o in outcomes if o.failed}
        logger.info("--- Stage 1 complete: %d pages in %.1fs ---",
                    len(outcomes), time.time() - stage_start)

        logger.info("--- Stage 2: Report ---")
        reports = self.run_report()
        results = self.store.load()

        logger.info("--- Stage 3: Cleanup ---")
        removed = self.cleanup()

        duration = round(time.time() - start, 1)
        logger.info("=== Monitoring run complete in %.1fs ===", duration)
        return {
            "date": self.today,
            "duration": duration,
            "results": {
                "total": len(results),
                "ok": sum(1 for r in results if r.status == "ok"),
                "diff": sum(1 for r in results if r.status == "diff"),
                "error": sum(1 for r in results if r.status == "error"),
            },
            "failures": failures,
            "reports": reports,
            "removed": len(removed),
        }

    def compare_dates(self, date1: str, date2: str) -> dict[str, str]:
        return self.reporter.compare_dates(date1, date2)

    def available_dates(self) -> list[tuple[str, int]]:
        """Capture dates (newest first) with their screenshot counts."""
        daily_dir = Path(self.config.daily_dir)
        return [
            (d, len(scan_screenshots(daily_dir / d)))
            for d in list_available_dates(daily_dir)
        ]

    def cleanup(self, keep_count: int | None = None) -> list[Path]:
        return self.reporter.cleanup_old_runs(keep_count)
