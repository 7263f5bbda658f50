"""Page capture — screenshots and layout snapshots for every configured page."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from playwright.async_api import Browser, Page, async_playwright

from pagewatch.comparison.hybrid import create_hybrid_summary
from pagewatch.comparison.image_diff import ImageComparisonError, compare_images
from pagewatch.comparison.layout_diff import compare_layout_files
from pagewatch.models.config import MonitorConfig
from pagewatch.models.test_result import PageResult
from pagewatch.storage.history import find_previous_day_dir
from pagewatch.storage.results_store import ResultsStore
from pagewatch.url_utils import safe_name

from .browser import create_capture_context, launch_browser
from .layout_capture import capture_layout

logger = logging.getLogger(__name__)


class PageErrorCollector:
    """Collects console errors and uncaught page errors raised while a page loads."""

    def __init__(self):
        self.errors: list[str] = []

    def attach(self, page: Page) -> None:
        page.on("console", self._on_console)
        page.on("pageerror", lambda err: self.errors.append(f"Page error: {err}"))

    def _on_console(self, msg) -> None:
        if msg.type == "error":
            self.errors.append(f"Console error: {msg.text}")


@dataclass
class CaptureOutcome:
    result: PageResult
    failure_reasons: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.failure_reasons)


class PageCapturer:
    """Captures all configured pages in parallel, one browser context per page."""

    def __init__(self, config: MonitorConfig, today: str, store: ResultsStore | None = None):
        self.config = config
        self.today = today
        self.daily_dir = Path(config.daily_dir)
        self.store = store or ResultsStore(
            config.results_path(today), lock_timeout=config.lock_timeout_seconds,
        )

    def planned_pages(self) -> list[tuple[str, str]]:
        """(product, url) pairs in configuration order."""
        return [
            (product, url)
            for product, product_cfg in self.config.products.items()
            for url in product_cfg.urls
        ]

    async def capture_all(self) -> list[CaptureOutcome]:
        pages = self.planned_pages()
        logger.info("Capturing %d pages for %s", len(pages), self.today)

        async with async_playwright() as p:
            browser = await launch_browser(p)
            semaphore = asyncio.Semaphore(self.config.max_parallel_contexts)

            async def _run_one(index: int, product: str, url: str) -> CaptureOutcome:
                async with semaphore:
                    logger.info("Capturing [%d/%d]: [%s] %s", index + 1, len(pages), product, url)
                    return await self.capture_page(browser, product, url)

            outcomes = list(await asyncio.gather(
                *(_run_one(i, product, url) for i, (product, url) in enumerate(pages))
            ))
            await browser.close()

        failed = sum(1 for o in outcomes if o.failed)
        logger.info("Capture complete: %d pages, %d failing", len(outcomes), failed)
        return outcomes

    async def capture_page(self, browser: Browser, product: str, url: str) -> CaptureOutcome:
        """Capture one page and record a pending row in the results store."""
        view_name = safe_name(url)
        today_dir = self.daily_dir / self.today / product
        today_dir.mkdir(parents=True, exist_ok=True)
        today_path = today_dir / f"{view_name}.png"
        today_layout_path = today_dir / f"{view_name}-layout.json"

        previous_dir, previous_date = find_previous_day_dir(self.daily_dir, product, self.today)
        previous_path = previous_dir / f"{view_name}.png" if previous_dir else None
        previous_layout_path = previous_dir / f"{view_name}-layout.json" if previous_dir else None

        errors: list[str] = []
        storage_state = self.config.storage_state_for(product)
        if self.config.products[product].requires_auth and not storage_state.exists():
            errors.append(f"Auth file not found: {storage_state}. Please run setup first.")
        else:
            context = await create_capture_context(
                browser,
                viewport=self.config.viewport.model_dump(),
                storage_state=str(storage_state) if storage_state.exists() else None,
            )
            try:
                page = await context.new_page()
                collector = PageErrorCollector()
                collector.attach(page)
                await self._visit(page, url, today_path, today_layout_path, errors)
                errors[:0] = collector.errors
            finally:
                await context.close()

        if previous_path and previous_path.exists():
            logger.debug("Screenshot captured for %s - will compare with %s", url, previous_date)
        else:
            logger.info("First screenshot for %s - no previous day to compare", url)

        result = PageResult(
            url=url,
            view_name=view_name,
            product=product,
            date=self.today,
            previous_date=previous_date,
            status="error" if errors else "pending",
            errors=errors,
            previous_path=str(previous_path) if previous_path and previous_path.exists() else None,
            today_path=str(today_path),
            today_layout_path=str(today_layout_path),
            previous_layout_path=(
                str(previous_layout_path)
                if previous_layout_path and previous_layout_path.exists() else None
            ),
        )
        # Lock polling and the pixel diff run in worker threads
        await asyncio.to_thread(self.store.upsert, result)
        reasons = await asyncio.to_thread(self.failure_reasons, result)
        return CaptureOutcome(result=result, failure_reasons=reasons)

    async def _visit(
        self, page: Page, url: str, screenshot_path: Path, layout_path: Path, errors: list[str],
    ) -> None:
        try:
            await page.goto(url, wait_until="networkidle", timeout=self.config.navigation_timeout_ms)
            await page.wait_for_timeout(self.config.settle_time_ms)
            await page.screenshot(path=str(screenshot_path), full_page=True, animations="disabled")
        except Exception as e:
            logger.warning("Failed to load %s: %s", url, e)
            errors.append(f"Navigation error: {e}")
            return

        try:
            layout = await capture_layout(
                page, url, self.config.selectors, self.config.max_instances_per_selector,
            )
            layout.save(layout_path)
            logger.debug("Layout data captured for %s", url)
        except Exception as e:
            logger.warning("Failed to capture layout for %s: %s", url, e)

    def failure_reasons(self, result: PageResult) -> list[str]:
        """Reasons this page should fail the capture run right away.

        Page errors always fail. When a previous capture exists, major layout
        or visual changes fail too; the full report is produced later.
        """
        reasons = list(result.errors)
        if not (result.previous_path and result.previous_layout_path):
            return reasons

        try:
            layout = compare_layout_files(result.previous_layout_path, result.today_layout_path)
            visual = compare_images(
                result.previous_path, result.today_path, None,
                threshold=self.config.color_threshold,
            )
        except ImageComparisonError as e:
            logger.warning("Could not compare %s for failure check: %s", result.url, e)
            return reasons

        summary = create_hybrid_summary(
            layout, visual.diff_pixels, visual.total_pixels, self.config.pixel_diff_threshold,
        )
        if summary.status == "error":
            if layout and layout.total_changes > 0:
                reasons.append(
                    f"Layout changes: {layout.total_changes} changes (Score: {layout.layout_score}/100)"
                )
            else:
                reasons.append(f"Visual changes: {summary.description}")
        return reasons
