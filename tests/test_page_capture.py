"""Tests for the page capture runner with mocked Playwright objects."""

import asyncio
import time
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest

from helpers import make_element, make_layout, make_page_result, solid_image, write_png
from pagewatch.capture.page_capture import CaptureOutcome, PageCapturer, PageErrorCollector
from pagewatch.models.config import ProductConfig
from pagewatch.storage.results_store import ResultsStore

TODAY = "2025-01-02"
YESTERDAY = "2025-01-01"
URL = "https://app.example.com/dashboard"
VIEW = "app_example_com_dashboard"


# ============================================================================
# Helpers
# ============================================================================


def _write_auth(config, product="Acme"):
    path = config.storage_state_for(product)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text('{"cookies": [], "origins": []}')
    return path


def _mock_page(on_goto=None, goto_error=None):
    """A page whose screenshot() writes a real PNG to the requested path."""
    callbacks = {}
    page = MagicMock()
    page.on = Mock(side_effect=lambda event, cb: callbacks.update({event: cb}))

    async def _goto(url, **kwargs):
        if on_goto:
            on_goto(callbacks)
        if goto_error:
            raise goto_error

    page.goto = AsyncMock(side_effect=_goto)
    page.wait_for_timeout = AsyncMock()
    page.screenshot = AsyncMock(
        side_effect=lambda path, **kwargs: write_png(Path(path), solid_image(20, 20)),
    )
    return page


def _mock_context(page):
    context = AsyncMock()
    context.new_page = AsyncMock(return_value=page)
    return context


def _console(type_, text):
    msg = Mock()
    msg.type = type_
    msg.text = text
    return msg


# ============================================================================
# PageErrorCollector
# ============================================================================


class TestPageErrorCollector:

    def test_collects_console_errors_and_page_errors(self):
        callbacks = {}
        page = Mock()
        page.on = Mock(side_effect=lambda event, cb: callbacks.update({event: cb}))
        collector = PageErrorCollector()

        collector.attach(page)
        callbacks["console"](_console("error", "Failed to load resource"))
        callbacks["console"](_console("warning", "Deprecated API"))
        callbacks["pageerror"](RuntimeError("x is undefined"))

        assert collector.errors == [
            "Console error: Failed to load resource",
            "Page error: x is undefined",
        ]


# ============================================================================
# capture_page
# ============================================================================


class TestCapturePage:

    @pytest.mark.asyncio
    async def test_first_run_records_pending_row(self, monitor_config):
        _write_auth(monitor_config)
        page = _mock_page()
        context = _mock_context(page)
        capturer = PageCapturer(monitor_config, TODAY)

        with patch("pagewatch.capture.page_capture.create_capture_context",
                   AsyncMock(return_value=context)) as create_ctx, \
             patch("pagewatch.capture.page_capture.capture_layout",
                   AsyncMock(return_value=make_layout(make_element()))):
            outcome = await capturer.capture_page(AsyncMock(), "Acme", URL)

        today_dir = Path(monitor_config.daily_dir) / TODAY / "Acme"
        assert isinstance(outcome, CaptureOutcome)
        assert outcome.failure_reasons == []
        result = outcome.result
        assert result.status == "pending"
        assert result.view_name == VIEW
        assert result.today_path == str(today_dir / f"{VIEW}.png")
        assert result.today_layout_path == str(today_dir / f"{VIEW}-layout.json")
        assert Path(result.today_layout_path).exists()
        assert result.previous_path is None
        assert result.previous_date is None

        page.goto.assert_awaited_once_with(URL, wait_until="networkidle", timeout=60000)
        page.wait_for_timeout.assert_awaited_once_with(1000)
        assert page.screenshot.call_args.kwargs["full_page"] is True
        assert page.screenshot.call_args.kwargs["animations"] == "disabled"
        assert create_ctx.call_args.kwargs["viewport"] == {"width": 1280, "height": 720}
        assert create_ctx.call_args.kwargs["storage_state"] == str(monitor_config.storage_state_for("Acme"))
        context.close.assert_awaited_once()

        stored = ResultsStore(monitor_config.results_path(TODAY)).load()
        assert [r.key for r in stored] == [(URL, "Acme")]

    @pytest.mark.asyncio
    async def test_missing_auth_file_is_an_error(self, monitor_config):
        capturer = PageCapturer(monitor_config, TODAY)

        with patch("pagewatch.capture.page_capture.create_capture_context", AsyncMock()) as create_ctx:
            outcome = await capturer.capture_page(AsyncMock(), "Acme", URL)

        create_ctx.assert_not_called()
        assert outcome.result.status == "error"
        assert outcome.result.errors[0].startswith("Auth file not found:")
        assert outcome.failed
        assert len(ResultsStore(monitor_config.results_path(TODAY)).load()) == 1

    @pytest.mark.asyncio
    async def test_public_product_without_auth(self, monitor_config):
        monitor_config.products["Docs"] = ProductConfig(urls=["https://docs.example.com"], requires_auth=False)
        context = _mock_context(_mock_page())
        capturer = PageCapturer(monitor_config, TODAY)

        with patch("pagewatch.capture.page_capture.create_capture_context",
                   AsyncMock(return_value=context)) as create_ctx, \
             patch("pagewatch.capture.page_capture.capture_layout", AsyncMock(return_value=make_layout())):
            outcome = await capturer.capture_page(AsyncMock(), "Docs", "https://docs.example.com")

        assert outcome.result.status == "pending"
        assert create_ctx.call_args.kwargs["storage_state"] is None

    @pytest.mark.asyncio
    async def test_console_and_page_errors(self, monitor_config):
        _write_auth(monitor_config)

        def _emit(callbacks):
            callbacks["console"](_console("error", "boom"))
            callbacks["pageerror"](RuntimeError("kaput"))

        context = _mock_context(_mock_page(on_goto=_emit))
        capturer = PageCapturer(monitor_config, TODAY)

        with patch("pagewatch.capture.page_capture.create_capture_context", AsyncMock(return_value=context)), \
             patch("pagewatch.capture.page_capture.capture_layout", AsyncMock(return_value=make_layout())):
            outcome = await capturer.capture_page(AsyncMock(), "Acme", URL)

        assert outcome.result.status == "error"
        assert outcome.result.errors == ["Console error: boom", "Page error: kaput"]
        assert outcome.failure_reasons == outcome.result.errors

    @pytest.mark.asyncio
    async def test_navigation_failure_is_recorded(self, monitor_config):
        _write_auth(monitor_config)
        context = _mock_context(_mock_page(goto_error=TimeoutError("Timeout 60000ms exceeded")))
        capturer = PageCapturer(monitor_config, TODAY)

        with patch("pagewatch.capture.page_capture.create_capture_context", AsyncMock(return_value=context)), \
             patch("pagewatch.capture.page_capture.capture_layout", AsyncMock()) as capture:
            outcome = await capturer.capture_page(AsyncMock(), "Acme", URL)

        capture.assert_not_called()
        assert outcome.result.status == "error"
        assert outcome.result.errors == ["Navigation error: Timeout 60000ms exceeded"]
        context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_previous_day_and_early_failure(self, monitor_config):
        _write_auth(monitor_config)
        prev_dir = Path(monitor_config.daily_dir) / YESTERDAY / "Acme"
        write_png(prev_dir / f"{VIEW}.png", solid_image(20, 20))
        make_layout(make_element("nav", "Navigation")).save(prev_dir / f"{VIEW}-layout.json")
        context = _mock_context(_mock_page())
        capturer = PageCapturer(monitor_config, TODAY)

        with patch("pagewatch.capture.page_capture.create_capture_context", AsyncMock(return_value=context)), \
             patch("pagewatch.capture.page_capture.capture_layout", AsyncMock(return_value=make_layout())):
            outcome = await capturer.capture_page(AsyncMock(), "Acme", URL)

        result = outcome.result
        assert result.previous_date == YESTERDAY
        assert result.previous_path == str(prev_dir / f"{VIEW}.png")
        assert result.previous_layout_path == str(prev_dir / f"{VIEW}-layout.json")
        assert result.status == "pending"
        assert outcome.failure_reasons == ["Layout changes: 1 changes (Score: 0/100)"]

    @pytest.mark.asyncio
    async def test_previous_paths_only_when_files_exist(self, monitor_config):
        _write_auth(monitor_config)
        (Path(monitor_config.daily_dir) / YESTERDAY / "Acme").mkdir(parents=True)
        context = _mock_context(_mock_page())
        capturer = PageCapturer(monitor_config, TODAY)

        with patch("pagewatch.capture.page_capture.create_capture_context", AsyncMock(return_value=context)), \
             patch("pagewatch.capture.page_capture.capture_layout", AsyncMock(return_value=make_layout())):
            outcome = await capturer.capture_page(AsyncMock(), "Acme", URL)

        assert outcome.result.previous_date == YESTERDAY
        assert outcome.result.previous_path is None
        assert outcome.result.previous_layout_path is None


# ============================================================================
# Event loop responsiveness
# ============================================================================


async def _longest_stall(coro):
    """Await ``coro`` while a 10 ms ticker runs; return its result and the longest gap between ticks."""
    gaps = []
    done = False

    async def _ticker():
        last = time.monotonic()
        while not done:
            await asyncio.sleep(0.01)
            now = time.monotonic()
            gaps.append(now - last)
            last = now

    ticker = asyncio.create_task(_ticker())
    await asyncio.sleep(0)
    result = await coro
    done = True
    await ticker
    return result, max(gaps)


class TestCaptureKeepsLoopResponsive:

    @pytest.mark.asyncio
    async def test_failure_check_runs_off_the_loop(self, monitor_config):
        _write_auth(monitor_config)
        context = _mock_context(_mock_page())
        capturer = PageCapturer(monitor_config, TODAY)

        def _slow_check(self, result):
            time.sleep(0.3)
            return ["Visual changes: Major changes detected"]

        with patch("pagewatch.capture.page_capture.create_capture_context", AsyncMock(return_value=context)), \
             patch("pagewatch.capture.page_capture.capture_layout", AsyncMock(return_value=make_layout())), \
             patch.object(PageCapturer, "failure_reasons", _slow_check):
            outcome, stall = await _longest_stall(capturer.capture_page(AsyncMock(), "Acme", URL))

        assert outcome.failure_reasons == ["Visual changes: Major changes detected"]
        assert stall < 0.15

    @pytest.mark.asyncio
    async def test_store_lock_wait_runs_off_the_loop(self, monitor_config):
        _write_auth(monitor_config)
        context = _mock_context(_mock_page())
        capturer = PageCapturer(monitor_config, TODAY)
        other_writer = ResultsStore(monitor_config.results_path(TODAY), lock_timeout=0.2)

        with patch("pagewatch.capture.page_capture.create_capture_context", AsyncMock(return_value=context)), \
             patch("pagewatch.capture.page_capture.capture_layout", AsyncMock(return_value=make_layout())), \
             other_writer.lock():
            start = time.monotonic()
            outcome, stall = await _longest_stall(capturer.capture_page(AsyncMock(), "Acme", URL))
            waited = time.monotonic() - start

        assert waited >= 0.2  # waited out the held lock, then forced the write
        assert stall < 0.15
        assert [r.key for r in ResultsStore(monitor_config.results_path(TODAY)).load()] == [outcome.result.key]


# ============================================================================
# failure_reasons
# ============================================================================


class TestFailureReasons:

    def test_large_visual_change(self, monitor_config, tmp_path, base_layout):
        changed = solid_image(10, 10, (0, 0, 0, 255))
        prev = write_png(tmp_path / "prev.png", solid_image(10, 10))
        today = write_png(tmp_path / "today.png", changed)
        base_layout.save(tmp_path / "prev.json")
        base_layout.save(tmp_path / "today.json")
        result = make_page_result(
            previous_path=str(prev), today_path=str(today),
            previous_layout_path=str(tmp_path / "prev.json"),
            today_layout_path=str(tmp_path / "today.json"),
        )

        reasons = PageCapturer(monitor_config, TODAY).failure_reasons(result)

        assert reasons == ["Visual changes: Major changes detected"]

    def test_unreadable_image_does_not_fail(self, monitor_config, tmp_path, base_layout):
        prev = tmp_path / "prev.png"
        prev.write_bytes(b"junk")
        base_layout.save(tmp_path / "layout.json")
        result = make_page_result(
            previous_path=str(prev), today_path=str(prev),
            previous_layout_path=str(tmp_path / "layout.json"),
            today_layout_path=str(tmp_path / "layout.json"),
        )
        assert PageCapturer(monitor_config, TODAY).failure_reasons(result) == []


# ============================================================================
# capture_all
# ============================================================================


class TestCaptureAll:

    @pytest.mark.asyncio
    async def test_runs_every_page_with_bounded_parallelism(self, monitor_config):
        monitor_config.max_parallel_contexts = 2
        monitor_config.products = {
            "Acme": ProductConfig(urls=[f"https://acme.example.com/{i}" for i in range(4)]),
            "Other": ProductConfig(urls=["https://other.example.com"]),
        }
        capturer = PageCapturer(monitor_config, TODAY)
        active = 0
        peak = 0

        async def _fake_capture(browser, product, url):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return CaptureOutcome(result=make_page_result(url=url, product=product, date=TODAY))

        playwright_cm = MagicMock()
        playwright_cm.__aenter__ = AsyncMock(return_value=Mock())
        playwright_cm.__aexit__ = AsyncMock(return_value=False)
        browser = AsyncMock()

        with patch("pagewatch.capture.page_capture.async_playwright", Mock(return_value=playwright_cm)), \
             patch("pagewatch.capture.page_capture.launch_browser", AsyncMock(return_value=browser)), \
             patch.object(capturer, "capture_page", side_effect=_fake_capture):
            outcomes = await capturer.capture_all()

        assert [o.result.url for o in outcomes] == [
            "https://acme.example.com/0", "https://acme.example.com/1",
            "https://acme.example.com/2", "https://acme.example.com/3",
            "https://other.example.com",
        ]
        assert peak == 2
        browser.close.assert_awaited_once()

    def test_planned_pages(self, monitor_config):
        assert PageCapturer(monitor_config, TODAY).planned_pages() == [("Acme", URL)]
