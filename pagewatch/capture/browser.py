"""Browser helpers for capture runs."""

from __future__ import annotations

from typing import Optional

from playwright.async_api import Browser, BrowserContext, Playwright

# Freeze caret blinking and transitions so consecutive captures are comparable
_STABILIZE_INIT_SCRIPT = """
(() => {
    const style = document.createElement('style');
    style.textContent = `*, *::before, *::after {
        caret-color: transparent !important;
        transition: none !important;
        animation-play-state: paused !important;
    }`;
    document.addEventListener('DOMContentLoaded', () => document.head.appendChild(style));
})();
"""


async def launch_browser(playwright: Playwright, headless: bool = True) -> Browser:
    """Launch Chromium for capturing."""
    return await playwright.chromium.launch(headless=headless)


async def create_capture_context(
    browser: Browser,
    viewport: dict,
    storage_state: Optional[dict | str] = None,
) -> BrowserContext:
    """Create an isolated browser context for one page capture.

    Args:
        storage_state: Optional Playwright storage state (cookies + localStorage)
            to seed the context with. Accepts a dict or a path to a JSON file.
    """
    context = await browser.new_context(
        viewport=viewport,
        locale="en-US",
        storage_state=storage_state,
    )
    await context.add_init_script(_STABILIZE_INIT_SCRIPT)
    return context
