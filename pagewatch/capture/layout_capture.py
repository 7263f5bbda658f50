"""Layout capture — records geometry and computed styles of tracked elements."""

from __future__ import annotations

import logging
import time

from playwright.async_api import Page

from pagewatch.models.config import DEFAULT_SELECTORS, TrackedSelector
from pagewatch.models.layout import ElementLayout, PageLayout, Viewport

logger = logging.getLogger(__name__)

DEFAULT_MAX_INSTANCES = 10

_COMPUTED_STYLE_JS = """(el) => {
    const style = window.getComputedStyle(el);
    return {
        fontSize: style.fontSize,
        color: style.color,
        backgroundColor: style.backgroundColor,
        zIndex: style.zIndex,
    };
}"""


def _element_identity(selector: str, label: str, index: int, count: int) -> tuple[str, str]:
    """Disambiguate repeated matches as ``sel:nth(i)`` / ``Label #i+1``."""
    if count > 1:
        return f"{selector}:nth({index})", f"{label} #{index + 1}"
    return selector, label


async def capture_layout(
    page: Page,
    url: str,
    selectors: list[TrackedSelector] | None = None,
    max_instances: int = DEFAULT_MAX_INSTANCES,
) -> PageLayout:
    """Capture a layout snapshot of the current page.

    Hidden matches are kept with zero geometry so that a visibility flip shows
    up as a change. Selectors that fail to resolve and elements that detach
    mid-capture are skipped.
    """
    selectors = selectors if selectors is not None else DEFAULT_SELECTORS
    viewport = page.viewport_size or {"width": 1920, "height": 1080}
    elements: list[ElementLayout] = []

    for tracked in selectors:
        try:
            locator = page.locator(tracked.selector)
            count = await locator.count()
        except Exception as e:
            logger.debug("Selector %s not resolvable: %s", tracked.selector, e)
            continue

        for i in range(min(count, max_instances)):
            selector, label = _element_identity(tracked.selector, tracked.label, i, count)
            element = locator.nth(i)
            try:
                if not await element.is_visible():
                    elements.append(ElementLayout(selector=selector, label=label, visible=False))
                    continue

                box = await element.bounding_box()
                if not box:
                    continue
                style = await element.evaluate(_COMPUTED_STYLE_JS)
                elements.append(ElementLayout(
                    selector=selector,
                    label=label,
                    x=round(box["x"]),
                    y=round(box["y"]),
                    width=round(box["width"]),
                    height=round(box["height"]),
                    visible=True,
                    font_size=style.get("fontSize"),
                    color=style.get("color"),
                    background_color=style.get("backgroundColor"),
                    z_index=style.get("zIndex"),
                ))
            except Exception as e:
                logger.debug("Element %s (%s) detached during capture: %s", selector, label, e)
                continue

    logger.debug("Captured %d elements for %s", len(elements), url)
    return PageLayout(
        url=url,
        timestamp=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        viewport=Viewport(width=viewport["width"], height=viewport["height"]),
        elements=elements,
    )
