"""Builders for images, layout snapshots and result rows used across the tests."""

from pathlib import Path

import numpy as np
from PIL import Image

from pagewatch.models.layout import ElementLayout, PageLayout, Viewport
from pagewatch.models.test_result import PageResult


# ============================================================================
# Images
# ============================================================================


def solid_image(width: int, height: int, color=(255, 255, 255, 255)) -> np.ndarray:
    """An RGBA array filled with one colour."""
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[:, :] = color
    return pixels


def write_png(path: Path, pixels: np.ndarray) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(pixels).save(path)
    return path


# ============================================================================
# Layout snapshots
# ============================================================================


def make_element(selector="h1", label="Main Heading", x=100, y=100, width=400, height=50,
                 visible=True, **styles) -> ElementLayout:
    defaults = {"font_size": "32px", "color": "rgb(0, 0, 0)", "background_color": "rgba(0, 0, 0, 0)"}
    if not visible:
        return ElementLayout(selector=selector, label=label, visible=False)
    defaults.update(styles)
    return ElementLayout(
        selector=selector, label=label, x=x, y=y, width=width, height=height,
        visible=True, **defaults,
    )


def make_layout(*elements: ElementLayout, url="https://app.example.com/dashboard") -> PageLayout:
    return PageLayout(
        url=url,
        timestamp="2025-01-01T00:00:00Z",
        viewport=Viewport(width=1920, height=1080),
        elements=list(elements),
    )


# ============================================================================
# Result rows
# ============================================================================


def make_page_result(url="https://app.example.com/dashboard", product="Acme",
                     date="2025-01-02", **kwargs) -> PageResult:
    fields = {
        "url": url,
        "view_name": "app_example_com_dashboard",
        "product": product,
        "date": date,
        "today_path": f"/tmp/{date}/{product}/app_example_com_dashboard.png",
    }
    fields.update(kwargs)
    return PageResult(**fields)
