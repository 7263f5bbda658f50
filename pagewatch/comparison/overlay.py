"""Layout overlay — annotates a screenshot copy with boxes around changed elements."""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageDraw

from pagewatch.models.layout import LayoutChange, LayoutComparisonResult, PageLayout

logger = logging.getLogger(__name__)

Color = tuple[int, int, int, int]

MISSING_COLOR: Color = (244, 67, 54, 180)
NEW_COLOR: Color = (76, 175, 80, 180)
MAJOR_COLOR: Color = (244, 67, 54, 180)
MODERATE_COLOR: Color = (255, 152, 0, 180)
MINOR_COLOR: Color = (255, 167, 38, 150)

BORDER_THICKNESS = 3
DASH_LENGTH = 10
FILL_ALPHA = 50  # out of 255


def change_color(change: LayoutChange) -> Color:
    if change.type == "missing":
        return MISSING_COLOR
    if change.type == "new":
        return NEW_COLOR
    if change.severity == "major":
        return MAJOR_COLOR
    if change.severity == "moderate":
        return MODERATE_COLOR
    return MINOR_COLOR


def _dash_segments(start: int, length: int, dashed: bool) -> list[tuple[int, int]]:
    """Inclusive (first, last) coordinate runs along one side of a box.

    Dashes cover the odd ``DASH_LENGTH`` periods of absolute image coordinates.
    """
    end = start + length - 1
    if not dashed:
        return [(start, end)]
    segments = []
    period = start // DASH_LENGTH
    while period * DASH_LENGTH <= end:
        if period % 2 == 1:
            segments.append((max(start, period * DASH_LENGTH), min(end, (period + 1) * DASH_LENGTH - 1)))
        period += 1
    return segments


def draw_box(
    image: Image.Image,
    x: int,
    y: int,
    width: int,
    height: int,
    color: Color,
    dashed: bool = False,
) -> None:
    """Draw a bordered, lightly tinted box on an RGBA image in place.

    Border pixels take ``color`` as-is, alpha included; the interior is blended
    toward it. Anything off the image is clipped.
    """
    if width <= 0 or height <= 0:
        return

    draw = ImageDraw.Draw(image)
    right_edge = x + width - 1
    bottom_edge = y + height - 1
    t = BORDER_THICKNESS - 1
    for first, last in _dash_segments(x, width, dashed):
        draw.rectangle([first, y, last, y + t], fill=color)
        draw.rectangle([first, bottom_edge - t, last, bottom_edge], fill=color)
    for first, last in _dash_segments(y, height, dashed):
        draw.rectangle([x, first, x + t, last], fill=color)
        draw.rectangle([right_edge - t, first, right_edge, last], fill=color)

    left = max(x + BORDER_THICKNESS, 0)
    top = max(y + BORDER_THICKNESS, 0)
    right = min(x + width - BORDER_THICKNESS, image.width)
    bottom = min(y + height - BORDER_THICKNESS, image.height)
    if left >= right or top >= bottom:
        return

    region = image.crop((left, top, right, bottom))
    tint = Image.new(image.mode, region.size, color[:3] + (255,))
    image.paste(Image.blend(region, tint, FILL_ALPHA / 255), (left, top))


def render_overlay(
    image: Image.Image,
    result: LayoutComparisonResult,
    previous_layout: PageLayout,
    today_layout: PageLayout,
) -> Image.Image:
    """Return an annotated RGBA copy of ``image``."""
    annotated = image.convert("RGBA")
    for change in result.changes:
        # Missing elements only have a position in the previous snapshot
        layout = previous_layout if change.type == "missing" else today_layout
        element = layout.find(change.selector, change.label)
        if element is None:
            continue
        draw_box(
            annotated,
            element.x, element.y, element.width, element.height,
            change_color(change),
            dashed=change.type == "missing",
        )
    return annotated


def generate_layout_overlay(
    screenshot_path: str | Path,
    result: LayoutComparisonResult,
    previous_layout: PageLayout | str | Path,
    today_layout: PageLayout | str | Path,
    output_path: str | Path,
) -> bool:
    """Write an annotated copy of the screenshot. Returns False if it could not be drawn."""
    try:
        if not isinstance(previous_layout, PageLayout):
            previous_layout = PageLayout.load(previous_layout)
        if not isinstance(today_layout, PageLayout):
            today_layout = PageLayout.load(today_layout)
        with Image.open(screenshot_path) as img:
            annotated = render_overlay(img, result, previous_layout, today_layout)

        out = Path(output_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        annotated.save(out)
    except Exception as e:
        logger.warning("Failed to generate layout overlay: %s", e)
        return False
    return True
