"""Capture history on disk — dated screenshot directories and retention."""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

DATE_DIR_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def list_available_dates(daily_dir: Path) -> list[str]:
    """Capture dates, newest first."""
    daily_dir = Path(daily_dir)
    if not daily_dir.exists():
        return []
    return sorted(
        (p.name for p in daily_dir.iterdir() if p.is_dir() and DATE_DIR_RE.match(p.name)),
        reverse=True,
    )


def find_previous_day_dir(daily_dir: Path, product: str, today: str) -> tuple[Path | None, str | None]:
    """Return the product directory of the most recent capture date before today.

    Only the latest earlier date is considered; if that date has no directory
    for the product, there is no previous capture.
    """
    earlier = [d for d in list_available_dates(daily_dir) if d < today]
    if not earlier:
        return None, None
    product_dir = Path(daily_dir) / earlier[0] / product
    if product_dir.exists():
        return product_dir, earlier[0]
    return None, None


def cleanup_old_files(directory: Path, pattern: re.Pattern | str, keep_count: int) -> list[Path]:
    """Delete all but the newest ``keep_count`` entries whose names match pattern.

    Names are compared lexically, which orders dated names chronologically.
    """
    directory = Path(directory)
    if not directory.exists():
        return []
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern
    entries = sorted((p for p in directory.iterdir() if regex.search(p.name)), key=lambda p: p.name)
    if len(entries) <= keep_count:
        return []

    removed = entries[: len(entries) - keep_count]
    for path in removed:
        if path.is_dir():
            shutil.rmtree(path, ignore_errors=True)
            logger.info("Removed old directory: %s", path)
        else:
            path.unlink(missing_ok=True)
            logger.info("Removed old file: %s", path)
    return removed


def scan_screenshots(date_dir: Path) -> dict[str, Path]:
    """Map screenshot file name -> path, looking in product sub-directories too."""
    screenshots: dict[str, Path] = {}
    for item in sorted(Path(date_dir).iterdir()):
        if item.is_dir():
            for png in sorted(item.glob("*.png")):
                screenshots[png.name] = png
        elif item.suffix == ".png":
            screenshots[item.name] = item
    return screenshots
