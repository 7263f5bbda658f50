"""Layout diffing — matches tracked elements across two snapshots and scores the changes."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path

from pagewatch.models.layout import (
    CHANGE_TYPES,
    ElementLayout,
    LayoutChange,
    LayoutComparisonResult,
    PageLayout,
    Severity,
)

logger = logging.getLogger(__name__)

# Upper bound (inclusive) of each severity band; anything above "moderate" is major
LAYOUT_THRESHOLDS: dict[str, dict[str, float]] = {
    "position": {"minor": 5, "moderate": 20, "major": 50},  # pixels
    "size": {"minor": 0.02, "moderate": 0.1, "major": 0.25},  # relative change
}

# Width/height deltas at or below this are rendering noise
SIZE_CHANGE_MIN_PX = 5

CHANGE_WEIGHTS: dict[str, float] = {
    "position": 1,
    "size": 2,
    "style": 0.5,
    "missing": 5,
    "new": 3,
    "visibility": 2,
}

# Heuristic normaliser: tracked elements x this factor
SCORE_ELEMENT_FACTOR = 3

SEVERITY_RANK: dict[str, int] = {"minor": 0, "moderate": 1, "major": 2}


@dataclass
class StatusInfo:
    status: str  # ok, warning, error
    icon: str


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _bucket(value: float, thresholds: dict[str, float]) -> Severity:
    for severity in ("minor", "moderate"):
        if value <= thresholds[severity]:
            return severity
    return "major"


def position_severity(distance: float) -> Severity:
    return _bucket(distance, LAYOUT_THRESHOLDS["position"])


def size_severity(old_size: int, new_size: int) -> Severity:
    """Severity of one dimension's change, relative to its old size."""
    if old_size == 0:
        return "major"
    return _bucket(abs(new_size - old_size) / old_size, LAYOUT_THRESHOLDS["size"])


def worst_severity(*severities: Severity) -> Severity:
    return max(severities, key=lambda s: SEVERITY_RANK[s])


def _find_match(element: ElementLayout, candidates: list[ElementLayout]) -> ElementLayout | None:
    for candidate in candidates:
        if candidate.selector == element.selector and candidate.label == element.label:
            return candidate
    return None


def _compare_pair(old: ElementLayout, new: ElementLayout) -> list[LayoutChange]:
    """All changes between two matched elements, in check order."""
    changes: list[LayoutChange] = []

    if old.visible != new.visible:
        old_state = "visible" if old.visible else "hidden"
        new_state = "visible" if new.visible else "hidden"
        changes.append(LayoutChange(
            type="visibility",
            severity="moderate",
            selector=old.selector,
            label=old.label,
            details=f'Element "{old.label}" visibility changed from {old_state} to {new_state}',
            old_value=old.visible,
            new_value=new.visible,
        ))

    # Geometry and style only mean something when both are rendered
    if not (old.visible and new.visible):
        return changes

    distance = math.hypot(new.x - old.x, new.y - old.y)
    if distance > LAYOUT_THRESHOLDS["position"]["minor"]:
        changes.append(LayoutChange(
            type="position",
            severity=position_severity(distance),
            selector=old.selector,
            label=old.label,
            details=(
                f'Element "{old.label}" moved {_round_half_up(distance)}px '
                f"({old.x},{old.y}) → ({new.x},{new.y})"
            ),
            old_value={"x": old.x, "y": old.y},
            new_value={"x": new.x, "y": new.y},
        ))

    width_change = abs(new.width - old.width)
    height_change = abs(new.height - old.height)
    if width_change > SIZE_CHANGE_MIN_PX or height_change > SIZE_CHANGE_MIN_PX:
        severity = worst_severity(
            size_severity(old.width, new.width),
            size_severity(old.height, new.height),
        )
        changes.append(LayoutChange(
            type="size",
            severity=severity,
            selector=old.selector,
            label=old.label,
            details=(
                f'Element "{old.label}" resized from {old.width}×{old.height} '
                f"to {new.width}×{new.height}"
            ),
            old_value={"width": old.width, "height": old.height},
            new_value={"width": new.width, "height": new.height},
        ))

    style_diffs = []
    if old.font_size != new.font_size:
        style_diffs.append(f"font-size: {old.font_size} → {new.font_size}")
    if old.color != new.color:
        style_diffs.append(f"color: {old.color} → {new.color}")
    if old.background_color != new.background_color:
        style_diffs.append(f"background: {old.background_color} → {new.background_color}")
    if style_diffs:
        changes.append(LayoutChange(
            type="style",
            severity="minor",
            selector=old.selector,
            label=old.label,
            details=f'Element "{old.label}" styles changed: {", ".join(style_diffs)}',
            old_value={
                "fontSize": old.font_size,
                "color": old.color,
                "backgroundColor": old.background_color,
            },
            new_value={
                "fontSize": new.font_size,
                "color": new.color,
                "backgroundColor": new.background_color,
            },
        ))

    return changes


def calculate_layout_score(changes_by_type: dict[str, int], old_count: int, new_count: int) -> int:
    """Heuristic 0-100 health score; 100 means no weighted changes."""
    max_possible = max(old_count, new_count) * SCORE_ELEMENT_FACTOR
    if max_possible == 0:
        return 100
    total_weight = sum(count * CHANGE_WEIGHTS[t] for t, count in changes_by_type.items())
    return max(0, _round_half_up(100 - (total_weight / max_possible) * 100))


def compare_layouts(old_layout: PageLayout, new_layout: PageLayout) -> LayoutComparisonResult:
    """Compare two layout snapshots of the same page.

    Elements are matched by their (selector, label) key. Changes come out in
    old-element order followed by newly appeared elements; callers that want
    severity order must sort (see ``LayoutComparisonResult.sorted_by_severity``).
    """
    changes: list[LayoutChange] = []

    for old in old_layout.elements:
        new = _find_match(old, new_layout.elements)
        if new is None:
            changes.append(LayoutChange(
                type="missing",
                severity="major",
                selector=old.selector,
                label=old.label,
                details=f'Element "{old.label}" no longer exists',
                old_value=old.box(),
                new_value=None,
            ))
            continue
        changes.extend(_compare_pair(old, new))

    for new in new_layout.elements:
        if _find_match(new, old_layout.elements) is None:
            changes.append(LayoutChange(
                type="new",
                severity="moderate",
                selector=new.selector,
                label=new.label,
                details=f'New element "{new.label}" appeared at ({new.x},{new.y})',
                old_value=None,
                new_value=new.box(),
            ))

    changes_by_type = dict.fromkeys(CHANGE_TYPES, 0)
    for change in changes:
        changes_by_type[change.type] += 1

    return LayoutComparisonResult(
        total_changes=len(changes),
        changes=changes,
        changes_by_type=changes_by_type,
        layout_score=calculate_layout_score(
            changes_by_type, len(old_layout.elements), len(new_layout.elements),
        ),
    )


def compare_layout_files(
    previous_layout_path: str | Path | None,
    today_layout_path: str | Path | None,
) -> LayoutComparisonResult | None:
    """Compare two snapshot files; None when either is absent or unreadable."""
    if not previous_layout_path or not Path(previous_layout_path).exists():
        return None
    if not today_layout_path or not Path(today_layout_path).exists():
        return None

    try:
        previous = PageLayout.load(previous_layout_path)
        today = PageLayout.load(today_layout_path)
    except Exception as e:
        logger.warning("Failed to compare layouts: %s", e)
        return None
    return compare_layouts(previous, today)


def get_layout_change_summary(result: LayoutComparisonResult) -> str:
    """One-line human summary, e.g. '1 element(s) missing, 2 moved'."""
    counts = result.changes_by_type
    parts = []
    if counts["missing"]:
        parts.append(f"{counts['missing']} element(s) missing")
    if counts["new"]:
        parts.append(f"{counts['new']} new element(s)")
    if counts["position"]:
        parts.append(f"{counts['position']} moved")
    if counts["size"]:
        parts.append(f"{counts['size']} resized")
    if counts["visibility"]:
        parts.append(f"{counts['visibility']} visibility changed")
    if counts["style"]:
        parts.append(f"{counts['style']} style changed")

    if not parts:
        return "No layout changes detected"
    return ", ".join(parts)


def get_layout_status(result: LayoutComparisonResult) -> StatusInfo:
    """Classify a layout comparison as ok, warning or error."""
    if result.count_severity("major") > 0 or result.changes_by_type["missing"] > 0:
        return StatusInfo(status="error", icon="❌")
    if result.count_severity("moderate") > 3 or result.total_changes > 5:
        return StatusInfo(status="warning", icon="⚠️")
    if result.total_changes > 0:
        return StatusInfo(status="warning", icon="⚠️")
    return StatusInfo(status="ok", icon="✅")
