"""Layout snapshot data structures shared by capture and comparison."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ChangeType = Literal["position", "size", "style", "missing", "new", "visibility"]
Severity = Literal["minor", "moderate", "major"]

CHANGE_TYPES: tuple[str, ...] = ("position", "size", "style", "missing", "new", "visibility")
SEVERITY_ORDER: dict[str, int] = {"major": 0, "moderate": 1, "minor": 2}


class _SnapshotModel(BaseModel):
    # On-disk snapshots use camelCase keys (fontSize, changesByType, ...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ElementLayout(_SnapshotModel):
    model_config = ConfigDict(frozen=True)

    selector: str
    label: str
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0
    visible: bool = False
    # Computed styles, only populated for visible elements
    font_size: Optional[str] = None
    color: Optional[str] = None
    background_color: Optional[str] = None
    z_index: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.selector, self.label)

    def box(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


class Viewport(_SnapshotModel):
    width: int = 1920
    height: int = 1080


class PageLayout(_SnapshotModel):
    """One layout snapshot of a page, written once per visit."""

    model_config = ConfigDict(frozen=True)

    url: str
    timestamp: str = ""
    viewport: Viewport = Field(default_factory=Viewport)
    elements: list[ElementLayout] = Field(default_factory=list)

    def find(self, selector: str, label: str) -> ElementLayout | None:
        """Return the first element matching the (selector, label) key."""
        for element in self.elements:
            if element.selector == selector and element.label == label:
                return element
        return None

    @classmethod
    def load(cls, path: str | Path) -> "PageLayout":
        """Load a snapshot from a JSON file. Raises on missing or invalid files."""
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return cls.model_validate(data)

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(by_alias=True), f, indent=2)


class LayoutChange(_SnapshotModel):
    type: ChangeType
    severity: Severity
    selector: str
    label: str
    details: str = ""
    old_value: Any = None
    new_value: Any = None


class LayoutComparisonResult(_SnapshotModel):
    total_changes: int = 0
    changes: list[LayoutChange] = Field(default_factory=list)
    changes_by_type: dict[str, int] = Field(default_factory=lambda: dict.fromkeys(CHANGE_TYPES, 0))
    layout_score: int = 100  # 0-100, 100 = identical

    @field_validator("changes_by_type", mode="before")
    @classmethod
    def fill_missing_types(cls, v: Any) -> Any:
        if isinstance(v, dict):
            counts = dict.fromkeys(CHANGE_TYPES, 0)
            counts.update(v)
            return counts
        return v

    def count_severity(self, severity: str) -> int:
        return sum(1 for c in self.changes if c.severity == severity)

    def sorted_by_severity(self) -> list[LayoutChange]:
        """Changes ordered major, moderate, minor (stable within a severity)."""
        return sorted(self.changes, key=lambda c: SEVERITY_ORDER[c.severity])
