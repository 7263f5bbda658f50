"""Shared URL utilities — derive stable, file-system safe view names."""

from __future__ import annotations

import re

_SCHEME_RE = re.compile(r"^https?://")
_NON_WORD_RE = re.compile(r"\W", re.ASCII)
_UNDERSCORES_RE = re.compile(r"_+")

MAX_VIEW_NAME_LENGTH = 120


def safe_name(url: str) -> str:
    """Turn a URL into a view name usable as a file stem.

    The scheme is dropped, every non-word character becomes an underscore,
    runs of underscores collapse, and the result is capped at 120 characters.
    """
    name = _SCHEME_RE.sub("", url)
    name = _NON_WORD_RE.sub("_", name)
    name = _UNDERSCORES_RE.sub("_", name)
    return name[:MAX_VIEW_NAME_LENGTH]
