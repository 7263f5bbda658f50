"""Results store — the per-day results collection shared by parallel capture runs."""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from pagewatch.models.test_result import PageResult

logger = logging.getLogger(__name__)

LOCK_POLL_SECONDS = 0.05


def _atomic_write_json(path: Path, data) -> None:
    """Write JSON atomically using a temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", dir=path.parent, suffix=".tmp", delete=False, encoding="utf-8",
    ) as f:
        json.dump(data, f, indent=2, default=str)
        tmp = f.name
    os.replace(tmp, path)


class ResultsStore:
    """Loads and upserts PageResult rows keyed by (url, product).

    Writers serialise through an advisory lock on a sibling ``.lock`` file and
    replace the results file atomically, so readers never see a partial file.
    """

    def __init__(self, path: Path, lock_timeout: float = 5.0):
        self.path = Path(path)
        self.lock_path = self.path.with_name(f".{self.path.name}.lock")
        self.lock_timeout = lock_timeout

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> list[PageResult]:
        """Load all valid rows. Malformed rows are skipped; a corrupt file reads as empty."""
        if not self.path.exists():
            return []
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Failed to read results file %s: %s", self.path, e)
            return []
        if not isinstance(data, list):
            logger.warning("Results file %s is not a list, ignoring it", self.path)
            return []

        results = []
        for i, entry in enumerate(data):
            try:
                results.append(PageResult.model_validate(entry))
            except ValidationError as e:
                logger.warning("Skipping malformed result #%d in %s: %s", i, self.path, e)
        return results

    def save(self, results: list[PageResult]) -> None:
        _atomic_write_json(self.path, [r.model_dump(by_alias=True) for r in results])
        logger.debug("Saved %d results to %s", len(results), self.path)

    def upsert(self, result: PageResult) -> None:
        """Insert or replace the row for result's (url, product), last write wins."""
        with self.lock():
            results = self.load()
            for i, existing in enumerate(results):
                if existing.key == result.key:
                    results[i] = result
                    break
            else:
                results.append(result)
            self.save(results)

    @contextmanager
    def lock(self) -> Iterator[None]:
        """Hold the store's advisory lock.

        A writer that cannot get the lock within ``lock_timeout`` seconds logs
        a warning and proceeds anyway; the atomic replace keeps the file
        well-formed, at the cost of possibly losing the other writer's row.
        """
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        locked = False
        try:
            deadline = time.monotonic() + self.lock_timeout
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    locked = True
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        logger.warning(
                            "Could not lock %s within %.1fs, forcing write",
                            self.path, self.lock_timeout,
                        )
                        break
                    time.sleep(LOCK_POLL_SECONDS)
            yield
        finally:
            if locked:
                fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)
