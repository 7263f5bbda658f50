"""Tests for the locked per-day results store."""

import fcntl
import json
import os

from helpers import make_element, make_layout, make_page_result
from pagewatch.comparison.layout_diff import compare_layouts
from pagewatch.storage.results_store import ResultsStore


class TestLoad:

    def test_missing_file_is_empty(self, tmp_path):
        store = ResultsStore(tmp_path / "results-2025-01-02.json")
        assert not store.exists()
        assert store.load() == []

    def test_corrupt_file_is_empty(self, tmp_path):
        path = tmp_path / "results.json"
        path.write_text("[{broken")
        assert ResultsStore(path).load() == []

    def test_non_list_is_empty(self, tmp_path):
        path = tmp_path / "results.json"
        path.write_text(json.dumps({"url": "x"}))
        assert ResultsStore(path).load() == []

    def test_malformed_rows_are_skipped(self, tmp_path):
        path = tmp_path / "results.json"
        good = make_page_result().model_dump(by_alias=True)
        path.write_text(json.dumps([good, {"url": 42}, "junk", {**good, "status": "exploded"}]))

        results = ResultsStore(path).load()

        assert len(results) == 1
        assert results[0].url == good["url"]


class TestSave:

    def test_round_trips_layout_changes(self, tmp_path):
        old = make_layout(make_element(x=0, y=0))
        new = make_layout(make_element(x=0, y=100))
        result = make_page_result(layout_changes=compare_layouts(old, new), status="error")
        store = ResultsStore(tmp_path / "results.json")

        store.save([result])

        raw = json.loads(store.path.read_text())
        assert raw[0]["layout_changes"]["totalChanges"] == 1
        assert raw[0]["layout_changes"]["changesByType"]["position"] == 1
        loaded = store.load()[0]
        assert loaded.layout_changes.changes[0].type == "position"
        assert loaded.status == "error"

    def test_no_temp_files_left_behind(self, tmp_path):
        store = ResultsStore(tmp_path / "results.json")
        store.save([make_page_result()])
        assert sorted(p.name for p in tmp_path.iterdir()) == ["results.json"]


class TestUpsert:

    def test_appends_new_rows(self, tmp_path):
        store = ResultsStore(tmp_path / "results.json")
        store.upsert(make_page_result(url="https://a.example.com"))
        store.upsert(make_page_result(url="https://b.example.com"))
        assert [r.url for r in store.load()] == ["https://a.example.com", "https://b.example.com"]

    def test_replaces_by_url_and_product(self, tmp_path):
        store = ResultsStore(tmp_path / "results.json")
        store.upsert(make_page_result(url="https://a.example.com", product="Acme"))
        store.upsert(make_page_result(url="https://a.example.com", product="Other"))
        store.upsert(make_page_result(url="https://b.example.com"))

        store.upsert(make_page_result(
            url="https://a.example.com", product="Acme", errors=["Console error: x"], status="error",
        ))

        results = store.load()
        assert len(results) == 3
        acme = [r for r in results if r.key == ("https://a.example.com", "Acme")]
        assert acme[0].status == "error"
        assert results[0].key == ("https://a.example.com", "Acme")  # position kept
        other = [r for r in results if r.product == "Other"]
        assert other[0].status == "pending"

    def test_forces_write_when_lock_is_held(self, tmp_path, caplog):
        store = ResultsStore(tmp_path / "results.json", lock_timeout=0.1)
        store.lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(store.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            store.upsert(make_page_result())
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

        assert len(store.load()) == 1
        assert "forcing write" in caplog.text
