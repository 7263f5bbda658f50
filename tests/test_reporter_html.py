"""Tests for the HTML report generator."""

from helpers import make_element, make_layout, make_page_result, solid_image, write_png
from pagewatch.comparison.layout_diff import compare_layouts
from pagewatch.models.test_result import DateComparisonResult
from pagewatch.reporter.html_report import (
    _build_page_card,
    _embed_image,
    generate_comparison_html_report,
    generate_daily_html_report,
)


class TestEmbedImage:

    def test_png_data_uri(self, tmp_path):
        path = write_png(tmp_path / "shot.png", solid_image(2, 2))
        assert _embed_image(str(path)).startswith("data:image/png;base64,")

    def test_missing_or_empty(self, tmp_path):
        empty = tmp_path / "empty.png"
        empty.write_bytes(b"")
        assert _embed_image(str(tmp_path / "none.png")) == ""
        assert _embed_image(str(empty)) == ""
        assert _embed_image(None) == ""


class TestBuildPageCard:

    def test_first_run_placeholders(self):
        card = _build_page_card(make_page_result(status="ok", comparison_note="First run"))
        assert "✅ OK" in card
        assert "First run" in card
        assert 'data-status="ok"' in card

    def test_no_changes_placeholder(self):
        card = _build_page_card(make_page_result(status="ok", previous_path="/nope/prev.png"))
        assert "No changes" in card
        assert "Not available" in card

    def test_errors_are_escaped(self):
        card = _build_page_card(make_page_result(
            status="error", errors=["Console error: <script>alert(1)</script>"],
        ))
        assert "&lt;script&gt;" in card
        assert "<script>alert" not in card

    def test_layout_changes_sorted_by_severity(self):
        old = make_layout(
            make_element("h1", "Main Heading", color="black"),
            make_element("nav", "Navigation"),
        )
        new = make_layout(make_element("h1", "Main Heading", color="white"))
        result = make_page_result(
            status="error", previous_path="/p.png", layout_changes=compare_layouts(old, new),
        )

        card = _build_page_card(result)

        assert 'data-status="error layout"' in card
        assert card.index("sev-major") < card.index("sev-minor")
        assert "1 element(s) missing, 1 style changed" in card


class TestGenerateDailyHtmlReport:

    def test_writes_self_contained_report(self, tmp_path):
        shot = write_png(tmp_path / "today.png", solid_image(4, 4))
        results = [
            make_page_result(url="https://a.example.com", status="ok", today_path=str(shot)),
            make_page_result(url="https://b.example.com", status="diff", diff_pixels=30, total_pixels=1000),
            make_page_result(url="https://c.example.com", status="error", errors=["Page error: boom"]),
        ]
        out = tmp_path / "reports" / "summary-2025-01-02.html"

        generate_daily_html_report(results, "2025-01-02", 10.0, out)

        html = out.read_text(encoding="utf-8")
        assert "<!DOCTYPE html>" in html
        assert "Visual Regression Report" in html
        assert "data:image/png;base64," in html
        assert "https://b.example.com" in html
        assert "warning at 2.5%" in html
        assert "filterPages('layout')" in html


class TestGenerateComparisonHtmlReport:

    def test_rows(self, tmp_path):
        rows = [
            DateComparisonResult(view_name="home", date1="2025-01-01", date2="2025-01-02",
                                 path1="a.png", path2="b.png", diff_pixels=5, total_pixels=10, status="diff"),
            DateComparisonResult(view_name="bad", date1="2025-01-01", date2="2025-01-02",
                                 path1="a.png", path2="b.png", status="unavailable"),
        ]
        out = tmp_path / "comparison.html"

        generate_comparison_html_report(rows, "2025-01-01", "2025-01-02", out)

        html = out.read_text(encoding="utf-8")
        assert "2025-01-01 vs 2025-01-02" in html
        assert "50.00% changed" in html
        assert "Comparison unavailable" in html
        assert "1 changed" in html
