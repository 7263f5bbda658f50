"""HTML report generator — self-contained daily and date-comparison reports."""

from __future__ import annotations

import base64
import html
import logging
from pathlib import Path

from pagewatch.comparison.layout_diff import get_layout_change_summary
from pagewatch.models.layout import LayoutComparisonResult
from pagewatch.models.test_result import DateComparisonResult, PageResult

from .summary import summarize_results

logger = logging.getLogger(__name__)

_STATUS_COLORS = {"ok": "#22c55e", "diff": "#eab308", "error": "#ef4444", "pending": "#94a3b8"}


def _embed_image(path: str | None) -> str:
    """Read an image file and return a base64 data URI, or empty string on failure."""
    if not path:
        return ""
    try:
        p = Path(path)
        if not p.exists() or p.stat().st_size == 0:
            return ""
        with open(p, "rb") as f:
            data = base64.b64encode(f.read()).decode()
        suffix = p.suffix.lower()
        mime = "image/png" if suffix == ".png" else "image/jpeg" if suffix in (".jpg", ".jpeg") else "image/webp"
        return f"data:{mime};base64,{data}"
    except OSError as e:
        logger.debug("Could not embed %s: %s", path, e)
        return ""


def _image_cell(title: str, path: str | None, placeholder: str) -> str:
    data_uri = _embed_image(path)
    if data_uri:
        body = f'<img src="{data_uri}" alt="{html.escape(title)}" loading="lazy" onclick="this.classList.toggle(\'zoomed\')"/>'
    else:
        body = f'<div class="placeholder">{html.escape(placeholder)}</div>'
    return f'''
        <div class="shot">
          <div class="shot-title">{html.escape(title)}</div>
          {body}
        </div>'''


def _layout_changes_html(layout: LayoutComparisonResult | None) -> str:
    if layout is None or layout.total_changes == 0:
        return ""
    items = ""
    for change in layout.sorted_by_severity():
        items += f'''
          <li class="change">
            <span class="badge sev-{change.severity}">{change.severity}</span>
            <span class="badge type">{change.type}</span>
            <strong>{html.escape(change.label)}</strong>
            <code>{html.escape(change.selector)}</code>
            <span class="change-details">{html.escape(change.details)}</span>
          </li>'''
    return f'''
      <div class="section">
        <h4>Layout changes &middot; score {layout.layout_score}/100</h4>
        <p class="layout-summary">{html.escape(get_layout_change_summary(layout))}</p>
        <ul class="changes">{items}</ul>
      </div>'''


def _build_page_card(r: PageResult) -> str:
    """Build the HTML card for one page's result."""
    border_color = _STATUS_COLORS.get(r.status, "#94a3b8")
    previous_placeholder = "First run" if r.is_first_run else "Not available"
    if r.is_first_run:
        diff_placeholder = "First run"
    elif r.comparison_note:
        diff_placeholder = r.comparison_note
    else:
        diff_placeholder = "No changes"

    layout_flag = " layout" if r.has_layout_changes else ""
    card = f'''
    <div class="page-card" data-status="{r.status}{layout_flag}">
      <div class="page-header" style="border-left: 4px solid {border_color};" onclick="this.parentElement.classList.toggle('expanded')">
        <div class="page-header-left">
          <span class="badge {r.status}">{html.escape(r.status_label)}</span>
          {f'<span class="badge product">{html.escape(r.product)}</span>' if r.product else ''}
          <strong>{html.escape(r.url)}</strong>
          <span class="page-meta">{html.escape(r.summary)} &middot; {r.diff_percentage:.2f}% pixels changed</span>
        </div>
        <span class="expand-arrow">&#9660;</span>
      </div>
      <div class="page-body">
    '''

    if r.comparison_note:
        card += f'<div class="note">{html.escape(r.comparison_note)}</div>'
    if r.previous_date:
        card += f'<div class="page-meta">Compared with {html.escape(r.previous_date)}</div>'

    if r.errors:
        card += '<div class="section"><h4>Console errors</h4><pre class="console-log">'
        for err in r.errors[:20]:
            card += html.escape(err) + "\n"
        card += '</pre></div>'

    card += _layout_changes_html(r.layout_changes)

    card += '<div class="section"><h4>Screenshots</h4><div class="shots">'
    card += _image_cell("Previous", r.previous_path, previous_placeholder)
    card += _image_cell("Today", r.today_path, "Not available")
    card += _image_cell("Pixel diff", r.diff_path, diff_placeholder)
    if r.layout_overlay_path:
        card += _image_cell("Layout overlay", r.layout_overlay_path, "Not available")
    card += '</div></div>'

    card += '</div></div>'  # close page-body and page-card
    return card


_STYLE = '''
  :root { --ok: #22c55e; --diff: #eab308; --error: #ef4444; --bg: #f8fafc; --card: white; --border: #e2e8f0; --text: #1e293b; --muted: #64748b; --accent: #6366f1; }
  * { margin: 0; padding: 0; box-sizing: border-box; }
  body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: var(--bg); color: var(--text); line-height: 1.6; padding: 1.5rem; }
  .container { max-width: 1600px; margin: 0 auto; }
  h1 { font-size: 1.8rem; margin-bottom: 0.3rem; }
  .meta { color: var(--muted); margin-bottom: 1.5rem; font-size: 0.9rem; }
  .summary { display: grid; grid-template-columns: repeat(auto-fit, minmax(130px, 1fr)); gap: 0.8rem; margin-bottom: 1.5rem; }
  .stat { background: var(--card); border-radius: 8px; padding: 1rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); text-align: center; }
  .stat .value { font-size: 1.8rem; font-weight: 700; }
  .stat .label { font-size: 0.8rem; color: var(--muted); }
  .stat.ok .value { color: var(--ok); }
  .stat.diff .value { color: var(--diff); }
  .stat.error .value { color: var(--error); }
  .badge { display: inline-block; padding: 0.15rem 0.55rem; border-radius: 9999px; font-size: 0.7rem; font-weight: 600; white-space: nowrap; }
  .badge.ok { background: #dcfce7; color: #166534; }
  .badge.diff { background: #fef9c3; color: #854d0e; }
  .badge.error { background: #fecaca; color: #991b1b; }
  .badge.pending, .badge.type { background: #f1f5f9; color: #475569; }
  .badge.product { background: #e0e7ff; color: #3730a3; }
  .badge.sev-major { background: #fecaca; color: #991b1b; }
  .badge.sev-moderate { background: #fed7aa; color: #9a3412; }
  .badge.sev-minor { background: #fef9c3; color: #854d0e; }
  .page-card { background: var(--card); border-radius: 8px; margin-bottom: 0.6rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); overflow: hidden; }
  .page-header { display: flex; justify-content: space-between; align-items: center; padding: 0.7rem 1rem; cursor: pointer; user-select: none; }
  .page-header:hover { background: #f8fafc; }
  .page-header-left { display: flex; align-items: center; gap: 0.5rem; flex-wrap: wrap; }
  .page-meta { font-size: 0.78rem; color: var(--muted); }
  .expand-arrow { color: var(--muted); font-size: 0.7rem; transition: transform 0.2s; }
  .page-card.expanded .expand-arrow { transform: rotate(180deg); }
  .page-body { display: none; padding: 0 1rem 1rem 1rem; }
  .page-card.expanded .page-body { display: block; }
  .note { background: #f1f5f9; border-radius: 4px; padding: 0.5rem; margin-bottom: 0.8rem; font-size: 0.88rem; color: var(--muted); }
  .section { margin: 0.8rem 0 1rem 0; }
  .section h4 { font-size: 0.85rem; color: var(--muted); text-transform: uppercase; letter-spacing: 0.05em; margin-bottom: 0.4rem; padding-bottom: 0.25rem; border-bottom: 1px solid var(--border); }
  .layout-summary { font-size: 0.88rem; margin-bottom: 0.4rem; }
  .changes { list-style: none; }
  .change { display: flex; align-items: center; gap: 0.4rem; flex-wrap: wrap; padding: 0.3rem 0; border-bottom: 1px solid #f1f5f9; font-size: 0.85rem; }
  .change code { background: #f1f5f9; padding: 0.1rem 0.3rem; border-radius: 3px; font-size: 0.8rem; }
  .change-details { color: var(--muted); }
  .shots { display: grid; grid-template-columns: repeat(auto-fill, minmax(280px, 1fr)); gap: 0.6rem; }
  .shot { text-align: center; }
  .shot-title { font-size: 0.75rem; color: var(--muted); margin-bottom: 0.2rem; }
  .shot img { width: 100%; border-radius: 6px; border: 1px solid var(--border); cursor: pointer; }
  .shot img.zoomed { position: fixed; top: 5%; left: 5%; width: 90%; height: 90%; object-fit: contain; z-index: 1000; background: rgba(0,0,0,0.85); border: none; border-radius: 8px; padding: 1rem; }
  .placeholder { display: flex; align-items: center; justify-content: center; height: 160px; border: 1px dashed var(--border); border-radius: 6px; color: var(--muted); font-size: 0.85rem; }
  .console-log { background: #1e293b; color: #f1f5f9; padding: 0.8rem; border-radius: 6px; font-size: 0.78rem; overflow-x: auto; max-height: 200px; overflow-y: auto; }
  .filter-bar { display: flex; gap: 0.5rem; margin-bottom: 1rem; flex-wrap: wrap; }
  .filter-btn { padding: 0.3rem 0.8rem; border-radius: 6px; border: 1px solid var(--border); background: var(--card); cursor: pointer; font-size: 0.82rem; }
  .filter-btn.active { background: var(--accent); color: white; border-color: var(--accent); }
  table { width: 100%; border-collapse: collapse; background: var(--card); border-radius: 8px; overflow: hidden; box-shadow: 0 1px 3px rgba(0,0,0,0.08); }
  th, td { padding: 0.6rem; border-bottom: 1px solid var(--border); text-align: left; vertical-align: top; font-size: 0.85rem; }
  td img { width: 100%; max-width: 420px; border-radius: 4px; border: 1px solid var(--border); cursor: pointer; }
  td img.zoomed { position: fixed; top: 5%; left: 5%; width: 90%; max-width: none; height: 90%; object-fit: contain; z-index: 1000; background: rgba(0,0,0,0.85); }
'''

_SCRIPT = '''
function filterPages(kind) {
  document.querySelectorAll('.filter-btn').forEach(b => b.classList.remove('active'));
  event.target.classList.add('active');
  document.querySelectorAll('.page-card').forEach(card => {
    const tags = card.dataset.status.split(' ');
    card.style.display = kind === 'all' || tags.includes(kind) ? '' : 'none';
  });
}
function expandAll() {
  document.querySelectorAll('.page-card').forEach(c => c.classList.add('expanded'));
}
function collapseAll() {
  document.querySelectorAll('.page-card').forEach(c => c.classList.remove('expanded'));
}
'''


def generate_daily_html_report(
    results: list[PageResult],
    today: str,
    pixel_diff_threshold: float,
    output_path: Path,
) -> None:
    """Generate the self-contained daily summary with one card per page."""
    stats = summarize_results(results, pixel_diff_threshold)
    cards = "".join(_build_page_card(r) for r in results)

    report_html = f'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Visual Regression Report &mdash; {html.escape(today)}</title>
<style>{_STYLE}</style>
</head>
<body>
<div class="container">
  <h1>Visual Regression Report</h1>
  <p class="meta">Date: {html.escape(today)} &middot; Pixel diff threshold: {pixel_diff_threshold}% (warning at {pixel_diff_threshold / 4}%)</p>

  <div class="summary">
    <div class="stat"><div class="value">{stats.total}</div><div class="label">Pages</div></div>
    <div class="stat ok"><div class="value">{stats.passed}</div><div class="label">Passed</div></div>
    <div class="stat diff"><div class="value">{stats.changes}</div><div class="label">Changes</div></div>
    <div class="stat error"><div class="value">{stats.errors}</div><div class="label">Errors</div></div>
    <div class="stat"><div class="value">{stats.visual_issues}</div><div class="label">Visual issues</div></div>
    <div class="stat"><div class="value">{stats.layout_issues}</div><div class="label">Layout issues</div></div>
    <div class="stat"><div class="value">{stats.console_issues}</div><div class="label">Console issues</div></div>
  </div>

  <div class="filter-bar">
    <button class="filter-btn active" onclick="filterPages('all')">All</button>
    <button class="filter-btn" onclick="filterPages('error')">Errors</button>
    <button class="filter-btn" onclick="filterPages('diff')">Changes</button>
    <button class="filter-btn" onclick="filterPages('layout')">Layout changes</button>
    <button class="filter-btn" onclick="filterPages('ok')">Passed</button>
    <button class="filter-btn" onclick="expandAll()">Expand All</button>
    <button class="filter-btn" onclick="collapseAll()">Collapse All</button>
  </div>

  <div id="page-list">
    {cards}
  </div>
</div>

<script>{_SCRIPT}</script>
</body>
</html>'''

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(report_html)


def _comparison_row(row: DateComparisonResult) -> str:
    def _img(path: str | None, placeholder: str) -> str:
        data_uri = _embed_image(path)
        if not data_uri:
            return f'<div class="placeholder">{placeholder}</div>'
        return f'<img src="{data_uri}" loading="lazy" onclick="this.classList.toggle(\'zoomed\')"/>'

    if row.status == "unavailable":
        status = '<span class="badge error">Comparison unavailable</span>'
    elif row.status == "diff":
        status = f'<span class="badge diff">{row.diff_percentage:.2f}% changed</span>'
    else:
        status = '<span class="badge ok">Identical</span>'

    return f'''
    <tr>
      <td><strong>{html.escape(row.view_name)}</strong><br>{status}</td>
      <td>{_img(row.path1, "Not available")}</td>
      <td>{_img(row.path2, "Not available")}</td>
      <td>{_img(row.diff_path, "No changes")}</td>
    </tr>'''


def generate_comparison_html_report(
    rows: list[DateComparisonResult],
    date1: str,
    date2: str,
    output_path: Path,
) -> None:
    """Generate a side-by-side report of every screenshot present on both dates."""
    changed = sum(1 for r in rows if r.status == "diff")
    body = "".join(_comparison_row(r) for r in rows)

    report_html = f'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Comparison &mdash; {html.escape(date1)} vs {html.escape(date2)}</title>
<style>{_STYLE}</style>
</head>
<body>
<div class="container">
  <h1>Comparison: {html.escape(date1)} vs {html.escape(date2)}</h1>
  <p class="meta">{len(rows)} screenshots compared &middot; {changed} changed</p>
  <table>
    <thead><tr><th>Page</th><th>{html.escape(date1)}</th><th>{html.escape(date2)}</th><th>Diff</th></tr></thead>
    <tbody>{body}</tbody>
  </table>
</div>
</body>
</html>'''

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(report_html)
