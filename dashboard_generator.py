"""
Presentation adapter: collects what the session renders and writes it out
as a self-contained HTML dashboard (Leaflet map + list + comparison) and a
JSON snapshot.
"""

import json
import logging
import os
from datetime import datetime, timezone
from html import escape
from typing import Any, Optional

from config import AppConfig
from fetchers import Point
from filters import format_address, has_wifi
from markers import icon_for
from scorer import Comparison
from session import Presenter, Session

logger = logging.getLogger(__name__)


def tile_data(point: Point) -> dict[str, Any]:
    """Display fields for one list entry."""
    attrs = point.attributes
    return {
        "id": point.id,
        "title": point.name,
        "type": point.category.value,
        "hours": attrs.get("hours"),
        "phone": attrs.get("phone"),
        "address": format_address(attrs) or None,
        "wifi": has_wifi(attrs),
        "website": attrs.get("website"),
        "website_url": attrs.get("website_url"),
        "description": attrs.get("description"),
        "lat": point.latitude,
        "lng": point.longitude,
        "icon": icon_for(point).url,
    }


class DashboardPresenter(Presenter):
    """Keeps the latest rendered list, detail panel, comparison and notices."""

    def __init__(self):
        self.total = 0
        self.more_available = False
        self.items: list[dict[str, Any]] = []
        self.detail: Optional[dict[str, Any]] = None
        self.comparison: Optional[Comparison] = None
        self.notices: list[str] = []

    def begin_list(self, total: int, more_available: bool) -> None:
        self.total = total
        self.more_available = more_available
        self.items = []

    def render_list_item(self, point: Point, selected: bool) -> None:
        item = tile_data(point)
        item["selected"] = selected
        self.items.append(item)

    def render_detail_panel(self, point: Point, score: int, reasons: list[tuple[str, int]]) -> None:
        self.detail = {**tile_data(point), "score": score, "reasons": [
            {"label": label, "points": pts} for label, pts in reasons
        ]}

    def render_comparison(self, comparison: Comparison) -> None:
        self.comparison = comparison

    def notice(self, message: str) -> None:
        self.notices.append(message)


def _comparison_json(comparison: Optional[Comparison]) -> dict[str, Any]:
    if comparison is None or comparison.insufficient:
        return {"status": "insufficient_selection", "rows": [], "best": None}
    best_point, best_score = comparison.best
    return {
        "status": "ok",
        "rows": [
            {"id": r.point.id, "title": r.point.name, "type": r.point.category.value,
             "score": r.score, "reasons": r.reasons}
            for r in comparison.rows
        ],
        "best": {"id": best_point.id, "title": best_point.name, "score": best_score},
    }


def build_snapshot(session: Session, presenter: DashboardPresenter) -> dict[str, Any]:
    """JSON-ready view of the session as last rendered."""
    criteria = session.state.criteria
    renderer = session.renderer
    bounds = renderer.get_bounds()
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "status": session.state.status,
        "criteria": {
            "city": criteria.city,
            "category": criteria.category.value if criteria.category else None,
            "wifi_required": criteria.wifi_required,
            "search_text": criteria.search_text,
        },
        "viewport": {
            "zoom": renderer.get_zoom(),
            "bounds": [bounds.south, bounds.west, bounds.north, bounds.east],
        },
        "total_points": len(session.store),
        "filtered": presenter.total,
        "more_available": presenter.more_available,
        "markers": [tile_data(p) for p in session.state.visible],
        "list": presenter.items,
        "selection": session.state.selection.ids,
        "comparison": _comparison_json(session.comparison()),
        "detail": presenter.detail,
        "notices": presenter.notices,
    }


def generate_dashboard(session: Session, presenter: DashboardPresenter, config: AppConfig) -> str:
    """Write the JSON snapshot and the HTML dashboard; returns the HTML path."""
    os.makedirs(config.output_dir, exist_ok=True)
    snapshot = build_snapshot(session, presenter)

    json_path = os.path.join(config.output_dir, config.data_filename)
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(snapshot, f, indent=2, ensure_ascii=False)

    now = datetime.now().strftime("%B %d, %Y at %I:%M %p")
    data_blob = json.dumps(snapshot, ensure_ascii=False).replace("</", "<\\/")
    html = _build_html(data_blob, now, snapshot)

    html_path = os.path.join(config.output_dir, config.dashboard_filename)
    with open(html_path, "w", encoding="utf-8") as f:
        f.write(html)

    logger.info(f"Dashboard: {len(snapshot['markers'])} markers, {len(snapshot['list'])} list entries")
    return html_path


def _build_html(data_json: str, generated_at: str, snapshot: dict[str, Any]) -> str:
    criteria = snapshot["criteria"]
    active = [f"{k}: {v}" for k, v in criteria.items() if v not in (None, "")]
    summary = escape(" · ".join(active) or "No filters")
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Spot Finder — Dashboard</title>
<link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css">
<script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
<style>
  :root {{
    --bg:      #fafafa;
    --surface: #ffffff;
    --border:  #e3e3e8;
    --text:    #1d1d21;
    --text2:   #6b6b73;
    --accent:  #2e7d32;
    --radius:  10px;
  }}
  * {{ margin:0; padding:0; box-sizing:border-box; }}
  body {{ font-family: system-ui, sans-serif; background: var(--bg); color: var(--text); line-height: 1.5; }}
  .header {{ padding: 1.5rem 2rem; border-bottom: 1px solid var(--border); display: flex;
             justify-content: space-between; align-items: flex-end; flex-wrap: wrap; gap: 1rem; }}
  .header .meta {{ font-size: 0.8rem; color: var(--text2); text-align: right; }}
  .layout {{ display: grid; grid-template-columns: 2fr 1fr; gap: 1rem; padding: 1rem 2rem; }}
  #map {{ height: 70vh; border-radius: var(--radius); border: 1px solid var(--border); }}
  .spots {{ max-height: 70vh; overflow-y: auto; display: flex; flex-direction: column; gap: 0.5rem; }}
  .tile {{ background: var(--surface); border: 1px solid var(--border); border-radius: var(--radius);
           padding: 0.75rem 1rem; font-size: 0.85rem; }}
  .tile.selected {{ border-color: var(--accent); }}
  .tile h3 {{ font-size: 1rem; }}
  .tile p {{ color: var(--text2); }}
  .more {{ text-align: center; color: var(--text2); font-size: 0.8rem; }}
  .compare {{ padding: 0 2rem 2rem; }}
  .compare table {{ border-collapse: collapse; width: 100%; background: var(--surface); }}
  .compare th, .compare td {{ border: 1px solid var(--border); padding: 0.4rem 0.6rem; text-align: left; }}
  .compare tr.best {{ background: #e8f5e9; }}
  .notice {{ margin: 0.5rem 2rem; padding: 0.5rem 1rem; border-radius: var(--radius); background: #fff3e0; }}
  @media (max-width: 900px) {{ .layout {{ grid-template-columns: 1fr; }} }}
</style>
</head>
<body>

<div class="header">
  <h1>Spot Finder</h1>
  <div class="meta">
    <div>{summary}</div>
    <div>Updated {generated_at}</div>
  </div>
</div>

<div id="notices"></div>

<div class="layout">
  <div id="map"></div>
  <div>
    <div class="spots" id="spots"></div>
    <div class="more" id="more"></div>
  </div>
</div>

<div class="compare" id="compare"></div>

<script>
const DATA = {data_json};

function esc(s) {{
  return String(s ?? '').replace(/[&<>"']/g, c => ({{'&':'&amp;','<':'&lt;','>':'&gt;','"':'&quot;',"'":'&#39;'}})[c]);
}}

// ── Map ──────────────────────────────────
const b = DATA.viewport.bounds;
const map = L.map('map', {{ preferCanvas: true }}).fitBounds([[b[0], b[1]], [b[2], b[3]]]);
L.tileLayer('https://{{s}}.basemaps.cartocdn.com/light_all/{{z}}/{{x}}/{{y}}{{r}}.png', {{
  attribution: '&copy; OSM contributors &copy; CARTO',
  subdomains: 'abcd',
  maxZoom: 19,
}}).addTo(map);
const group = L.layerGroup().addTo(map);
DATA.markers.forEach(m => {{
  L.marker([m.lat, m.lng], {{
    title: m.title,
    icon: L.icon({{ iconUrl: m.icon, iconSize: [32, 32], iconAnchor: [16, 32], popupAnchor: [0, -32] }}),
  }}).bindPopup(esc(m.title)).addTo(group);
}});

// ── List ─────────────────────────────────
const spots = document.getElementById('spots');
if (!DATA.list.length) {{
  spots.innerHTML = '<div class="tile"><h3>No spots match</h3><p>Try adjusting your filters.</p></div>';
}}
spots.innerHTML += DATA.list.map(t => `
  <div class="tile ${{t.selected ? 'selected' : ''}}">
    <h3>${{esc(t.title)}}</h3>
    <p>Type: ${{esc(t.type)}}</p>
    ${{t.hours ? `<p>Hours: ${{esc(t.hours)}}</p>` : ''}}
    ${{t.phone ? `<p>Phone: ${{esc(t.phone)}}</p>` : ''}}
    ${{t.address ? `<p>${{esc(t.address)}}</p>` : ''}}
    ${{t.wifi ? '<p>Wifi: Yes</p>' : ''}}
    ${{t.website ? `<a href="${{esc(t.website)}}" target="_blank">${{esc(t.website)}}</a>` : ''}}
    ${{t.website_url ? `<p><a href="${{esc(t.website_url)}}" target="_blank">Website</a></p>` : ''}}
    ${{t.description ? `<p>${{esc(t.description)}}</p>` : ''}}
    <p><code>${{esc(t.id)}}</code></p>
  </div>`).join('');
document.getElementById('more').textContent =
  `${{DATA.list.length}} of ${{DATA.filtered}} spots` + (DATA.more_available ? ' (use --more to reveal more)' : '');

// ── Comparison ───────────────────────────
const cmp = DATA.comparison;
const compare = document.getElementById('compare');
if (cmp.status === 'ok') {{
  compare.innerHTML = '<h2>Comparison</h2><table><tr><th>Spot</th><th>Type</th><th>Score</th><th>Why</th></tr>' +
    cmp.rows.map(r => `<tr class="${{r.id === cmp.best.id ? 'best' : ''}}">
      <td>${{esc(r.title)}}</td><td>${{esc(r.type)}}</td><td>${{r.score}}</td><td>${{esc(r.reasons.join(', '))}}</td>
    </tr>`).join('') + `</table><p>Recommended: <strong>${{esc(cmp.best.title)}}</strong> (${{cmp.best.score}}/100)</p>`;
}} else if (DATA.selection.length) {{
  compare.innerHTML = '<p>Select at least two spots to compare.</p>';
}}

document.getElementById('notices').innerHTML =
  DATA.notices.map(n => `<div class="notice">${{esc(n)}}</div>`).join('');
</script>
</body>
</html>"""
