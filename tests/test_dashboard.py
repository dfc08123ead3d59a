import json
import os

from dashboard_generator import build_snapshot, generate_dashboard, tile_data
from fetchers import Category, PointStore
from main import generate_demo_data


class TestTileData:
    def test_library_entry(self, make_point):
        point = make_point(48.8, 2.3, Category.LIBRARY, name="Médiathèque", hours="10-19",
                           street="Rue X", postcode="75011", city="Paris",
                           website_url="https://example.fr", wifi=True)
        tile = tile_data(point)

        assert tile["title"] == "Médiathèque"
        assert tile["type"] == "Library"
        assert tile["address"] == "Rue X, 75011 Paris"
        assert tile["website_url"] == "https://example.fr"
        assert tile["wifi"] is True
        assert tile["icon"].endswith("Library.png")

    def test_missing_fields_are_none(self, make_point):
        tile = tile_data(make_point(48.8, 2.3))
        assert tile["hours"] is None
        assert tile["address"] is None


class TestGenerateDashboard:
    def test_writes_html_and_json(self, app, city_store):
        session, _, presenter = app
        session.start(city_store)
        ids = [p.id for p in city_store]
        session.toggle_selection(ids[0])
        session.toggle_selection(ids[1])

        html_path = generate_dashboard(session, presenter, session.config)

        assert os.path.exists(html_path)
        with open(html_path, encoding="utf-8") as f:
            html = f.read()
        assert "leaflet" in html
        assert "Paris spot 0" in html

        json_path = os.path.join(session.config.output_dir, session.config.data_filename)
        with open(json_path, encoding="utf-8") as f:
            data = json.load(f)
        assert data["status"] == "ready"
        assert data["total_points"] == 10
        assert len(data["markers"]) == 6
        assert len(data["list"]) == 3
        assert data["selection"] == ids[:2]
        assert data["comparison"]["status"] == "ok"
        assert data["comparison"]["best"]["id"] == ids[0]

    def test_insufficient_selection_snapshot(self, app, city_store):
        session, _, presenter = app
        session.start(city_store)
        session.toggle_selection(city_store.points[0].id)

        snapshot = build_snapshot(session, presenter)
        assert snapshot["comparison"] == {"status": "insufficient_selection", "rows": [], "best": None}

    def test_script_breakout_is_escaped(self, app, make_point):
        session, _, presenter = app
        session.start(PointStore([make_point(48.8566, 2.3522, name="</script><b>x")]))

        with open(generate_dashboard(session, presenter, session.config), encoding="utf-8") as f:
            html = f.read()
        assert "</script><b>" not in html


class TestDemoData:
    def test_demo_collections_ingest(self):
        collections = generate_demo_data(seed=1)
        store = PointStore.from_collections(collections)

        raw = sum(len(c["features"]) for c in collections.values())
        assert len(store) == raw - 2
        assert all(count > 0 for count in store.counts().values())

    def test_seeded(self):
        assert generate_demo_data(seed=3) == generate_demo_data(seed=3)
