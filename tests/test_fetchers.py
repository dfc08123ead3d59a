"""
Dataset ingestion and loading: field mapping, malformed-feature skipping,
and per-category failure isolation.
"""
import json

import pytest
import requests

from config import DataSources
from fetchers import (
    Category,
    DatasetFetcher,
    DatasetFetchFailure,
    PointStore,
    fetch_all,
    ingest,
    normalize_feature,
)
from filters import has_wifi


def _feature(lon, lat, **props):
    return {"type": "Feature", "geometry": {"type": "Point", "coordinates": [lon, lat]}, "properties": props}


def _collection(*features):
    return {"type": "FeatureCollection", "features": list(features)}


class StubResponse:
    def __init__(self, payload=None, status_code=200, invalid_json=False, json_error=None):
        self.payload = payload
        self.status_code = status_code
        self.invalid_json = invalid_json
        self.json_error = json_error

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code}", response=self)

    def json(self):
        if self.json_error:
            raise self.json_error
        if self.invalid_json:
            raise ValueError("no JSON")
        return self.payload


class StubSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, timeout))
        self.sent_headers = headers
        if self.error:
            raise self.error
        return self.response


class TestNormalizeFeature:
    """One raw feature -> Point."""

    def test_osm_feature(self):
        point = normalize_feature(_feature(
            2.35, 48.85, name="Le Café", opening_hours="Mo-Fr 08:00-18:00",
            **{"addr:city": "Paris", "internet_access": "wlan", "internet_access:fee": "no"},
        ), Category.CAFE)

        assert point.id == "48.85_2.35"
        assert point.coordinates == (48.85, 2.35)
        assert point.category is Category.CAFE
        assert point.name == "Le Café"
        assert point.attributes["hours"] == "Mo-Fr 08:00-18:00"
        assert point.attributes["addr_city"] == "Paris"
        assert point.attributes["wifi_fee"] == "no"

    def test_library_fields(self):
        point = normalize_feature(_feature(
            2.3, 48.8, nometablissement="Médiathèque", heuresouverture="10-19",
            telephone="01 02", nomrue="Rue X", codepostal="75011", commune="Paris",
            accesweb="https://example.fr",
        ), Category.LIBRARY)

        assert point.name == "Médiathèque"
        assert point.attributes["hours"] == "10-19"
        assert point.attributes["phone"] == "01 02"
        assert point.attributes["city"] == "Paris"
        assert point.attributes["website_url"] == "https://example.fr"

    @pytest.mark.parametrize("feature", [
        None,
        {"geometry": None, "properties": {"name": "x"}},
        {"geometry": {"type": "Polygon", "coordinates": [2, 48]}, "properties": {"name": "x"}},
        {"geometry": {"type": "Point", "coordinates": [2]}, "properties": {"name": "x"}},
        {"geometry": {"type": "Point", "coordinates": ["2", "48"]}, "properties": {"name": "x"}},
        {"geometry": {"type": "Point", "coordinates": [2, 95]}, "properties": {"name": "x"}},
        {"geometry": {"type": "Point", "coordinates": [200, 48]}, "properties": {"name": "x"}},
        {"geometry": {"type": "Point", "coordinates": [2, 48]}, "properties": {"phone": "01"}},
        {"geometry": {"type": "Point", "coordinates": [2, 48]}, "properties": {"name": ""}},
    ])
    def test_malformed_features_are_dropped(self, feature):
        assert normalize_feature(feature, Category.COWORKING) is None

    def test_attributes_are_read_only(self):
        point = normalize_feature(_feature(2.0, 48.0, name="A"), Category.CAFE)
        with pytest.raises(TypeError):
            point.attributes["name"] = "B"

    def test_camel_case_and_nested_fields(self):
        point = normalize_feature(_feature(
            2.3, 48.8, name="Hub", hours="9-18", airConditioning=True,
            seating={"indoor": True, "outdoor": False},
        ), Category.COWORKING)

        assert point.attributes["hours"] == "9-18"
        assert point.attributes["air_conditioning"] is True
        assert point.attributes["indoor_seating"] is True
        assert point.attributes["outdoor_seating"] is False

    def test_library_reads_plain_hours(self):
        point = normalize_feature(_feature(2.3, 48.8, nometablissement="B", hours="10-19"), Category.LIBRARY)
        assert point.attributes["hours"] == "10-19"

    @pytest.mark.parametrize("flags, expected", [
        ({"hasWifi": False, "wifi": True}, True),
        ({"hasWifi": True, "wifi": False}, True),
        ({"hasWifi": False, "wifi": False}, None),
        ({"wifi": "yes"}, None),
    ])
    def test_wifi_flags_are_ored(self, flags, expected):
        point = normalize_feature(_feature(2.3, 48.8, name="X", **flags), Category.CAFE)
        assert point.attributes.get("wifi") is expected
        assert has_wifi(point.attributes) is bool(expected)


class TestIngest:
    def test_skips_malformed(self):
        points = ingest(_collection(
            _feature(2.0, 48.0, name="A"),
            {"type": "Feature", "geometry": None, "properties": {"name": "B"}},
            _feature(2.1, 48.1, name="C"),
        ), Category.COWORKING)
        assert [p.name for p in points] == ["A", "C"]

    @pytest.mark.parametrize("collection", [None, [], {}, {"features": "nope"}])
    def test_non_collections_give_nothing(self, collection):
        assert ingest(collection, Category.CAFE) == []

    def test_category_aliases(self):
        assert Category.parse("Cofee") is Category.CAFE
        assert Category.parse("café") is Category.CAFE
        assert Category.parse("LIBRARY") is Category.LIBRARY
        assert Category.parse("museum") is None
        assert Category.parse(None) is None

    def test_dataset_spot_type_is_checked_against_slot(self, caplog):
        collection = _collection(
            _feature(2.0, 48.0, name="A", spotType="Cofee"),
            _feature(2.1, 48.1, name="B", spotType="Library"),
            _feature(2.2, 48.2, name="C"),
        )
        with caplog.at_level("WARNING", logger="fetchers"):
            points = ingest(collection, Category.CAFE)

        assert [p.category for p in points] == [Category.CAFE] * 3
        warnings = [r.getMessage() for r in caplog.records if r.levelname == "WARNING"]
        assert warnings == ["[Cafe] 1 features declare another spotType; kept as Cafe"]


class TestPointStore:
    def test_keeps_load_order_and_category_order(self):
        store = PointStore.from_collections({
            Category.CAFE: _collection(_feature(2.2, 48.2, name="Cafe")),
            Category.COWORKING: _collection(_feature(2.1, 48.1, name="Cowork")),
        })
        assert [p.name for p in store] == ["Cowork", "Cafe"]
        assert store.counts()[Category.LIBRARY] == 0

    def test_duplicate_coordinates_coalesce_on_lookup(self):
        store = PointStore.from_collections({
            Category.CAFE: _collection(_feature(2.0, 48.0, name="First"), _feature(2.0, 48.0, name="Second")),
        })
        assert len(store) == 2
        assert store.get("48.0_2.0").name == "First"
        assert store.get("0_0") is None


class TestDatasetFetcher:
    def test_loads_local_file(self, tmp_path):
        path = tmp_path / "cafes.geojson"
        path.write_text(json.dumps(_collection(_feature(2.0, 48.0, name="A"))), encoding="utf-8")

        points = DatasetFetcher(Category.CAFE, str(path)).fetch()
        assert [p.name for p in points] == ["A"]

    def test_loads_url(self):
        session = StubSession(StubResponse(_collection(_feature(2.0, 48.0, name="A"))))
        fetcher = DatasetFetcher(Category.CAFE, "https://example.org/cafes.geojson", timeout=5, session=session)

        assert len(fetcher.fetch()) == 1
        assert session.calls == [("https://example.org/cafes.geojson", 5)]

    @pytest.mark.parametrize("session", [
        StubSession(StubResponse(status_code=503)),
        StubSession(StubResponse(invalid_json=True)),
        StubSession(StubResponse({"type": "Feature"})),
        StubSession(error=requests.exceptions.ConnectionError("down")),
    ])
    def test_url_failures(self, session):
        fetcher = DatasetFetcher(Category.LIBRARY, "https://example.org/libraries.geojson", session=session)
        with pytest.raises(DatasetFetchFailure) as exc:
            fetcher.fetch()
        assert exc.value.category is Category.LIBRARY

    def test_missing_file(self, tmp_path):
        with pytest.raises(DatasetFetchFailure):
            DatasetFetcher(Category.CAFE, str(tmp_path / "missing.geojson")).fetch()

    def test_invalid_json_from_url(self):
        error = requests.exceptions.JSONDecodeError("Expecting value", "<html>", 0)
        session = StubSession(StubResponse(json_error=error))
        fetcher = DatasetFetcher(Category.CAFE, "https://example.org/cafes.geojson", session=session)

        with pytest.raises(DatasetFetchFailure) as exc:
            fetcher.fetch()
        assert exc.value.reason == "invalid JSON response"

    def test_caller_session_headers_untouched(self):
        session = StubSession(StubResponse(_collection(_feature(2.0, 48.0, name="A"))))
        DatasetFetcher(Category.CAFE, "https://example.org/cafes.geojson", session=session).fetch()

        assert session.headers == {}
        assert session.sent_headers == DatasetFetcher.HEADERS

    def test_owned_session_is_closed(self, monkeypatch):
        opened = []

        class OwnedSession(StubSession):
            closed = False

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                self.closed = True

        def factory():
            session = OwnedSession(StubResponse(_collection(_feature(2.0, 48.0, name="A"))))
            opened.append(session)
            return session

        monkeypatch.setattr(requests, "Session", factory)
        points = DatasetFetcher(Category.CAFE, "https://example.org/cafes.geojson").fetch()

        assert len(points) == 1
        assert len(opened) == 1
        assert opened[0].closed


class TestFetchAll:
    def test_failed_category_contributes_nothing(self, tmp_path):
        good = tmp_path / "coworking.geojson"
        good.write_text(json.dumps(_collection(_feature(2.0, 48.0, name="A"), _feature(2.1, 48.1, name="B"))))
        broken = tmp_path / "cafes.geojson"
        broken.write_text("{not json")

        store = fetch_all(DataSources(
            coworking=str(good),
            library=str(tmp_path / "missing.geojson"),
            cafe=str(broken),
        ))

        assert len(store) == 2
        assert store.counts() == {Category.COWORKING: 2, Category.LIBRARY: 0, Category.CAFE: 0}

    def test_all_failed_gives_empty_store(self, tmp_path):
        missing = str(tmp_path / "missing.geojson")
        store = fetch_all(DataSources(coworking=missing, library=missing, cafe=missing))
        assert len(store) == 0
