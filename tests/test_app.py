from pathlib import Path
from typing import Iterator, Optional

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.errors import StorageIOError
from datastore.sensor_db import ScalarReadingStore, build_default_store
from models.records import TimeRange
from settings import get_settings


@pytest.fixture
def store(tmp_path: Path) -> ScalarReadingStore:
    return ScalarReadingStore(tmp_path / "api.db")


@pytest.fixture
def api_client(store: ScalarReadingStore, monkeypatch) -> Iterator[TestClient]:
    def build_test_store(path: Optional[str] = None) -> ScalarReadingStore:
        return store

    build_test_store.cache_clear = lambda: None  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_store", build_test_store)
    monkeypatch.setattr("app.api.build_default_store", build_test_store)

    app = create_app()
    with TestClient(app) as client:
        yield client


def test_lifespan_opens_store_and_clears_cache(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("SCALAR_STORE_DB_PATH", str(tmp_path / "lifespan.db"))
    get_settings.cache_clear()
    build_default_store.cache_clear()
    try:
        app = create_app()
        with TestClient(app):
            assert (tmp_path / "lifespan.db").exists()
            during = build_default_store()

        after = build_default_store()
        assert after is not during
    finally:
        build_default_store.cache_clear()
        get_settings.cache_clear()


def test_add_and_query_readings(api_client: TestClient) -> None:
    for ts, value in [(300, 3.0), (100, 1.0), (200, 2.0)]:
        response = api_client.post(
            "/readings", json={"tag": "temp", "timestamp_millis": ts, "value": value}
        )
        assert response.status_code == 201

    response = api_client.get("/readings/temp", params={"order": "newest_first"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["tag"] == "temp"
    assert payload["resolution_tier"] == 0
    assert payload["order"] == "newest_first"
    assert payload["count"] == 3
    assert [p["timestamp_millis"] for p in payload["points"]] == [300, 200, 100]


def test_query_range_bounds_and_limit(api_client: TestClient, store: ScalarReadingStore) -> None:
    for ts in range(1, 11):
        store.add_scalar_reading("temp", 0, ts, float(ts))

    open_lower = api_client.get(
        "/readings/temp", params={"start": 5, "end": 10, "start_inclusive": "false"}
    ).json()
    limited = api_client.get("/readings/temp", params={"max_records": 3}).json()

    assert [p["timestamp_millis"] for p in open_lower["points"]] == [6, 7, 8, 9, 10]
    assert limited["count"] == 3
    assert [p["timestamp_millis"] for p in limited["points"]] == [1, 2, 3]


def test_negative_tier_queries_every_tier(api_client: TestClient, store: ScalarReadingStore) -> None:
    store.add_scalar_reading("temp", 0, 1, 1.0)
    store.add_scalar_reading("temp", 2, 2, 2.0)

    payload = api_client.get("/readings/temp", params={"tier": -1}).json()

    assert payload["resolution_tier"] is None
    assert payload["count"] == 2


def test_summary_endpoint(api_client: TestClient, store: ScalarReadingStore) -> None:
    for ts, value in [(1, 2.0), (2, 4.0), (3, 9.0)]:
        store.add_scalar_reading("temp", 0, ts, value)

    payload = api_client.get("/readings/temp/summary", params={"end": 2}).json()

    assert payload == {
        "tag": "temp",
        "count": 2,
        "min_value": 2.0,
        "max_value": 4.0,
        "mean_value": 3.0,
        "first_timestamp": 1,
        "last_timestamp": 2,
    }


def test_delete_covers_all_tiers(api_client: TestClient, store: ScalarReadingStore) -> None:
    store.add_scalar_reading("temp", 0, 10, 1.0)
    store.add_scalar_reading("temp", 1, 10, 1.0)
    store.add_scalar_reading("temp", 0, 50, 5.0)

    response = api_client.delete("/readings/temp", params={"start": 0, "end": 20})

    assert response.status_code == 200
    assert response.json() == {"tag": "temp", "deleted": 2}
    remaining = api_client.get("/readings/temp", params={"tier": -1}).json()
    assert [p["timestamp_millis"] for p in remaining["points"]] == [50]


def test_first_tag_after(api_client: TestClient, store: ScalarReadingStore) -> None:
    store.add_scalar_reading("early", 0, 10, 1.0)
    store.add_scalar_reading("late", 3, 20, 1.0)

    found = api_client.get("/tags/first-after", params={"timestamp": 10})
    missing = api_client.get("/tags/first-after", params={"timestamp": 20})

    assert found.status_code == 200
    assert found.json() == {"tag": "late"}
    assert missing.status_code == 404
    assert "20" in missing.json()["detail"]


def test_import_csv(api_client: TestClient, store: ScalarReadingStore) -> None:
    csv_content = """tag,timestamp,value
sensor-1,2024-01-01T00:00:00Z,1.0
sensor-1,1704067260000,2.5
sensor-2,bad,3.0
"""

    response = api_client.post(
        "/readings/import",
        files={"file": ("readings.csv", csv_content, "text/csv")},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["imported"] == 2
    assert payload["per_tag_count"] == {"sensor-1": 2}
    assert payload["errors"] == [{"row_number": 4, "reason": "invalid timestamp"}]
    assert store.get_scalar_readings("sensor-1", TimeRange.all_time()).size() == 2


def test_import_empty_file_returns_bad_request(api_client: TestClient) -> None:
    response = api_client.post(
        "/readings/import",
        files={"file": ("empty.csv", b"", "text/csv")},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Uploaded file is empty."


def test_import_without_required_columns_returns_bad_request(api_client: TestClient) -> None:
    response = api_client.post(
        "/readings/import",
        files={"file": ("bad.csv", b"name,reading\na,1\n", "text/csv")},
    )

    assert response.status_code == 400
    assert "missing required columns" in response.json()["detail"]


def test_storage_failure_maps_to_service_unavailable(
    api_client: TestClient, store: ScalarReadingStore, monkeypatch
) -> None:
    def broken(*_args, **_kwargs):
        raise StorageIOError("disk I/O error")

    monkeypatch.setattr(store, "get_scalar_readings", broken)

    response = api_client.get("/readings/temp")

    assert response.status_code == 503
    assert response.json() == {"detail": "disk I/O error"}


def test_health(api_client: TestClient) -> None:
    response = api_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

def test_tags_containing_slashes_are_reachable(api_client: TestClient) -> None:
    for ts, value in [(1, 1.0), (2, 3.0)]:
        created = api_client.post(
            "/readings", json={"tag": "room/temp", "timestamp_millis": ts, "value": value}
        )
        assert created.status_code == 201

    readings = api_client.get("/readings/room%2Ftemp")
    nested = api_client.get("/readings/room/temp")
    summary = api_client.get("/readings/room%2Ftemp/summary")
    deleted = api_client.delete("/readings/room/temp", params={"end": 1})

    assert readings.status_code == 200
    assert readings.json()["tag"] == "room/temp"
    assert [p["timestamp_millis"] for p in readings.json()["points"]] == [1, 2]
    assert nested.json()["count"] == 2
    assert summary.status_code == 200
    assert summary.json()["tag"] == "room/temp"
    assert summary.json()["mean_value"] == 2.0
    assert deleted.json() == {"tag": "room/temp", "deleted": 1}


@pytest.mark.parametrize(
    "payload",
    [
        {"tag": "temp", "timestamp_millis": 2**63, "value": 1.0},
        {"tag": "temp", "timestamp_millis": -(2**63) - 1, "value": 1.0},
        {"tag": "temp", "timestamp_millis": 1, "value": 1.0, "resolution_tier": 2**63},
    ],
)
def test_out_of_range_reading_is_rejected(api_client: TestClient, payload) -> None:
    response = api_client.post("/readings", json=payload)

    assert response.status_code == 422


@pytest.mark.parametrize(
    "path, params",
    [
        ("/readings/temp", {"start": 2**63}),
        ("/readings/temp", {"end": -(2**63) - 1}),
        ("/readings/temp", {"max_records": 2**63}),
        ("/readings/temp/summary", {"tier": 2**63}),
        ("/tags/first-after", {"timestamp": 2**63}),
    ],
)
def test_out_of_range_query_parameters_are_rejected(
    api_client: TestClient, path: str, params
) -> None:
    response = api_client.get(path, params=params)

    assert response.status_code == 422


def test_delete_with_out_of_range_bound_is_rejected(api_client: TestClient) -> None:
    response = api_client.delete("/readings/temp", params={"start": 2**63})

    assert response.status_code == 422


def test_int64_edge_bounds_are_accepted(api_client: TestClient, store: ScalarReadingStore) -> None:
    store.add_scalar_reading("temp", 0, 5, 1.0)

    response = api_client.get("/readings/temp", params={"start": -(2**63), "end": 2**63 - 1})

    assert response.status_code == 200
    assert response.json()["count"] == 1


def test_import_skips_rows_with_out_of_range_numbers(
    api_client: TestClient, store: ScalarReadingStore
) -> None:
    csv_content = (
        "tag,timestamp,value,resolution_tier\n"
        "temp,1,1.0,0\n"
        f"temp,{2**63},2.0,0\n"
        f"temp,2,3.0,{-(2**63) - 1}\n"
    )

    response = api_client.post(
        "/readings/import",
        files={"file": ("readings.csv", csv_content, "text/csv")},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["imported"] == 1
    assert payload["errors"] == [
        {"row_number": 3, "reason": "invalid timestamp"},
        {"row_number": 4, "reason": "invalid resolution tier"},
    ]
    assert store.get_scalar_readings("temp", TimeRange.all_time()).as_pairs() == [(1, 1.0)]
