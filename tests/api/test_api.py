from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from flowscan.adapters.base import AdapterError, Fundamentals, MarketMover, Quote
from flowscan.api.main import app, get_adapter, get_app_settings, get_cache, get_storage
from flowscan.cache import InMemoryTTLCache
from flowscan.config.loader import get_settings
from flowscan.models.market import SectorStat
from flowscan.storage import SQLiteStorage


@pytest.fixture
def storage(tmp_path):
    return SQLiteStorage(tmp_path / "api.db")


@pytest.fixture
def client(fake_adapter, storage):
    cache = InMemoryTTLCache()
    settings = get_settings("dev")
    app.dependency_overrides[get_adapter] = lambda: fake_adapter
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_app_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_value_endpoint(client, fake_adapter):
    fake_adapter.fundamentals["KO"] = Fundamentals(symbol="KO", price=60.0, sector="Consumer Defensive", pe=14.0, roe=35.0)

    response = client.get("/api/value/ko")

    assert response.status_code == 200
    assert response.json()["symbol"] == "KO"
    assert client.get("/api/value/zzz").json()["detail"] == "Data not found"
    assert client.get("/api/value/zzz").status_code == 404


def test_movers_are_enriched_and_cached(client, fake_adapter):
    fake_adapter.movers["gainers"] = [
        MarketMover(symbol="AAA", price=10.0, change_percent=8.0, volume=1e6),
        MarketMover(symbol="600519.SS", price=1700.0, change_percent=3.0),
    ]
    fake_adapter.fundamentals["AAA"] = Fundamentals(symbol="AAA", price=10.0, sector="Technology", pe=9.0)

    first = client.get("/api/movers", params={"type": "gainers", "limit": 5})
    second = client.get("/api/movers", params={"type": "gainers", "limit": 5})

    assert first.status_code == 200
    rows = first.json()
    assert [row["symbol"] for row in rows] == ["AAA", "600519.SS"]
    assert rows[0]["sector"] == "Technology"
    assert rows[0]["value_score"] is not None
    assert rows[1]["value_score"] is None
    assert rows[1]["market"] == "CN"
    assert second.json() == rows
    assert fake_adapter.calls.count(("movers", "gainers")) == 1


def test_movers_validation(client):
    assert client.get("/api/movers", params={"type": "sideways"}).status_code == 400
    assert client.get("/api/movers", params={"limit": 0}).status_code == 422


def test_options_scan_is_saved_and_listed_in_history(client, fake_adapter):
    fake_adapter.quotes["AAPL"] = Quote(symbol="AAPL", price=190.0, market_cap=3e12, market_state="REGULAR")

    response = client.get("/api/options/aapl")

    assert response.status_code == 200
    assert response.json()["symbol"] == "AAPL"
    history = client.get("/api/history/AAPL").json()
    assert len(history) == 1
    assert history[0]["price"] == 190.0


def test_options_errors_map_to_status_codes(client, fake_adapter):
    assert client.get("/api/options/NOPE").status_code == 404

    def broken(symbol):
        raise AdapterError("provider timeout")

    fake_adapter.get_quote = broken
    assert client.get("/api/options/AAPL").status_code == 502


def test_sector_trend_endpoints(client, storage):
    today = datetime.now(timezone.utc).date()
    storage.replace_sector_stats(
        today,
        [
            SectorStat(
                date=today,
                sector="Energy",
                stock_count=9,
                avg_change=2.0,
                total_volume=5e8,
                leader_symbol="XOM",
                leader_change=3.5,
                rank=1,
            )
        ],
    )

    basic = client.get("/api/trends/sectors").json()
    enhanced = client.get("/api/trends/sectors/enhanced", params={"days": 14}).json()

    assert basic[0]["sector"] == "Energy"
    assert basic[0]["date"] == today.isoformat()
    assert enhanced["days"] == 14
    assert enhanced["sectors"][0]["current_rank"] == 1


def test_macro_endpoint_degrades_without_data(client):
    response = client.get("/api/macro")

    assert response.status_code == 200
    assert response.json()["overall_regime"] == "CHOPPY"
