import pytest
from fastapi.testclient import TestClient

from conftest import FakeProvider
from deepticker.api.routes import create_app
from deepticker.config.settings import Settings
from deepticker.container import build_container
from deepticker.errors import ProviderErrorKind


def make_settings(**overrides):
    values = {
        "provider_priority": ["yahoo", "rapidapi"],
        "search_provider_priority": ["yahoo"],
        "retry_backoff_base_seconds": 0,
        "request_timeout_seconds": 1.0,
    }
    values.update(overrides)
    return Settings(**values)


def make_client(**overrides):
    providers = {
        "yahoo": FakeProvider(
            "yahoo",
            {"AAPL": [190.0], "MSFT": [ProviderErrorKind.RATE_LIMITED]},
            search=[("AAPL", "Apple Inc.")],
        ),
        "rapidapi": FakeProvider("rapidapi", {"MSFT": [410.0]}),
    }
    container = build_container(make_settings(**overrides), providers=providers)
    return TestClient(create_app(container)), container


@pytest.fixture
def client():
    return make_client()[0]


def test_health_and_readiness(client):
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"

    readiness = client.get("/readiness")
    assert readiness.status_code == 200
    assert readiness.json()["cache"]["size"] == 0


def test_single_quote(client):
    response = client.get("/quote", params={"symbol": "aapl"})

    assert response.status_code == 200
    body = response.json()
    assert body["symbol"] == "AAPL"
    assert body["price"] == 190.0
    assert body["source"] == "yahoo"
    assert body["data_source"] == "live"
    assert body["stale"] is False
    assert body["schema_version"] == "1.0"


def test_unknown_symbol_reports_all_sources_failed(client):
    response = client.get("/quote", params={"symbol": "ZZZZ"})

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "error"
    assert body["error_code"] == "ALL_SOURCES_FAILED"
    assert body["message"] == "All data sources failed for ZZZZ."


def test_invalid_symbol_is_rejected(client):
    response = client.get("/quote", params={"symbol": "AA PL$"})

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_INPUT"


def test_missing_query_parameter_is_invalid_input(client):
    response = client.get("/quote")

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_INPUT"


def test_batch_quotes_report_partial_failures(client):
    response = client.get("/quotes", params={"symbols": "AAPL,MSFT,ZZZZ"})

    assert response.status_code == 200
    body = response.json()
    assert body["succeeded"] == 2
    assert body["failed"] == 1
    assert body["results"]["MSFT"]["quote"]["source"] == "rapidapi"
    assert body["results"]["MSFT"]["attempts"] == [{"provider": "yahoo", "result": "rate_limited"}]
    assert body["results"]["ZZZZ"]["error_code"] == "ALL_SOURCES_FAILED"


def test_empty_symbol_list_is_invalid_input(client):
    response = client.get("/quotes", params={"symbols": " , "})

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_INPUT"


def test_provider_status_reflects_disabled_provider(client):
    client.get("/quotes", params={"symbols": "MSFT"})

    body = client.get("/providers/status").json()

    assert body["providers"]["yahoo"]["enabled"] is False
    assert body["providers"]["yahoo"]["last_failure_kind"] == "rate_limited"
    assert body["providers"]["rapidapi"]["enabled"] is True
    assert body["last_source"] == "rapidapi"


def test_search(client):
    response = client.get("/search", params={"query": "apple"})

    assert response.status_code == 200
    assert response.json() == [
        {
            "schema_version": "1.0",
            "symbol": "AAPL",
            "name": "Apple Inc.",
            "exchange": None,
            "asset_type": None,
            "currency": None,
            "source": "yahoo",
        }
    ]


def test_portfolio_lifecycle(client):
    created = client.post("/portfolio/holdings", json={"symbol": "aapl", "quantity": 2, "purchase_price": 100})
    assert created.status_code == 201
    holding = created.json()
    assert holding["symbol"] == "AAPL"
    assert holding["price_state"] == "pending"

    refreshed = client.post("/portfolio/refresh").json()
    assert refreshed["total_current_value"] == 380.0
    assert refreshed["earnings_percent"] == pytest.approx(90.0)
    assert refreshed["holdings"][0]["price_state"] == "available"

    patched = client.patch(f"/portfolio/holdings/{holding['id']}", json={"quantity": 3})
    assert patched.status_code == 200
    assert patched.json()["total_value"] == 570.0

    assert client.delete(f"/portfolio/holdings/{holding['id']}").status_code == 204
    missing = client.delete(f"/portfolio/holdings/{holding['id']}")
    assert missing.status_code == 404
    assert missing.json()["error_code"] == "NOT_FOUND"
    assert client.get("/portfolio").json()["holdings"] == []


def test_invalid_holding_is_rejected(client):
    response = client.post("/portfolio/holdings", json={"symbol": "AAPL", "quantity": 0})

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_INPUT"


def test_metrics_count_provider_requests_and_request_timing(client):
    client.get("/quote", params={"symbol": "AAPL"})

    body = client.get("/metrics").json()

    assert body["provider_request_count"] == 1
    assert body["per_provider"]["yahoo"]["successful_requests"] == 1
    assert body["requests"]["request_count"] >= 1


def test_rate_limit_per_client():
    client, _ = make_client(rate_limit_requests_per_minute=2)

    assert client.get("/health").status_code == 200
    assert client.get("/health").status_code == 200
    limited = client.get("/health")
    assert limited.status_code == 429
    assert limited.json()["error_code"] == "RATE_LIMITED"
