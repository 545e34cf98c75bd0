from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import MSCI_URL, NOW, MemoryCatalogue, msci_page, msci_stock
from stockfetch.api.main import app, get_service
from stockfetch.models import MSCIESGRating, Stock
from stockfetch.service import FetchService


@pytest.fixture
def catalogue():
    return MemoryCatalogue(
        [
            msci_stock(0),
            msci_stock(1, msci_last_fetch=NOW - timedelta(days=1)),
            msci_stock(2, msci_esg_rating="AAA"),
            Stock(ticker="NOID", name="No MSCI"),
        ]
    )


@pytest.fixture
def service(catalogue, web, sessions, notifier, resources, settings):
    web.add_page(MSCI_URL.format("issuer-0"), msci_page(rating="aa"))
    web.add_page(MSCI_URL.format("issuer-1"), msci_page())
    web.add_page(MSCI_URL.format("issuer-2"), msci_page(rating=None))
    return FetchService(catalogue, sessions, notifier, resources, settings, clock=lambda: NOW)


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.text == "ok"


def test_unknown_provider_is_404(client):
    assert client.post("/api/fetch/sustainalytics").status_code == 404


def test_unknown_ticker_or_missing_provider_id_is_404(client):
    assert client.post("/api/fetch/msci", params={"ticker": "UNKNOWN"}).status_code == 404
    assert client.post("/api/fetch/msci", params={"ticker": "NOID"}).status_code == 404


def test_no_eligible_stocks_is_204(client, catalogue):
    catalogue.stocks = {"NOID": Stock(ticker="NOID")}

    assert client.post("/api/fetch/msci").status_code == 204


def test_bulk_fetch_returns_successful_stocks(client, catalogue):
    resp = client.post("/api/fetch/msci", params={"concurrency": "abc"})

    assert resp.status_code == 200
    assert [stock["ticker"] for stock in resp.json()] == ["T0"]
    assert catalogue.stocks["T0"].msci_esg_rating == MSCIESGRating.AA
    assert catalogue.stocks["T1"].msci_last_fetch == NOW - timedelta(days=1)


def test_fetch_where_nothing_succeeds_is_204(client, catalogue):
    del catalogue.stocks["T0"]

    assert client.post("/api/fetch/msci").status_code == 204


def test_single_stock_failure_is_502(client):
    resp = client.post("/api/fetch/msci", params={"ticker": "T2"})

    assert resp.status_code == 502
    assert "Unable to extract MSCI ESG Rating" in resp.json()["detail"]


def test_single_stock_ignores_staleness_unless_asked(client):
    assert client.post("/api/fetch/msci", params={"ticker": "T1"}).status_code == 200
    assert client.post("/api/fetch/msci", params={"ticker": "T1", "noSkip": "false"}).status_code == 204


def test_detached_fetch_is_202_and_continues(client, catalogue):
    resp = client.post("/api/fetch/msci", params={"detach": "true", "ticker": "T0"})

    assert resp.status_code == 202
    assert catalogue.stocks["T0"].msci_last_fetch == NOW


def test_resources_are_served(client, resources):
    resources.save("error-msci-T2-abc.png", b"\x89PNG", 3600)

    resp = client.get("/api/resources/error-msci-T2-abc.png")

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    assert resp.content == b"\x89PNG"
    assert client.get("/api/resources/unknown.png").status_code == 404
