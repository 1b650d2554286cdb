from __future__ import annotations

import random

import pytest
from fastapi.testclient import TestClient

from stylist.api.deps import get_stylist_service
from stylist.main import app
from stylist.middleware.request_context import resolve_request_id
from stylist.services.domain import Marketplace
from stylist.services.fallback import FallbackLadder


class StubStylist:
    def __init__(self) -> None:
        self.ladder = FallbackLadder(rng=random.Random(2), clock=lambda: 1_700_000_000_000)
        self.searched = None

    async def generate_outfit(self, request):
        return self.ladder.synthetic_outfit(request)

    async def search_products_for_outfit(self, outfit, *, budget=None, gender=None, marketplaces=None):
        self.searched = (outfit, budget, gender, marketplaces)
        products = []
        for item in outfit.items:
            products.extend(self.ladder.synthetic_products(item, Marketplace.WILDBERRIES, item.name))
        return products


@pytest.fixture()
def stub() -> StubStylist:
    return StubStylist()


@pytest.fixture()
def client(stub: StubStylist):
    app.dependency_overrides[get_stylist_service] = lambda: stub
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_healthz():
    response = TestClient(app).get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_generate_endpoint_returns_outfit_and_request_id(client: TestClient):
    response = client.post(
        "/v1/outfits/generate",
        json={"gender": "female", "style_preferences": ["casual"], "occasion": "casual", "season": "spring"},
        headers={"x-request-id": "req-123"},
    )

    assert response.status_code == 200
    assert response.headers["x-request-id"] == "req-123"
    body = response.json()
    assert body["items"]
    assert body["confidence"] <= 0.8
    assert body["is_fallback"] is True


def test_generate_endpoint_validates_input(client: TestClient):
    response = client.post("/v1/outfits/generate", json={"gender": "robot"})

    assert response.status_code == 422


def test_products_endpoint_round_trips_outfit(client: TestClient, stub: StubStylist):
    outfit = client.post("/v1/outfits/generate", json={"gender": "male", "occasion": "business"}).json()

    response = client.post(
        "/v1/outfits/products",
        json={"outfit": outfit, "budget": "high", "marketplaces": ["wildberries"]},
    )

    assert response.status_code == 200
    products = response.json()
    assert len(products) == 2 * len(outfit["items"])
    assert {p["marketplace"] for p in products} == {"wildberries"}
    searched_outfit, budget, _, marketplaces = stub.searched
    assert searched_outfit.id == outfit["id"]
    assert budget == "high"
    assert marketplaces == [Marketplace.WILDBERRIES]


def test_service_unavailable_before_startup():
    response = TestClient(app).post("/v1/outfits/generate", json={})

    assert response.status_code == 503


def test_unsafe_request_id_is_replaced(client: TestClient):
    response = client.get("/healthz", headers={"x-request-id": "bad id with spaces"})

    rid = response.headers["x-request-id"]
    assert rid != "bad id with spaces"
    assert len(rid) == 32


def test_missing_request_id_is_generated(client: TestClient):
    first = client.get("/healthz").headers["x-request-id"]
    second = client.get("/healthz").headers["x-request-id"]

    assert first != second
    assert resolve_request_id("abc-123") == "abc-123"
    assert resolve_request_id("x" * 200) != "x" * 200
