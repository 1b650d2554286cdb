from __future__ import annotations

import random
from typing import Callable

import httpx
import pytest

from stylist.services.domain import CandidateProduct, Marketplace, OutfitItemSpec, OutfitRequest

Handler = Callable[[httpx.Request], httpx.Response]


class FakeClock:
    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    def count(self, fragment: str) -> int:
        return sum(1 for r in self.requests if fragment in str(r.url))


@pytest.fixture()
def rng() -> random.Random:
    return random.Random(7)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def outfit_request() -> OutfitRequest:
    return OutfitRequest(
        gender="female",
        body_type="hourglass",
        measurements={"height": 168, "waist": 68},
        style_preferences=("casual",),
        color_preferences=("белый", "голубой"),
        occasion="casual",
        season="spring",
        budget="medium",
    )


@pytest.fixture()
def linen_shirt() -> OutfitItemSpec:
    return OutfitItemSpec(
        category="top",
        name="Льняная рубашка",
        description="Свободная рубашка из льна",
        colors=("белый",),
        style="casual",
        fit="свободный",
        price="2000-4000",
    )


def make_product(
    product_id: str,
    name: str,
    *,
    category: str = "",
    colors: list[str] | None = None,
    rating: float = 4.5,
    price: float = 3000.0,
    discount: int | None = None,
    marketplace: Marketplace = Marketplace.WILDBERRIES,
) -> CandidateProduct:
    return CandidateProduct(
        id=product_id,
        name=name,
        price=price,
        marketplace=marketplace,
        purchase_url=f"https://www.wildberries.ru/catalog/{product_id}/detail.aspx",
        rating=rating,
        reviews=10,
        discount=discount,
        colors=colors if colors is not None else [],
        category=category,
    )
