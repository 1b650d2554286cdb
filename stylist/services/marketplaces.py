from __future__ import annotations

import json
import logging
import math
import random
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable
from urllib.parse import quote_plus, urljoin

import httpx
from bs4 import BeautifulSoup

from stylist.core.errors import NetworkError, ParseError, ProviderError
from stylist.services.domain import CandidateProduct, Marketplace, OutfitItemSpec
from stylist.services.vocabulary import canonical_category

logger = logging.getLogger(__name__)

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (iPad; CPU OS 17_1 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1",
)

REFERERS = (
    "https://www.google.com/",
    "https://yandex.ru/",
    "https://www.bing.com/",
    "https://www.wildberries.ru/",
    "https://www.wildberries.ru/catalog",
    "https://www.wildberries.ru/catalog/0/search.aspx",
)

DEFAULT_COLORS = ("черный", "белый")
DEFAULT_SIZES = ("S", "M", "L", "XL")
PLACEHOLDER_IMAGE = "/placeholder.svg"

DEFAULT_NAMES = {
    Marketplace.WILDBERRIES: "Товар Wildberries",
    Marketplace.OZON: "Товар Ozon",
    Marketplace.LAMODA: "Товар Lamoda",
}

# Wildberries catalog ids for the browse tier.
WB_CATEGORY_IDS = {
    "женская одежда": "8126",
    "мужская одежда": "8127",
    "деловая одежда": "8128",
    "повседневная одежда": "8129",
    "рубашка": "8130",
    "брюки": "8131",
    "футболка": "8132",
    "джинсы": "8133",
    "платье": "8134",
    "юбка": "8135",
}

# Upper volume bound -> basket host number on the Wildberries image CDN.
WB_BASKET_BOUNDS = (
    (143, 1), (287, 2), (431, 3), (719, 4), (1007, 5), (1061, 6), (1115, 7), (1169, 8),
    (1313, 9), (1601, 10), (1655, 11), (1919, 12), (2045, 13), (2189, 14), (2405, 15),
    (2621, 16), (2837, 17), (3053, 18), (3269, 19), (3485, 20), (3701, 21), (3917, 22),
    (4133, 23), (4349, 24), (4565, 25),
)

_STATE_RE = re.compile(r"window\.__INITIAL_STATE__\s*=\s*")
_DIGITS_RE = re.compile(r"\d+")
_PRICE_TEXT_RE = re.compile(r"\d[\d\s]*")


@dataclass(slots=True)
class SearchQuery:
    text: str
    item: OutfitItemSpec
    gender: str | None = None
    limit: int = 20
    dest: str = "-1257786"


Fetcher = Callable[[httpx.AsyncClient, SearchQuery, random.Random], Awaitable[list[dict[str, Any]]]]


@dataclass(frozen=True, slots=True)
class Tier:
    name: str
    fetch: Fetcher
    timeout: float


def browser_headers(rng: random.Random, *, accept: str = "application/json, text/plain, */*") -> dict[str, str]:
    return {
        "User-Agent": rng.choice(USER_AGENTS),
        "Referer": rng.choice(REFERERS),
        "Accept": accept,
        "Accept-Language": "ru-RU,ru;q=0.9,en;q=0.8",
    }


def search_page_url(marketplace: Marketplace, query: str) -> str:
    q = quote_plus(query)
    if marketplace == Marketplace.OZON:
        return f"https://www.ozon.ru/search/?text={q}"
    if marketplace == Marketplace.LAMODA:
        return f"https://www.lamoda.ru/catalogsearch/result/?q={q}"
    return f"https://www.wildberries.ru/catalog/0/search.aspx?search={q}"


def product_page_url(marketplace: Marketplace, product_id: str) -> str:
    if marketplace == Marketplace.OZON:
        return f"https://www.ozon.ru/product/{product_id}/"
    if marketplace == Marketplace.LAMODA:
        return f"https://www.lamoda.ru/p/{product_id}/"
    return f"https://www.wildberries.ru/catalog/{product_id}/detail.aspx"


def wb_image_url(product_id: str) -> str:
    if not product_id.isdigit():
        return PLACEHOLDER_IMAGE
    nm = int(product_id)
    vol, part = nm // 100000, nm // 1000
    basket = next((num for bound, num in WB_BASKET_BOUNDS if vol <= bound), 26)
    return f"https://basket-{basket:02d}.wbbasket.ru/vol{vol}/part{part}/{nm}/images/c246x328/1.jpg"


def wb_category_id(item: OutfitItemSpec, gender: str | None) -> str:
    text = f"{item.category} {item.name}".lower()
    for label, cat_id in WB_CATEGORY_IDS.items():
        if label in text:
            return cat_id
    canonical = canonical_category(text)
    if canonical == "dress":
        return WB_CATEGORY_IDS["платье"]
    return WB_CATEGORY_IDS["мужская одежда" if gender == "male" else "женская одежда"]


async def _request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    timeout: float,
    **kwargs: Any,
) -> httpx.Response:
    try:
        response = await client.request(method, url, timeout=timeout, **kwargs)
    except httpx.TimeoutException as exc:
        raise NetworkError(f"timeout: {url}") from exc
    except httpx.TransportError as exc:
        raise NetworkError(f"{exc.__class__.__name__}: {url}") from exc
    if not response.is_success:
        raise ProviderError(response.status_code, response.text[:300])
    return response


async def _request_json(client: httpx.AsyncClient, method: str, url: str, timeout: float, **kwargs: Any) -> Any:
    response = await _request(client, method, url, timeout, **kwargs)
    try:
        return response.json()
    except ValueError as exc:
        raise ParseError(f"non-json body from {url}") from exc


def dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _product_list(value: Any) -> list[dict[str, Any]]:
    if isinstance(value, list):
        return [p for p in value if isinstance(p, dict)]
    return []


async def _first_non_empty(
    endpoints: tuple[str, ...],
    call: Callable[[str], Awaitable[list[dict[str, Any]]]],
) -> list[dict[str, Any]]:
    last_error: Exception | None = None
    for url in endpoints:
        try:
            products = await call(url)
        except (NetworkError, ProviderError, ParseError) as exc:
            logger.info("marketplace_endpoint_failed url=%s error=%s", url, exc)
            last_error = exc
            continue
        if products:
            return products
    if last_error is not None:
        raise last_error
    return []


# Wildberries


WB_SEARCH_URL = "https://search.wb.ru/exactmatch/ru/common/v4/search"
WB_MOBILE_URLS = (
    "https://mobile.wb.ru/api/v1/search",
    "https://m.wildberries.ru/api/v1/search",
    "https://api.wildberries.ru/mobile/search",
)
WB_GRAPHQL_URLS = (
    "https://www.wildberries.ru/graphql",
    "https://api.wildberries.ru/graphql",
    "https://search.wb.ru/graphql",
)
WB_GRAPHQL_QUERY = """
query SearchProducts($query: String!, $limit: Int, $offset: Int) {
  searchProducts(query: $query, limit: $limit, offset: $offset) {
    id
    name
    brand
    priceU
    salePriceU
    rating
    feedbacks
    colors { name }
    sizes { name }
  }
}
""".strip()


def make_wb_search(timeout: float) -> Fetcher:
    async def fetch(client: httpx.AsyncClient, query: SearchQuery, rng: random.Random) -> list[dict[str, Any]]:
        params = {
            "TestGroup": "no_test",
            "TestID": "no_test",
            "appType": "1",
            "curr": "rub",
            "dest": query.dest,
            "lang": "ru",
            "locale": "ru",
            "query": query.text,
            "resultset": "catalog",
            "sort": "popular",
            "suppressSpellcheck": "false",
            "uoffset": "0",
            "ulimit": str(query.limit),
        }
        data = await _request_json(client, "GET", WB_SEARCH_URL, timeout, params=params, headers=browser_headers(rng))
        return _product_list(dig(data, "data", "products")) or _product_list(dig(data, "products"))

    return fetch


def make_wb_mobile(timeout: float) -> Fetcher:
    async def fetch(client: httpx.AsyncClient, query: SearchQuery, rng: random.Random) -> list[dict[str, Any]]:
        body = {
            "query": query.text,
            "limit": query.limit,
            "offset": 0,
            "sort": "popular",
            "filters": {"gender": query.gender or "", "category": query.item.category},
        }

        async def call(url: str) -> list[dict[str, Any]]:
            data = await _request_json(client, "POST", url, timeout, json=body, headers=browser_headers(rng))
            return _product_list(dig(data, "products")) or _product_list(dig(data, "data", "products"))

        return await _first_non_empty(WB_MOBILE_URLS, call)

    return fetch


def make_wb_graphql(timeout: float) -> Fetcher:
    async def fetch(client: httpx.AsyncClient, query: SearchQuery, rng: random.Random) -> list[dict[str, Any]]:
        body = {
            "query": WB_GRAPHQL_QUERY,
            "variables": {"query": query.text, "limit": query.limit, "offset": 0},
        }

        async def call(url: str) -> list[dict[str, Any]]:
            data = await _request_json(client, "POST", url, timeout, json=body, headers=browser_headers(rng))
            return _product_list(dig(data, "data", "searchProducts")) or _product_list(
                dig(data, "data", "catalog", "search", "products")
            )

        return await _first_non_empty(WB_GRAPHQL_URLS, call)

    return fetch


def make_wb_catalog(timeout: float) -> Fetcher:
    async def fetch(client: httpx.AsyncClient, query: SearchQuery, rng: random.Random) -> list[dict[str, Any]]:
        section = "men" if query.gender == "male" else "women"
        params = {
            "appType": "1",
            "cat": wb_category_id(query.item, query.gender),
            "curr": "rub",
            "dest": query.dest,
            "lang": "ru",
            "locale": "ru",
            "page": "1",
            "sort": "popular",
        }
        url = f"https://catalog.wb.ru/catalog/{section}/catalog"
        data = await _request_json(client, "GET", url, timeout, params=params, headers=browser_headers(rng))
        return (_product_list(dig(data, "data", "products")) or _product_list(dig(data, "products")))[: query.limit]

    return fetch


def make_html_scrape(marketplace: Marketplace, card_selector: str, timeout: float) -> Fetcher:
    async def fetch(client: httpx.AsyncClient, query: SearchQuery, rng: random.Random) -> list[dict[str, Any]]:
        url = search_page_url(marketplace, query.text)
        headers = browser_headers(rng, accept="text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8")
        response = await _request(client, "GET", url, timeout, headers=headers)
        products = extract_state_products(response.text)
        if not products:
            products = extract_product_cards(response.text, str(response.url), card_selector)
        return products[: query.limit]

    return fetch


def extract_state_products(html: str) -> list[dict[str, Any]]:
    """Products from an embedded `window.__INITIAL_STATE__ = {...};` assignment."""
    match = _STATE_RE.search(html)
    if match is None:
        return []
    try:
        state, _ = json.JSONDecoder().raw_decode(html, match.end())
    except ValueError:
        logger.info("marketplace_state_blob_unparseable")
        return []
    return _find_products(state, depth=0)


def _find_products(node: Any, depth: int) -> list[dict[str, Any]]:
    if depth > 8:
        return []
    if isinstance(node, dict):
        products = _product_list(node.get("products"))
        if products:
            return products
        children = list(node.values())
    elif isinstance(node, list):
        children = node
    else:
        return []
    for child in children:
        found = _find_products(child, depth + 1)
        if found:
            return found
    return []


def extract_product_cards(html: str, base_url: str, selector: str) -> list[dict[str, Any]]:
    soup = BeautifulSoup(html, "html.parser")
    products: list[dict[str, Any]] = []
    for card in soup.select(selector):
        link = card.find("a", href=True)
        href = urljoin(base_url, link["href"]) if link else ""
        product_id = (
            card.get("data-nm-id")
            or card.get("data-popup-nm-id")
            or card.get("data-sku")
            or _id_from_href(href)
            or _digits(card.get("id"))
        )
        name_tag = card.select_one('[class*="name"], [class*="title"]')
        image = card.find("img")
        name = name_tag.get_text(" ", strip=True) if name_tag else (image.get("alt", "") if image else "")
        price_tag = card.select_one('[class*="price"]')
        products.append(
            {
                "id": product_id,
                "name": name,
                "price": _price_from_text(price_tag.get_text(" ", strip=True)) if price_tag else None,
                "url": href,
                "image": (image.get("src") or image.get("data-src")) if image else None,
            }
        )
    return [p for p in products if p["id"] or p["name"]]


def _id_from_href(href: str) -> str | None:
    match = re.search(r"/(?:catalog|product|p)/(?:[^/]*?-)?([0-9A-Za-z]{5,})/", href)
    return match.group(1) if match else None


def _digits(value: Any) -> str | None:
    match = _DIGITS_RE.search(str(value or ""))
    return match.group(0) if match else None


def _price_from_text(text: str) -> float | None:
    match = _PRICE_TEXT_RE.search(text)
    if match is None:
        return None
    return float(re.sub(r"\D", "", match.group(0)))


# Ozon and Lamoda


OZON_COMPOSER_URL = "https://www.ozon.ru/api/composer-api.bx/page/json/v2"
LAMODA_SEARCH_URL = "https://www.lamoda.ru/api/v1/search"


def make_ozon_composer(timeout: float) -> Fetcher:
    async def fetch(client: httpx.AsyncClient, query: SearchQuery, rng: random.Random) -> list[dict[str, Any]]:
        params = {"url": f"/search/?text={quote_plus(query.text)}"}
        data = await _request_json(client, "GET", OZON_COMPOSER_URL, timeout, params=params, headers=browser_headers(rng))
        states = dig(data, "widgetStates")
        if not isinstance(states, dict):
            return []
        for key, state in states.items():
            if not key.startswith("searchResultsV2"):
                continue
            if isinstance(state, str):
                try:
                    state = json.loads(state)
                except ValueError:
                    continue
            items = _product_list(dig(state, "items"))
            if items:
                return items[: query.limit]
        return []

    return fetch


def make_lamoda_search(timeout: float) -> Fetcher:
    async def fetch(client: httpx.AsyncClient, query: SearchQuery, rng: random.Random) -> list[dict[str, Any]]:
        params = {"q": query.text, "sort": "popularity", "limit": str(query.limit)}
        data = await _request_json(client, "GET", LAMODA_SEARCH_URL, timeout, params=params, headers=browser_headers(rng))
        return _product_list(dig(data, "products")) or _product_list(dig(data, "data", "products"))

    return fetch


def default_tiers(api_timeout: float = 10.0, html_timeout: float = 15.0) -> dict[Marketplace, list[Tier]]:
    return {
        Marketplace.WILDBERRIES: [
            Tier("wb_search", make_wb_search(api_timeout), api_timeout),
            Tier("wb_mobile", make_wb_mobile(api_timeout), api_timeout),
            Tier("wb_graphql", make_wb_graphql(api_timeout), api_timeout),
            Tier("wb_catalog", make_wb_catalog(api_timeout), api_timeout),
            Tier("wb_html", make_html_scrape(Marketplace.WILDBERRIES, '[class*="product-card"]', html_timeout), html_timeout),
        ],
        Marketplace.OZON: [
            Tier("ozon_composer", make_ozon_composer(api_timeout), api_timeout),
            Tier("ozon_html", make_html_scrape(Marketplace.OZON, '[class*="tile"]', html_timeout), html_timeout),
        ],
        Marketplace.LAMODA: [
            Tier("lamoda_search", make_lamoda_search(api_timeout), api_timeout),
            Tier("lamoda_html", make_html_scrape(Marketplace.LAMODA, '[class*="product-card"]', html_timeout), html_timeout),
        ],
    }


# Normalisation


def normalize_product(
    raw: dict[str, Any],
    marketplace: Marketplace,
    index: int,
    rng: random.Random,
) -> CandidateProduct | None:
    """Map one provider-specific record onto CandidateProduct, defaulting what is missing."""
    raw_id = _first(raw, "id", "nmId", "sku", "productId", "article")
    raw_name = _first(raw, "name", "title", "productName")
    if raw_id is None and not raw_name:
        return None

    product_id = str(raw_id) if raw_id is not None else f"{marketplace.value}_{index}"
    name = str(raw_name or DEFAULT_NAMES[marketplace]).strip()

    price, original_price = _prices(raw)
    if price is None:
        price = 1000.0 + index * 500
    discount = _as_int(_first(raw, "sale", "discount", "discountPercent"))
    if discount is None and original_price and original_price > price:
        discount = round((1 - price / original_price) * 100)

    rating = _as_float(_first(raw, "reviewRating", "rating", "stars"))
    if rating is None or rating <= 0:
        rating = round(rng.uniform(4.0, 4.5), 1)
    reviews = _as_int(_first(raw, "feedbacks", "reviews", "reviewCount", "reviewsCount"))
    if reviews is None:
        reviews = rng.randint(10, 109)

    colors = _names(raw.get("colors")) or list(DEFAULT_COLORS)
    sizes = _names(raw.get("sizes"), keys=("name", "origName", "title")) or list(DEFAULT_SIZES)
    raw_category = _first(raw, "entity", "subjectName", "category")
    category = canonical_category(str(raw_category)) if raw_category else ""

    image = _first(raw, "image", "imageUrl", "img", "picture")
    if not image:
        image = wb_image_url(product_id) if marketplace == Marketplace.WILDBERRIES else PLACEHOLDER_IMAGE
    url = _first(raw, "url", "link", "productUrl")

    return CandidateProduct(
        id=product_id,
        name=name,
        price=round(price, 2),
        original_price=round(original_price, 2) if original_price else None,
        discount=discount,
        rating=min(rating, 5.0),
        reviews=max(reviews, 0),
        image_url=str(image),
        purchase_url=str(url) if url else product_page_url(marketplace, product_id),
        marketplace=marketplace,
        colors=colors,
        sizes=sizes,
        category=category or canonical_category(name),
        brand=str(raw.get("brand") or ""),
    )


def _prices(raw: dict[str, Any]) -> tuple[float | None, float | None]:
    sale_minor = _as_float(raw.get("salePriceU"))
    base_minor = _as_float(raw.get("priceU"))
    if sale_minor is None and base_minor is None:
        for size in raw.get("sizes") or []:
            size_price = size.get("price") if isinstance(size, dict) else None
            if isinstance(size_price, dict):
                sale_minor = _as_float(size_price.get("product") or size_price.get("total"))
                base_minor = _as_float(size_price.get("basic"))
                break
    if sale_minor is not None or base_minor is not None:
        price = (sale_minor if sale_minor is not None else base_minor) / 100
        original = base_minor / 100 if base_minor is not None else None
        return price, original

    price = extract_price(_first(raw, "price", "finalPrice", "priceAmount"))
    original = extract_price(_first(raw, "originalPrice", "oldPrice", "basePrice"))
    return price, original


def extract_price(value: Any) -> float | None:
    """Price from a number, a digit string like "1 299 ₽", or an {"amount"|"price": ...} object."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 and math.isfinite(value) else None
    if isinstance(value, dict):
        return extract_price(_first(value, "amount", "price", "value"))
    if isinstance(value, str):
        return _price_from_text(value)
    return None


def _first(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, "", [], {}):
            return value
    return None


def _names(value: Any, keys: tuple[str, ...] = ("name", "title")) -> list[str]:
    if not isinstance(value, list):
        return []
    out = []
    for entry in value:
        if isinstance(entry, str) and entry.strip():
            out.append(entry.strip())
        elif isinstance(entry, dict):
            name = _first(entry, *keys)
            if name:
                out.append(str(name).strip())
    return out


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_int(value: Any) -> int | None:
    number = _as_float(value)
    return round(number) if number is not None else None
