"""
Product search against the Shopify Catalog API, with a small mock catalog
used when credentials are missing or the API call fails.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from gift_checkout.errors import CheckoutError
from gift_checkout.tokens import DEFAULT_TIMEOUT, TokenManager


CATALOG_SEARCH_URL = "https://discover.shopifyapps.com/global/v2/search"
DEFAULT_QUERY = "gift"
DEFAULT_LIMIT = 10

logger = logging.getLogger(__name__)


class CatalogProduct(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    product_type: str = ""
    price: Optional[Any] = None  # dollars; a string for catalog results
    currency: str = "USD"
    image: Optional[str] = None
    merchant: Optional[str] = None
    shopDomain: Optional[str] = None
    rating: Optional[float] = None
    reviewCount: int = 0
    checkoutUrl: Optional[str] = None
    variantUrl: Optional[str] = None
    variantId: Optional[str] = None


class CatalogSearchResult(BaseModel):
    products: list[CatalogProduct]
    source: str


MOCK_PRODUCTS = [
    CatalogProduct(id="1", title="Wireless Headphones", product_type="Electronics", price=99.99),
    CatalogProduct(id="2", title="Ceramic Coffee Mug", product_type="Home", price=19.99),
    CatalogProduct(id="3", title="Standing Desk Lamp", product_type="Home", price=49.5),
]

_DOMAIN_RE = re.compile(r"^https?://([^/]+)")


def _product_from_catalog(p: dict) -> CatalogProduct:
    variant = (p.get("variants") or [{}])[0] or {}
    variant_url = variant.get("checkoutUrl") or variant.get("variantUrl") or ""
    match = _DOMAIN_RE.match(variant_url)

    category = next(
        (s for s in p.get("techSpecs") or [] if isinstance(s, str) and "Category" in s),
        "",
    )
    price_min = (p.get("priceRange") or {}).get("min") or {}
    amount = price_min.get("amount")
    media = p.get("media") or [{}]
    rating = p.get("rating") or {}

    return CatalogProduct(
        id=str(p.get("id")),
        title=p.get("title") or "",
        description=p.get("description"),
        product_type=category.replace("Category: ", ""),
        price=f"{float(amount) / 100:.2f}" if amount else None,
        currency=price_min.get("currency") or "USD",
        image=(media[0] or {}).get("url"),
        merchant=(variant.get("shop") or {}).get("name"),
        shopDomain=match.group(1) if match else None,
        rating=rating.get("rating"),
        reviewCount=rating.get("count") or 0,
        checkoutUrl=variant.get("checkoutUrl"),
        variantUrl=variant.get("variantUrl"),
        variantId=variant.get("id"),
    )


def mock_search(query: str = "", product_type: str = "") -> CatalogSearchResult:
    results = list(MOCK_PRODUCTS)
    if query:
        results = [p for p in results if query.lower() in p.title.lower()]
    if product_type:
        results = [p for p in results if p.product_type.lower() == product_type.lower()]
    return CatalogSearchResult(products=results, source="mock")


async def search_catalog(
    token_manager: TokenManager,
    query: str,
    limit: int = DEFAULT_LIMIT,
    categories: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[Any]:
    """Raw Catalog API search. Returns None when no token is available."""
    token = await token_manager.get_token()
    if not token:
        return None

    params: dict = {"query": query, "limit": limit}
    if categories:
        params["categories"] = categories

    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        resp = await client.get(
            CATALOG_SEARCH_URL,
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )
        resp.raise_for_status()
        return resp.json()


async def search_products(
    token_manager: TokenManager,
    query: str = "",
    product_type: str = "",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> CatalogSearchResult:
    """
    Search the global catalog, falling back to the mock catalog when the
    API is not configured, fails, or answers with an unexpected shape.
    """
    if token_manager.configured:
        search_query = " ".join(s for s in (query, product_type) if s) or DEFAULT_QUERY
        logger.info("Fetching from Catalog API with query: %s", search_query)
        try:
            body = await search_catalog(token_manager, search_query, transport=transport)
            if isinstance(body, list):
                products = [_product_from_catalog(p) for p in body if isinstance(p, dict)]
                return CatalogSearchResult(products=products, source="shopify_catalog_api")
            logger.warning("Unexpected Catalog API response format: %.200r", body)
        except (CheckoutError, httpx.HTTPError, ValueError, AttributeError, TypeError) as exc:
            # a malformed product anywhere in the page falls back for the whole page
            logger.warning("Catalog API fetch failed, falling back to mock: %s", exc)
    else:
        logger.info("Catalog API credentials not configured")

    return mock_search(query, product_type)
