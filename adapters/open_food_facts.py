"""
Open Food Facts adapter.

Barcode lookup via the v2 product API and text search via cgi/search.pl.
OFF asks every client to send its own User-Agent; search is rate limited to
about 10 requests per minute so it must not be used for type-ahead.
"""

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from adapters.mapping import map_nutriscore_grade
from domain.enums import LookupFailureReason, ProductSource
from domain.schemas.product_schemas import (
    ExternalProduct,
    ProductLookupResult,
    ProductSearchResult,
    SourceConnectionResult,
)

logger = logging.getLogger("nutricoach.products.off")

PRODUCT_FIELDS = (
    "code,product_name,brands,nutrition_grades,image_url,"
    "image_small_url,image_front_url,quantity,status"
)
SEARCH_FIELDS = "code,product_name,brands,nutrition_grades,image_small_url"
MAX_SEARCH_PAGE_SIZE = 20
UNKNOWN_PRODUCT_NAME = "Onbekend product"

_WHITESPACE = re.compile(r"\s")


def _clean(value: Any) -> str:
    return "" if value is None else str(value).strip()


class OpenFoodFactsAdapter:
    def __init__(self, client: httpx.Client, base_url: str, user_agent: str):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent

    @property
    def headers(self) -> Dict[str, str]:
        return {"User-Agent": self.user_agent}

    def product_url(self, code: str) -> Optional[str]:
        return f"{self.base_url}/product/{code}" if code else None

    def get_by_barcode(self, barcode: str) -> ProductLookupResult:
        code = _WHITESPACE.sub("", barcode or "")
        if not code:
            return ProductLookupResult.miss(LookupFailureReason.ERROR, "Lege barcode")

        url = f"{self.base_url}/api/v2/product/{quote(code, safe='')}.json"
        try:
            res = self.client.get(
                url, params={"fields": PRODUCT_FIELDS}, headers=self.headers
            )
        except httpx.HTTPError as e:
            logger.warning("OFF barcode lookup failed for %s: %s", code, e)
            return ProductLookupResult.miss(
                LookupFailureReason.ERROR, str(e) or "Lookup mislukt"
            )

        if res.status_code == 429:
            return ProductLookupResult.miss(
                LookupFailureReason.RATE_LIMITED,
                "Te veel verzoeken. Probeer later opnieuw.",
            )
        if res.status_code >= 400:
            return ProductLookupResult.miss(
                LookupFailureReason.ERROR, f"HTTP {res.status_code}"
            )

        try:
            data = res.json()
        except ValueError:
            logger.warning("OFF returned non-JSON body for %s", code)
            return ProductLookupResult.miss(LookupFailureReason.ERROR, "Lookup mislukt")

        product = data.get("product")
        if data.get("status") != 1 or not product:
            return ProductLookupResult.miss(LookupFailureReason.NOT_FOUND)

        found_code = _clean(data.get("code") or code)
        image_url = (
            product.get("image_small_url")
            or product.get("image_front_url")
            or product.get("image_url")
        )
        return ProductLookupResult.hit(
            ExternalProduct(
                source=ProductSource.OPEN_FOOD_FACTS,
                barcode=found_code or None,
                name=_clean(product.get("product_name")) or UNKNOWN_PRODUCT_NAME,
                brand=_clean(product.get("brands")),
                nutriscore_grade=map_nutriscore_grade(product.get("nutrition_grades")),
                image_url=image_url,
                quantity=_clean(product.get("quantity")) or None,
                product_url=self.product_url(found_code),
            )
        )

    def search(self, query: str, limit: int = 10) -> ProductSearchResult:
        terms = (query or "").strip()
        if not terms:
            return ProductSearchResult(ok=True)

        params = {
            "search_terms": terms,
            "json": "1",
            "page_size": str(min(limit, MAX_SEARCH_PAGE_SIZE)),
            "fields": SEARCH_FIELDS,
        }
        try:
            res = self.client.get(
                f"{self.base_url}/cgi/search.pl", params=params, headers=self.headers
            )
        except httpx.HTTPError as e:
            logger.warning("OFF search failed for %r: %s", terms, e)
            return ProductSearchResult.failed(
                LookupFailureReason.ERROR, str(e) or "Zoeken mislukt"
            )

        if res.status_code == 429:
            return ProductSearchResult.failed(
                LookupFailureReason.RATE_LIMITED,
                "Te veel zoekverzoeken. Probeer over een minuut opnieuw.",
            )
        if res.status_code >= 400:
            return ProductSearchResult.failed(
                LookupFailureReason.ERROR, f"HTTP {res.status_code}"
            )

        try:
            data = res.json()
        except ValueError:
            return ProductSearchResult.failed(LookupFailureReason.ERROR, "Zoeken mislukt")

        products = []
        for p in data.get("products") or []:
            code = _clean(p.get("code"))
            products.append(
                ExternalProduct(
                    source=ProductSource.OPEN_FOOD_FACTS,
                    barcode=code or None,
                    name=_clean(p.get("product_name")) or UNKNOWN_PRODUCT_NAME,
                    brand=_clean(p.get("brands")),
                    nutriscore_grade=map_nutriscore_grade(p.get("nutrition_grades")),
                    image_url=_clean(p.get("image_small_url")) or None,
                    quantity=None,
                    product_url=self.product_url(code),
                )
            )
        return ProductSearchResult(ok=True, products=products)

    def test_connection(self) -> SourceConnectionResult:
        result = self.search("melk", 1)
        if not result.ok:
            return SourceConnectionResult(ok=False, error=result.message or "Zoeken mislukt")
        count = len(result.products)
        if count > 0:
            return SourceConnectionResult(
                ok=True, message=f'Verbonden. Zoektest "melk": {count} resultaat.'
            )
        return SourceConnectionResult(
            ok=True, message='Verbonden. Zoektest "melk": geen resultaten (API werkt wel).'
        )
