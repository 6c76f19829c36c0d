"""
Albert Heijn mobile API adapter.

Uses anonymous token auth. Tokens are cached per (base url, client id) and
reused until 60 seconds before expiry, then refreshed with the refresh token
or, failing that, a new anonymous token is requested.

AH search is text oriented: a pure EAN query often returns nothing, so a
barcode miss here is normal and the lookup falls through to Open Food Facts.
"""

import logging
import re
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

import httpx

from adapters.mapping import map_nutriscore_grade
from domain.enums import LookupFailureReason, ProductSource
from domain.schemas.product_schemas import (
    ExternalProduct,
    ProductLookupResult,
    ProductSearchResult,
    SourceConnectionResult,
)

logger = logging.getLogger("nutricoach.products.ah")

DEFAULT_BASE_URL = "https://api.ah.nl"
DEFAULT_CLIENT_ID = "appie-ios"
DEFAULT_EXPIRES_IN_SEC = 604798
REFRESH_BUFFER_SEC = 60
BARCODE_SEARCH_SIZE = 5
MAX_SEARCH_SIZE = 30

PRODUCT_PAGE_BASE = "https://www.ah.nl/producten/product"
# synthetic barcode when search results carry no EAN
WEBSHOP_ID_PREFIX = "ah_wi"
RATE_LIMITED_MESSAGE = "Te veel verzoeken. Probeer later opnieuw."

STATIC_HEADERS = {
    "User-Agent": "Appie/9.28 (iPhone17,3; iPhone; CPU OS 26_1 like Mac OS X)",
    "x-clientname": "ipad",
    "x-clientversion": "9.28",
    "x-application": "AHWEBSHOP",
    "x-accept-language": "nl-NL",
    "Content-Type": "application/json",
    "Accept": "application/json",
}

_WHITESPACE = re.compile(r"\s")


@dataclass
class CachedToken:
    access_token: str
    refresh_token: str
    expires_at: float


@dataclass
class AhConfig:
    base_url: str
    client_id: str
    installation_id: str

    @property
    def cache_key(self) -> str:
        return f"{self.base_url}:{self.client_id}"

    @classmethod
    def from_json(
        cls,
        raw: Optional[Mapping[str, Any]],
        default_base_url: str = DEFAULT_BASE_URL,
        default_client_id: str = DEFAULT_CLIENT_ID,
    ) -> "AhConfig":
        raw = raw or {}

        def text(key: str) -> str:
            value = raw.get(key)
            return value.strip() if isinstance(value, str) else ""

        return cls(
            base_url=(text("baseUrl") or default_base_url).rstrip("/"),
            client_id=text("clientId") or default_client_id,
            installation_id=text("installationId") or str(uuid.uuid4()),
        )


_token_cache: Dict[str, CachedToken] = {}
_token_lock = threading.Lock()


def clear_token_cache() -> None:
    with _token_lock:
        _token_cache.clear()


class TokenError(Exception):
    """Raised when no usable access token could be obtained"""


def _json_body(res: httpx.Response) -> Optional[Dict[str, Any]]:
    """Parsed JSON object, {} for an empty body, None when not a JSON object"""
    if not res.content:
        return {}
    try:
        data = res.json()
    except ValueError:
        return None
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


def map_product(p: Mapping[str, Any], barcode_query: Optional[str]) -> ExternalProduct:
    webshop_id = p.get("webshopId")
    images = p.get("images") or []
    image_url = ((images[0] or {}).get("url") or "").strip() if images else ""
    barcode = (barcode_query or "").strip() or (
        f"{WEBSHOP_ID_PREFIX}{webshop_id}" if webshop_id is not None else None
    )
    return ExternalProduct(
        source=ProductSource.ALBERT_HEIJN,
        barcode=barcode,
        name=(p.get("title") or "").strip() or "Onbekend product",
        brand=(p.get("brand") or "").strip(),
        nutriscore_grade=map_nutriscore_grade(p.get("nutriscore")),
        image_url=image_url or None,
        quantity=(p.get("salesUnitSize") or "").strip() or None,
        product_url=(
            f"{PRODUCT_PAGE_BASE}/wi{webshop_id}" if webshop_id is not None else None
        ),
    )


class AlbertHeijnAdapter:
    def __init__(self, client: httpx.Client, config: AhConfig):
        self.client = client
        self.config = config

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = dict(STATIC_HEADERS)
        headers["x-fraud-detection-installation-id"] = self.config.installation_id
        headers["x-correlation-id"] = str(uuid.uuid4())
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def _request_token(self, path: str, body: Dict[str, str], label: str) -> CachedToken:
        res = self.client.post(
            f"{self.config.base_url}{path}", json=body, headers=self._headers()
        )
        if res.status_code == 429:
            raise TokenError(RATE_LIMITED_MESSAGE)
        if res.status_code >= 400:
            raise TokenError(f"AH {label}: {res.status_code} {res.text[:200]}")

        data = _json_body(res)
        if data is None:
            raise TokenError(f"AH {label}: ongeldige response")
        access_token = data.get("access_token")
        if not access_token:
            if label == "auth":
                raise TokenError("Geen access_token in AH response")
            raise TokenError("Geen access_token in refresh response")
        expires_in = data.get("expires_in")
        if not isinstance(expires_in, (int, float)) or isinstance(expires_in, bool):
            expires_in = DEFAULT_EXPIRES_IN_SEC
        return CachedToken(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or body.get("refreshToken", ""),
            expires_at=time.time() + expires_in - REFRESH_BUFFER_SEC,
        )

    def get_access_token(self) -> str:
        """
        Cached token while valid, else refresh, else a fresh anonymous token.

        Raises:
            TokenError: when AH does not hand out a token
        """
        key = self.config.cache_key
        with _token_lock:
            cached = _token_cache.get(key)
        if cached and cached.expires_at > time.time():
            return cached.access_token

        token: Optional[CachedToken] = None
        if cached and cached.refresh_token:
            try:
                token = self._request_token(
                    "/mobile-auth/v1/auth/token/refresh",
                    {"clientId": self.config.client_id, "refreshToken": cached.refresh_token},
                    "refresh",
                )
            except (TokenError, httpx.HTTPError) as e:
                logger.info("AH token refresh failed, requesting anonymous token: %s", e)

        if token is None:
            token = self._request_token(
                "/mobile-auth/v1/auth/token/anonymous",
                {"clientId": self.config.client_id},
                "auth",
            )

        with _token_lock:
            _token_cache[key] = token
        return token.access_token

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def _search(self, query: str, size: int) -> Union[httpx.Response, str]:
        """Authenticated search call; returns the response or an error message"""
        try:
            token = self.get_access_token()
        except TokenError as e:
            return str(e)
        return self.client.get(
            f"{self.config.base_url}/mobile-services/product/search/v2",
            params={"query": query, "page": 0, "size": size, "sortOn": "RELEVANCE"},
            headers=self._headers(token),
        )

    def get_by_barcode(self, barcode: str) -> ProductLookupResult:
        code = _WHITESPACE.sub("", barcode or "")
        if not code:
            return ProductLookupResult.miss(LookupFailureReason.ERROR, "Lege barcode")

        try:
            res = self._search(code, BARCODE_SEARCH_SIZE)
        except httpx.HTTPError as e:
            logger.warning("AH barcode lookup failed for %s: %s", code, e)
            return ProductLookupResult.miss(LookupFailureReason.ERROR, str(e) or "Lookup mislukt")
        if isinstance(res, str):
            return ProductLookupResult.miss(LookupFailureReason.ERROR, res)
        if res.status_code == 429:
            return ProductLookupResult.miss(
                LookupFailureReason.RATE_LIMITED, RATE_LIMITED_MESSAGE
            )
        if res.status_code >= 400:
            return ProductLookupResult.miss(
                LookupFailureReason.ERROR, f"AH search: {res.status_code}"
            )

        data = _json_body(res)
        if data is None:
            logger.warning("AH returned non-JSON body for barcode %s", code)
            return ProductLookupResult.miss(LookupFailureReason.ERROR, "Lookup mislukt")
        products = data.get("products") or []
        if not products:
            return ProductLookupResult.miss(LookupFailureReason.NOT_FOUND)
        return ProductLookupResult.hit(map_product(products[0], code))

    def search(self, query: str, limit: int = 10) -> ProductSearchResult:
        terms = (query or "").strip()
        if not terms:
            return ProductSearchResult(ok=True)

        size = min(max(limit, 1), MAX_SEARCH_SIZE)
        try:
            res = self._search(terms, size)
        except httpx.HTTPError as e:
            logger.warning("AH search failed for %r: %s", terms, e)
            return ProductSearchResult.failed(LookupFailureReason.ERROR, str(e) or "Zoeken mislukt")
        if isinstance(res, str):
            return ProductSearchResult.failed(LookupFailureReason.ERROR, res)
        if res.status_code == 429:
            return ProductSearchResult.failed(
                LookupFailureReason.RATE_LIMITED,
                "Te veel zoekverzoeken. Probeer later opnieuw.",
            )
        if res.status_code >= 400:
            return ProductSearchResult.failed(
                LookupFailureReason.ERROR, f"AH search: {res.status_code}"
            )

        data = _json_body(res)
        if data is None:
            logger.warning("AH returned non-JSON body for search %r", terms)
            return ProductSearchResult.failed(LookupFailureReason.ERROR, "Zoeken mislukt")
        products = data.get("products") or []
        return ProductSearchResult(ok=True, products=[map_product(p, None) for p in products])

    def test_connection(self) -> SourceConnectionResult:
        """Token plus a one-result search for 'melk'"""
        try:
            self.get_access_token()
        except TokenError as e:
            return SourceConnectionResult(ok=False, error=str(e))
        except httpx.HTTPError as e:
            return SourceConnectionResult(ok=False, error=str(e) or "Onbekende fout")

        result = self.search("melk", 1)
        if not result.ok:
            return SourceConnectionResult(
                ok=False,
                error=result.message
                or (result.reason.value if result.reason else "Zoeken mislukt"),
            )
        count = len(result.products)
        if count > 0:
            message = f'Verbonden. Zoektest "melk": {count} resultaat.'
        else:
            message = 'Verbonden. Zoektest "melk": geen resultaten (API werkt wel).'
        return SourceConnectionResult(ok=True, message=message)
