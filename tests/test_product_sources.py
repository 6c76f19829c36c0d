"""
Tests for product lookup over Open Food Facts and Albert Heijn.

Outbound HTTP is served by httpx.MockTransport handlers, so the adapters run
their real request/response code without a network.
"""

from types import SimpleNamespace
from unittest.mock import Mock

import httpx
import pytest

from test_fixtures import client, make_source_config, mock_db, signed_in
from adapters import albert_heijn
from adapters.albert_heijn import AhConfig, AlbertHeijnAdapter, TokenError
from adapters.mapping import map_nutriscore_grade
from adapters.open_food_facts import OpenFoodFactsAdapter
from app.exceptions import NotFoundError
from domain.enums import LookupFailureReason, ProductSource
from domain.schemas.product_schemas import (
    ExternalProduct,
    ProductLookupResult,
    ProductSearchResult,
    ProductSourceConfigUpdate,
)
from services import product_lookup_service
from services.product_lookup_service import ProductLookupService, barcode_lookup_order

OFF_BASE = "https://off.test"
AH_BASE = "https://ah.test"

OFF_PRODUCT = {
    "status": 1,
    "code": "8710400000001",
    "product": {
        "product_name": "Halfvolle melk",
        "brands": "AH",
        "nutrition_grades": "b",
        "image_url": "https://img.test/full.jpg",
        "image_small_url": "https://img.test/small.jpg",
        "quantity": "1 L",
    },
}

AH_SEARCH = {
    "products": [
        {
            "webshopId": 1525,
            "title": "AH Halfvolle melk",
            "brand": "AH",
            "nutriscore": "b",
            "salesUnitSize": "1 l",
            "images": [{"url": "https://static.ah.test/1525.png"}],
        }
    ]
}


def http_client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def off_adapter(handler):
    return OpenFoodFactsAdapter(http_client(handler), OFF_BASE, "NutriCoach-Test/1.0")


def ah_adapter(handler):
    config = AhConfig(base_url=AH_BASE, client_id="appie-ios", installation_id="inst-1")
    return AlbertHeijnAdapter(http_client(handler), config)


@pytest.fixture(autouse=True)
def fresh_token_cache():
    albert_heijn.clear_token_cache()
    yield
    albert_heijn.clear_token_cache()


def ah_handler(search_status=200, search_body=None, calls=None):
    """Anonymous token endpoint plus product search"""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.path)
        if request.url.path.endswith("/auth/token/anonymous"):
            return httpx.Response(
                200,
                json={"access_token": "tok-1", "refresh_token": "ref-1", "expires_in": 3600},
            )
        if request.url.path.endswith("/product/search/v2"):
            assert request.headers["Authorization"] == "Bearer tok-1"
            return httpx.Response(search_status, json=search_body or {"products": []})
        return httpx.Response(404)

    return handler


# =============================================================================
# OPEN FOOD FACTS
# =============================================================================


def test_off_barcode_hit_maps_product():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["agent"] = request.headers["User-Agent"]
        return httpx.Response(200, json=OFF_PRODUCT)

    result = off_adapter(handler).get_by_barcode(" 8710 4000 00001 ")

    assert seen["path"] == "/api/v2/product/8710400000001.json"
    assert seen["agent"] == "NutriCoach-Test/1.0"
    assert result.found is True
    product = result.product
    assert product.source == ProductSource.OPEN_FOOD_FACTS
    assert product.name == "Halfvolle melk"
    assert product.nutriscore_grade == "B"
    assert product.image_url == "https://img.test/small.jpg"
    assert product.product_url == f"{OFF_BASE}/product/8710400000001"


@pytest.mark.parametrize(
    "status,body,reason",
    [
        (200, {"status": 0}, LookupFailureReason.NOT_FOUND),
        (429, {}, LookupFailureReason.RATE_LIMITED),
        (500, {}, LookupFailureReason.ERROR),
    ],
)
def test_off_barcode_misses(status, body, reason):
    result = off_adapter(lambda request: httpx.Response(status, json=body)).get_by_barcode("123")

    assert result.found is False
    assert result.reason == reason


def test_off_network_error_is_a_miss():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    result = off_adapter(handler).get_by_barcode("123")

    assert result.reason == LookupFailureReason.ERROR
    assert "connection refused" in result.message


def test_off_blank_barcode_never_calls_out():
    def handler(request):
        raise AssertionError("no request expected")

    assert off_adapter(handler).get_by_barcode("   ").message == "Lege barcode"


def test_off_search_caps_page_size_and_maps_unknown_names():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(200, json={"products": [{"code": "1", "product_name": ""}]})

    result = off_adapter(handler).search("melk", 50)

    assert seen["page_size"] == "20"
    assert seen["search_terms"] == "melk"
    assert result.products[0].name == "Onbekend product"


def test_off_connection_test_reports_result_count():
    result = off_adapter(
        lambda request: httpx.Response(200, json={"products": [{"code": "1"}]})
    ).test_connection()

    assert result.ok is True
    assert result.message == 'Verbonden. Zoektest "melk": 1 resultaat.'


def test_nutriscore_mapping():
    assert map_nutriscore_grade("a") == "A"
    assert map_nutriscore_grade("unknown") is None
    assert map_nutriscore_grade("f") is None
    assert map_nutriscore_grade(None) is None


# =============================================================================
# ALBERT HEIJN
# =============================================================================


def test_ah_barcode_hit_uses_query_as_barcode():
    result = ah_adapter(ah_handler(search_body=AH_SEARCH)).get_by_barcode("8710400000001")

    assert result.found is True
    assert result.product.barcode == "8710400000001"
    assert result.product.product_url == "https://www.ah.nl/producten/product/wi1525"
    assert result.product.quantity == "1 l"


def test_ah_search_results_get_synthetic_barcode():
    result = ah_adapter(ah_handler(search_body=AH_SEARCH)).search("melk", 100)

    assert result.ok is True
    assert result.products[0].barcode == "ah_wi1525"


def test_ah_token_is_cached_between_calls():
    calls = []
    adapter = ah_adapter(ah_handler(search_body=AH_SEARCH, calls=calls))

    adapter.search("melk")
    adapter.search("kaas")

    token_calls = [p for p in calls if "auth/token" in p]
    assert len(token_calls) == 1


def test_ah_expired_token_is_refreshed():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        if request.url.path.endswith("/auth/token/refresh"):
            return httpx.Response(200, json={"access_token": "tok-2", "expires_in": 3600})
        return httpx.Response(500)

    adapter = ah_adapter(handler)
    albert_heijn._token_cache[adapter.config.cache_key] = albert_heijn.CachedToken(
        access_token="old", refresh_token="ref-1", expires_at=0
    )

    assert adapter.get_access_token() == "tok-2"
    assert calls == ["/mobile-auth/v1/auth/token/refresh"]


def test_ah_token_failure_becomes_error_result():
    adapter = ah_adapter(lambda request: httpx.Response(429))

    with pytest.raises(TokenError):
        adapter.get_access_token()

    result = adapter.get_by_barcode("123")
    assert result.reason == LookupFailureReason.ERROR
    assert result.message == "Te veel verzoeken. Probeer later opnieuw."


def test_ah_rate_limited_search():
    result = ah_adapter(ah_handler(search_status=429)).search("melk")

    assert result.ok is False
    assert result.reason == LookupFailureReason.RATE_LIMITED


def maintenance_handler(token_body=None):
    """Valid token, HTML maintenance page from search"""

    def handler(request):
        if request.url.path.endswith("/auth/token/anonymous"):
            if token_body is not None:
                return httpx.Response(200, text=token_body)
            return httpx.Response(200, json={"access_token": "tok-1", "expires_in": 3600})
        return httpx.Response(200, text="<html>maintenance</html>")

    return handler


def test_ah_non_json_barcode_response_is_error_result():
    result = ah_adapter(maintenance_handler()).get_by_barcode("123")

    assert result.found is False
    assert result.reason == LookupFailureReason.ERROR


def test_ah_non_json_search_response_is_failed_result():
    result = ah_adapter(maintenance_handler()).search("melk")

    assert result.ok is False
    assert result.reason == LookupFailureReason.ERROR


def test_ah_non_json_token_response_is_token_error():
    adapter = ah_adapter(maintenance_handler(token_body="<html>maintenance</html>"))

    with pytest.raises(TokenError):
        adapter.get_access_token()

    assert adapter.test_connection().ok is False


def test_ah_config_from_json_defaults():
    config = AhConfig.from_json({"clientId": "  ", "baseUrl": "https://x.test/"})

    assert config.base_url == "https://x.test"
    assert config.client_id == "appie-ios"
    assert config.installation_id


# =============================================================================
# LOOKUP ORCHESTRATION
# =============================================================================


def hit(source, name="Halfvolle melk", url=None):
    return ProductLookupResult.hit(
        ExternalProduct(source=source, barcode="123", name=name, product_url=url)
    )


class FakeAdapter:
    def __init__(self, result, search=None):
        self.result = result
        self.search_result = search
        self.barcodes = []

    def get_by_barcode(self, code):
        self.barcodes.append(code)
        return self.result

    def search(self, query, limit=10):
        return self.search_result


@pytest.fixture
def sources(monkeypatch):
    """Enabled sources and the adapters built for them"""
    state = SimpleNamespace(enabled=[], adapters={})
    repo = Mock()
    repo.list_enabled.side_effect = lambda: state.enabled
    monkeypatch.setattr(product_lookup_service, "ProductSourceRepository", lambda db: repo)
    monkeypatch.setattr(
        ProductLookupService,
        "build_adapter",
        staticmethod(lambda db, client, source: state.adapters.get(source)),
    )
    state.repo = repo
    return state


def test_lookup_order_puts_ah_first():
    assert sorted(["openfoodfacts", "other", "albert_heijn"], key=barcode_lookup_order) == [
        "albert_heijn",
        "openfoodfacts",
        "other",
    ]


def test_lookup_falls_through_not_found_and_enriches_off_hit(sources):
    """
    Verifies:
    1. AH is tried first and its not_found moves on to OFF
    2. The OFF hit gets the AH product URL from a name search
    """
    ah = FakeAdapter(
        ProductLookupResult.miss(LookupFailureReason.NOT_FOUND),
        search=ProductSearchResult(
            ok=True, products=[ExternalProduct(source=ProductSource.ALBERT_HEIJN, name="x", product_url="https://ah/p")]
        ),
    )
    off = FakeAdapter(hit(ProductSource.OPEN_FOOD_FACTS))
    sources.enabled = [make_source_config("openfoodfacts"), make_source_config("albert_heijn")]
    sources.adapters = {"albert_heijn": ah, "openfoodfacts": off}

    result = ProductLookupService.lookup_by_barcode(mock_db(), None, " 12 3 ")

    assert ah.barcodes == ["123"]
    assert off.barcodes == ["123"]
    assert result.found is True
    assert result.product.product_url == "https://ah/p"


class BrokenSearchAdapter(FakeAdapter):
    def search(self, query, limit=10):
        raise ValueError("Expecting value: line 1 column 1")


def test_lookup_keeps_off_hit_when_ah_enrichment_fails(sources):
    off = FakeAdapter(hit(ProductSource.OPEN_FOOD_FACTS))
    sources.enabled = [make_source_config("albert_heijn"), make_source_config("openfoodfacts")]
    sources.adapters = {
        "albert_heijn": BrokenSearchAdapter(ProductLookupResult.miss(LookupFailureReason.NOT_FOUND)),
        "openfoodfacts": off,
    }

    result = ProductLookupService.lookup_by_barcode(mock_db(), None, "123")

    assert result.found is True
    assert result.product.source == ProductSource.OPEN_FOOD_FACTS
    assert result.product.product_url is None


def test_lookup_stops_on_rate_limit(sources):
    ah = FakeAdapter(ProductLookupResult.miss(LookupFailureReason.RATE_LIMITED, "slow down"))
    off = FakeAdapter(hit(ProductSource.OPEN_FOOD_FACTS))
    sources.enabled = [make_source_config("openfoodfacts"), make_source_config("albert_heijn")]
    sources.adapters = {"albert_heijn": ah, "openfoodfacts": off}

    result = ProductLookupService.lookup_by_barcode(mock_db(), None, "123")

    assert result.reason == LookupFailureReason.RATE_LIMITED
    assert off.barcodes == []


def test_lookup_without_enabled_sources(sources):
    result = ProductLookupService.lookup_by_barcode(mock_db(), None, "123")

    assert result.message == "Geen productbronnen actief"


def test_lookup_all_sources_miss(sources):
    sources.enabled = [make_source_config("openfoodfacts")]
    sources.adapters = {"openfoodfacts": FakeAdapter(ProductLookupResult.miss(LookupFailureReason.NOT_FOUND))}

    result = ProductLookupService.lookup_by_barcode(mock_db(), None, "123")

    assert result.found is False
    assert result.reason == LookupFailureReason.NOT_FOUND


# =============================================================================
# SOURCE ADMINISTRATION
# =============================================================================


def test_update_source_config_applies_only_sent_fields(monkeypatch):
    row = make_source_config("albert_heijn", is_enabled=False, priority=3)
    repo = Mock()
    repo.get_by_source.return_value = row
    monkeypatch.setattr(product_lookup_service, "ProductSourceRepository", lambda db: repo)

    result = ProductLookupService.update_source_config(
        mock_db(), "albert_heijn", ProductSourceConfigUpdate(is_enabled=True)
    )

    assert result.is_enabled is True
    assert result.priority == 3
    assert result.has_credentials is False
    repo.update.assert_called_once_with(row)


def test_update_unknown_source_is_not_found(monkeypatch):
    repo = Mock()
    repo.get_by_source.return_value = None
    monkeypatch.setattr(product_lookup_service, "ProductSourceRepository", lambda db: repo)

    with pytest.raises(NotFoundError):
        ProductLookupService.update_source_config(
            mock_db(), "albert_heijn", ProductSourceConfigUpdate(priority=2)
        )


def test_product_routes(monkeypatch):
    monkeypatch.setattr(
        ProductLookupService,
        "lookup_by_barcode",
        lambda db, http, code: ProductLookupResult.miss(LookupFailureReason.NOT_FOUND),
    )
    with signed_in():
        r = client.get("/products/barcode/123")

    assert r.status_code == 200
    assert r.json()["data"]["found"] is False
    assert r.json()["data"]["reason"] == "not_found"


def test_product_source_admin_routes(monkeypatch):
    row = make_source_config(config_json={"clientId": "x"})
    monkeypatch.setattr(
        ProductLookupService,
        "list_source_config",
        lambda db: [product_lookup_service._to_response(row)],
    )
    with signed_in(admin=True):
        r = client.get("/admin/product-sources")
        assert r.status_code == 200
        assert r.json()["data"][0]["has_credentials"] is True
        assert "config_json" not in r.json()["data"][0]

        r = client.patch("/admin/product-sources/bogus", json={"is_enabled": True})
        assert r.status_code == 422

        r = client.patch("/admin/product-sources/openfoodfacts", json={"priority": 0})
        assert r.status_code == 422
