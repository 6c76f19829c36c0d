"""
Tests for the ingredient catalog: canonical ingredients, stores, store
products and each user's ingredient -> store product links.
"""

import uuid
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import IntegrityError

from test_fixtures import client, make_link, make_store, make_store_product, mock_db, signed_in
from app.exceptions import ConflictError, NotFoundError, ServiceValidationError
from domain.schemas.catalog_schemas import (
    CanonicalIngredientCreate,
    IngredientProductLinkUpsert,
    StoreCreate,
)
from services import catalog_service
from services.catalog_service import (
    LINKS_CHUNK_SIZE,
    CatalogService,
    is_https_url,
    parse_id,
    slugify,
    unique_ids,
)


@pytest.fixture
def repo(monkeypatch):
    instance = Mock()
    instance.get_ingredient_by_slug.return_value = None
    instance.create.side_effect = lambda entity: entity
    instance.get_links_for_ingredients.return_value = []
    monkeypatch.setattr(catalog_service, "CatalogRepository", lambda db: instance)
    return instance


# =============================================================================
# HELPERS
# =============================================================================


@pytest.mark.parametrize(
    "name,slug",
    [
        ("Crème fraîche (light)", "creme-fraiche-light"),
        ("  Rode   ui  ", "rode-ui"),
        ("Kip/filet", "kip-filet"),
        ("???", ""),
    ],
)
def test_slugify(name, slug):
    assert slugify(name) == slug


def test_is_https_url():
    assert is_https_url("https://www.ah.nl")
    assert not is_https_url("http://www.ah.nl")
    assert not is_https_url("https://")
    assert not is_https_url("www.ah.nl")


def test_parse_id_messages():
    value = uuid.uuid4()
    assert parse_id(f" {value} ", "store_id") == value

    with pytest.raises(ServiceValidationError, match="store_id is verplicht"):
        parse_id("  ", "store_id")
    with pytest.raises(ServiceValidationError, match="store_id is geen geldige id"):
        parse_id("abc", "store_id")


def test_unique_ids_keeps_first_seen_order_and_drops_garbage():
    a, b = uuid.uuid4(), uuid.uuid4()

    assert unique_ids([str(b), "", None, "nope", str(a), str(b)]) == [b, a]


# =============================================================================
# INGREDIENTS AND STORES
# =============================================================================


def test_create_ingredient_derives_slug(repo):
    ingredient = CatalogService.create_ingredient(
        mock_db(), CanonicalIngredientCreate(name=" Crème fraîche ")
    )

    assert ingredient.name == "Crème fraîche"
    assert ingredient.slug == "creme-fraiche"


def test_create_ingredient_with_existing_slug_is_conflict(repo):
    repo.get_ingredient_by_slug.return_value = object()

    with pytest.raises(ConflictError) as exc:
        CatalogService.create_ingredient(mock_db(), CanonicalIngredientCreate(name="Creme Fraiche"))

    assert exc.value.details == {"slug": "creme-fraiche"}


def test_create_ingredient_race_maps_to_conflict(repo):
    repo.create.side_effect = IntegrityError("insert", {}, Exception("unique"))
    db = mock_db()

    with pytest.raises(ConflictError):
        CatalogService.create_ingredient(db, CanonicalIngredientCreate(name="Ui"))
    db.rollback.assert_called_once()


def test_create_ingredient_without_slug_characters(repo):
    with pytest.raises(ServiceValidationError):
        CatalogService.create_ingredient(mock_db(), CanonicalIngredientCreate(name="!!!"))


@pytest.mark.parametrize(
    "name,base_url,message",
    [
        ("   ", None, "Naam is verplicht"),
        ("Jumbo", "http://www.jumbo.com", "Base URL moet een geldige https-URL zijn"),
    ],
)
def test_create_store_validation(repo, name, base_url, message):
    with pytest.raises(ServiceValidationError, match=message):
        CatalogService.create_store(mock_db(), StoreCreate(name=name, base_url=base_url))


def test_create_store_blank_url_is_null(repo):
    db = mock_db()

    store = CatalogService.create_store(db, StoreCreate(name=" Jumbo ", base_url="  "))

    assert store.name == "Jumbo"
    assert store.base_url is None
    assert store.is_active is True
    db.commit.assert_called_once()


def test_search_products_of_unknown_store(repo):
    repo.get_store.return_value = None

    with pytest.raises(NotFoundError):
        CatalogService.search_store_products(mock_db(), uuid.uuid4())


# =============================================================================
# LINKS
# =============================================================================


def test_links_for_store_are_fetched_in_chunks(repo):
    user_id, store_id = uuid.uuid4(), uuid.uuid4()
    ids = [str(uuid.uuid4()) for _ in range(LINKS_CHUNK_SIZE + 1)] + ["garbage", ""]
    repo.get_links_for_ingredients.side_effect = lambda uid, sid, chunk: [
        make_link(user_id=uid, store_id=sid, ingredient_id=i) for i in chunk
    ]

    links = CatalogService.get_links_for_store(mock_db(), user_id, str(store_id), ids)

    assert len(links) == LINKS_CHUNK_SIZE + 1
    assert repo.get_links_for_ingredients.call_count == 2
    assert len(repo.get_links_for_ingredients.call_args_list[0][0][2]) == LINKS_CHUNK_SIZE


def test_links_for_store_without_ids(repo):
    assert CatalogService.get_links_for_store(mock_db(), uuid.uuid4(), str(uuid.uuid4()), []) == []
    repo.get_links_for_ingredients.assert_not_called()


def test_links_for_store_requires_valid_store_id(repo):
    with pytest.raises(ServiceValidationError):
        CatalogService.get_links_for_store(mock_db(), uuid.uuid4(), "", [str(uuid.uuid4())])


def link_payload(store_id, product_id, ingredient_id=None):
    return IngredientProductLinkUpsert(
        canonical_ingredient_id=str(ingredient_id or uuid.uuid4()),
        store_id=str(store_id),
        store_product_id=str(product_id),
    )


def test_upsert_link_executes_upsert_and_reads_back(repo):
    store = make_store()
    product = make_store_product(store_id=store.id)
    link = make_link(store_id=store.id, product_id=product.id)
    repo.get_store_product.return_value = product
    repo.get_link.return_value = link
    db = mock_db()
    user_id = uuid.uuid4()

    result = CatalogService.upsert_link(db, user_id, link_payload(store.id, product.id))

    assert result is link
    db.execute.assert_called_once()
    db.commit.assert_called_once()
    assert repo.get_link.call_args[0][:2] == (user_id, store.id)


def test_upsert_link_product_of_other_store(repo):
    repo.get_store_product.return_value = make_store_product(store_id=uuid.uuid4())

    with pytest.raises(ServiceValidationError, match="Product hoort niet bij deze winkel"):
        CatalogService.upsert_link(
            mock_db(), uuid.uuid4(), link_payload(uuid.uuid4(), uuid.uuid4())
        )


def test_upsert_link_unknown_product(repo):
    repo.get_store_product.return_value = None

    with pytest.raises(NotFoundError):
        CatalogService.upsert_link(
            mock_db(), uuid.uuid4(), link_payload(uuid.uuid4(), uuid.uuid4())
        )


def test_upsert_link_foreign_key_violation_is_validation_error(repo):
    store_id = uuid.uuid4()
    repo.get_store_product.return_value = make_store_product(store_id=store_id)
    db = mock_db()
    db.execute.side_effect = IntegrityError("insert", {}, Exception("fk violation"))

    with pytest.raises(ServiceValidationError, match="Ingrediënt of winkel bestaat niet"):
        CatalogService.upsert_link(db, uuid.uuid4(), link_payload(store_id, uuid.uuid4()))
    db.rollback.assert_called_once()


def test_delete_link(repo):
    link = make_link()
    repo.get_link.return_value = link
    db = mock_db()

    assert CatalogService.delete_link(db, uuid.uuid4(), str(uuid.uuid4()), str(uuid.uuid4())) is True
    db.delete.assert_called_once_with(link)

    repo.get_link.return_value = None
    assert CatalogService.delete_link(db, uuid.uuid4(), str(uuid.uuid4()), str(uuid.uuid4())) is False


# =============================================================================
# ROUTES
# =============================================================================


def test_catalog_admin_routes(monkeypatch):
    store = make_store()
    product = make_store_product(store_id=store.id)
    monkeypatch.setattr(CatalogService, "list_stores", lambda db: [store])
    monkeypatch.setattr(CatalogService, "search_store_products", lambda db, sid, q, limit: [product])

    with signed_in(admin=True):
        r = client.get("/admin/catalog/stores")
        assert r.status_code == 200
        assert r.json()["data"][0]["name"] == "Albert Heijn"

        r = client.get(f"/admin/catalog/stores/{store.id}/products", params={"q": "melk"})
        assert r.status_code == 200
        assert r.json()["data"][0]["price_cents"] == 119

        r = client.post("/admin/catalog/ingredients", json={"name": ""})
        assert r.status_code == 422


def test_link_routes(monkeypatch):
    link = make_link()
    monkeypatch.setattr(CatalogService, "get_link", lambda db, uid, iid, sid: None)
    monkeypatch.setattr(CatalogService, "get_links_for_store", lambda db, uid, sid, ids: [link])
    monkeypatch.setattr(CatalogService, "delete_link", lambda db, uid, iid, sid: False)

    with signed_in():
        r = client.get(
            "/store-product-links",
            params={"canonical_ingredient_id": "a", "store_id": "b"},
        )
        assert r.status_code == 200
        assert r.json()["data"] is None

        r = client.post(
            "/store-product-links/query",
            json={"store_id": str(link.store_id), "canonical_ingredient_ids": [str(link.canonical_ingredient_id)]},
        )
        assert r.status_code == 200
        assert r.json()["data"][0]["store_product_id"] == str(link.store_product_id)

        r = client.delete(
            "/store-product-links",
            params={"canonical_ingredient_id": "a", "store_id": "b"},
        )
        assert r.json()["data"] == {"removed": False}


def test_link_route_bad_id_is_400(repo):
    with signed_in():
        r = client.put(
            "/store-product-links",
            json={"canonical_ingredient_id": "x", "store_id": "y", "store_product_id": "z"},
        )

    assert r.status_code == 400
    assert r.json()["error"]["message"] == "canonical_ingredient_id is geen geldige id"
