import logging
import re
import unicodedata
import uuid
from typing import Iterable, List, Optional
from urllib.parse import urlparse

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import ConflictError, NotFoundError, ServiceValidationError
from domain.models import (
    CanonicalIngredient,
    IngredientStoreProductLink,
    Store,
    StoreProduct,
)
from domain.schemas.catalog_schemas import (
    CanonicalIngredientCreate,
    IngredientProductLinkUpsert,
    StoreCreate,
)
from repositories import CatalogRepository

logger = logging.getLogger("nutricoach.catalog")

LINKS_CHUNK_SIZE = 100

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """'Crème fraîche (light)' -> 'creme-fraiche-light'"""
    ascii_name = (
        unicodedata.normalize("NFKD", name or "").encode("ascii", "ignore").decode("ascii")
    )
    return _NON_SLUG.sub("-", ascii_name.lower()).strip("-")


def is_https_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme == "https" and bool(parsed.netloc)


def parse_id(value: Optional[str], field: str) -> uuid.UUID:
    text = (value or "").strip()
    if not text:
        raise ServiceValidationError(f"{field} is verplicht")
    try:
        return uuid.UUID(text)
    except ValueError:
        raise ServiceValidationError(f"{field} is geen geldige id", details={field: text})


def unique_ids(values: Iterable[Optional[str]]) -> List[uuid.UUID]:
    """Distinct ids in first-seen order; blanks and malformed ids are dropped"""
    seen = set()
    result = []
    for value in values:
        text = (value or "").strip()
        if not text:
            continue
        try:
            parsed = uuid.UUID(text)
        except ValueError:
            continue
        if parsed not in seen:
            seen.add(parsed)
            result.append(parsed)
    return result


class CatalogService:
    # ------------------------------------------------------------------
    # Canonical ingredients
    # ------------------------------------------------------------------

    @staticmethod
    def search_ingredients(db: Session, q: Optional[str] = None, limit: int = 50) -> List[CanonicalIngredient]:
        return CatalogRepository(db).search_ingredients((q or "").strip() or None, limit)

    @staticmethod
    def create_ingredient(db: Session, data: CanonicalIngredientCreate) -> CanonicalIngredient:
        name = data.name.strip()
        slug = slugify(name)
        if not slug:
            raise ServiceValidationError("Naam levert geen geldige slug op")

        repo = CatalogRepository(db)
        if repo.get_ingredient_by_slug(slug) is not None:
            raise ConflictError(
                "Er bestaat al een ingrediënt met deze naam", details={"slug": slug}
            )
        try:
            ingredient = repo.create(CanonicalIngredient(name=name, slug=slug))
        except IntegrityError:
            db.rollback()
            raise ConflictError(
                "Er bestaat al een ingrediënt met deze naam", details={"slug": slug}
            )
        except Exception:
            db.rollback()
            logger.exception("Error creating canonical ingredient %s", slug)
            raise
        logger.info("Created canonical ingredient %s (%s)", ingredient.id, slug)
        return ingredient

    # ------------------------------------------------------------------
    # Stores and store products
    # ------------------------------------------------------------------

    @staticmethod
    def list_stores(db: Session) -> List[Store]:
        return CatalogRepository(db).list_stores()

    @staticmethod
    def create_store(db: Session, data: StoreCreate) -> Store:
        name = data.name.strip()
        if not name:
            raise ServiceValidationError("Naam is verplicht")
        base_url = (data.base_url or "").strip() or None
        if base_url is not None and not is_https_url(base_url):
            raise ServiceValidationError("Base URL moet een geldige https-URL zijn")

        store = Store(name=name, base_url=base_url, is_active=True)
        try:
            db.add(store)
            db.commit()
            db.refresh(store)
        except Exception:
            db.rollback()
            logger.exception("Error creating store %s", name)
            raise
        logger.info("Created store %s (%s)", store.id, name)
        return store

    @staticmethod
    def search_store_products(
        db: Session, store_id: uuid.UUID, q: Optional[str] = None, limit: int = 50
    ) -> List[StoreProduct]:
        repo = CatalogRepository(db)
        if repo.get_store(store_id) is None:
            raise NotFoundError(f"Store {store_id} not found")
        return repo.search_store_products(store_id, (q or "").strip() or None, limit)

    # ------------------------------------------------------------------
    # Ingredient -> store product links (per user)
    # ------------------------------------------------------------------

    @staticmethod
    def get_link(
        db: Session, user_id: uuid.UUID, ingredient_id: str, store_id: str
    ) -> Optional[IngredientStoreProductLink]:
        return CatalogRepository(db).get_link(
            user_id,
            parse_id(store_id, "store_id"),
            parse_id(ingredient_id, "canonical_ingredient_id"),
        )

    @staticmethod
    def get_links_for_store(
        db: Session, user_id: uuid.UUID, store_id: str, ingredient_ids: List[str]
    ) -> List[IngredientStoreProductLink]:
        """The user's links at one store for many ingredients at once"""
        store = parse_id(store_id, "store_id")
        ids = unique_ids(ingredient_ids)
        if not ids:
            return []

        repo = CatalogRepository(db)
        links: List[IngredientStoreProductLink] = []
        for start in range(0, len(ids), LINKS_CHUNK_SIZE):
            links.extend(
                repo.get_links_for_ingredients(user_id, store, ids[start : start + LINKS_CHUNK_SIZE])
            )
        return links

    @staticmethod
    def upsert_link(
        db: Session, user_id: uuid.UUID, data: IngredientProductLinkUpsert
    ) -> IngredientStoreProductLink:
        ingredient_id = parse_id(data.canonical_ingredient_id, "canonical_ingredient_id")
        store_id = parse_id(data.store_id, "store_id")
        product_id = parse_id(data.store_product_id, "store_product_id")

        repo = CatalogRepository(db)
        product = repo.get_store_product(product_id)
        if product is None:
            raise NotFoundError(f"Store product {product_id} not found")
        if product.store_id != store_id:
            raise ServiceValidationError("Product hoort niet bij deze winkel")

        stmt = pg_insert(IngredientStoreProductLink).values(
            id=uuid.uuid4(),
            user_id=user_id,
            canonical_ingredient_id=ingredient_id,
            store_id=store_id,
            store_product_id=product_id,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "store_id", "canonical_ingredient_id"],
            set_={"store_product_id": stmt.excluded.store_product_id},
        )
        try:
            db.execute(stmt)
            db.commit()
        except IntegrityError as e:
            # FK violation: unknown ingredient or store
            db.rollback()
            raise ServiceValidationError(
                "Ingrediënt of winkel bestaat niet", details={"error": str(e.orig)}
            )
        except Exception:
            db.rollback()
            logger.exception("Error saving store product link for user %s", user_id)
            raise

        logger.info(
            "Linked ingredient %s to product %s at store %s for user %s",
            ingredient_id,
            product_id,
            store_id,
            user_id,
        )
        return repo.get_link(user_id, store_id, ingredient_id)

    @staticmethod
    def delete_link(db: Session, user_id: uuid.UUID, ingredient_id: str, store_id: str) -> bool:
        """Remove the user's link; False when there was nothing to remove"""
        repo = CatalogRepository(db)
        link = repo.get_link(
            user_id,
            parse_id(store_id, "store_id"),
            parse_id(ingredient_id, "canonical_ingredient_id"),
        )
        if link is None:
            return False
        try:
            db.delete(link)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Error deleting store product link %s", link.id)
            raise
        logger.info("Deleted store product link %s", link.id)
        return True
