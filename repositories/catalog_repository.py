"""
Catalog Repository - canonical ingredients, stores, store products and the
per-user ingredient -> store product links
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import and_

from repositories.base import BaseRepository
from domain.models import (
    CanonicalIngredient,
    Store,
    StoreProduct,
    IngredientStoreProductLink,
)


class CatalogRepository(BaseRepository[CanonicalIngredient]):
    def __init__(self, db: Session):
        super().__init__(db, CanonicalIngredient)

    # -- canonical ingredients --------------------------------------------

    def search_ingredients(
        self, name_query: Optional[str], limit: int = 50
    ) -> List[CanonicalIngredient]:
        query = self.db.query(CanonicalIngredient)
        if name_query:
            query = query.filter(CanonicalIngredient.name.ilike(f"%{name_query}%"))
        return query.order_by(CanonicalIngredient.name).limit(limit).all()

    def get_ingredient_by_slug(self, slug: str) -> Optional[CanonicalIngredient]:
        return (
            self.db.query(CanonicalIngredient)
            .filter(CanonicalIngredient.slug == slug)
            .first()
        )

    # -- stores ------------------------------------------------------------

    def list_stores(self) -> List[Store]:
        return self.db.query(Store).order_by(Store.name).all()

    def get_store(self, store_id: UUID) -> Optional[Store]:
        return self.db.query(Store).filter(Store.id == store_id).first()

    def search_store_products(
        self, store_id: UUID, title_query: Optional[str], limit: int = 50
    ) -> List[StoreProduct]:
        query = self.db.query(StoreProduct).filter(
            StoreProduct.store_id == store_id, StoreProduct.is_active.is_(True)
        )
        if title_query:
            query = query.filter(StoreProduct.title.ilike(f"%{title_query}%"))
        return query.order_by(StoreProduct.title).limit(limit).all()

    def get_store_product(self, product_id: UUID) -> Optional[StoreProduct]:
        return self.db.query(StoreProduct).filter(StoreProduct.id == product_id).first()

    # -- links -------------------------------------------------------------

    def get_link(
        self, user_id: UUID, store_id: UUID, ingredient_id: UUID
    ) -> Optional[IngredientStoreProductLink]:
        return (
            self.db.query(IngredientStoreProductLink)
            .filter(
                and_(
                    IngredientStoreProductLink.user_id == user_id,
                    IngredientStoreProductLink.store_id == store_id,
                    IngredientStoreProductLink.canonical_ingredient_id
                    == ingredient_id,
                )
            )
            .first()
        )

    def get_links_for_ingredients(
        self, user_id: UUID, store_id: UUID, ingredient_ids: List[UUID]
    ) -> List[IngredientStoreProductLink]:
        return (
            self.db.query(IngredientStoreProductLink)
            .filter(
                and_(
                    IngredientStoreProductLink.user_id == user_id,
                    IngredientStoreProductLink.store_id == store_id,
                    IngredientStoreProductLink.canonical_ingredient_id.in_(
                        ingredient_ids
                    ),
                )
            )
            .all()
        )
