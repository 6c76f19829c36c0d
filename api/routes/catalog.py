"""Canonical ingredients, stores and the user's ingredient -> store product links"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from api.dependencies import get_current_user_id, get_db, require_admin
from api.responses import ERROR_RESPONSES, APIResponse, success_response
from domain.schemas.catalog_schemas import (
    CanonicalIngredientCreate,
    CanonicalIngredientResponse,
    IngredientProductLinkResponse,
    IngredientProductLinkUpsert,
    LinksForStoreRequest,
    StoreCreate,
    StoreProductResponse,
    StoreResponse,
)
from services import CatalogService

admin_router = APIRouter(
    prefix="/admin/catalog",
    tags=["Catalog", "Admin"],
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_admin)],
)
router = APIRouter(
    prefix="/store-product-links", tags=["Catalog"], responses=ERROR_RESPONSES
)


# -- admin -------------------------------------------------------------------


@admin_router.get(
    "/ingredients", response_model=APIResponse[List[CanonicalIngredientResponse]]
)
def search_ingredients(
    q: Optional[str] = Query(None, max_length=200),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    rows = CatalogService.search_ingredients(db, q, limit)
    return success_response(
        data=[CanonicalIngredientResponse.model_validate(r) for r in rows]
    )


@admin_router.post(
    "/ingredients",
    response_model=APIResponse[CanonicalIngredientResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_ingredient(payload: CanonicalIngredientCreate, db: Session = Depends(get_db)):
    row = CatalogService.create_ingredient(db, payload)
    return success_response(data=CanonicalIngredientResponse.model_validate(row))


@admin_router.get("/stores", response_model=APIResponse[List[StoreResponse]])
def list_stores(db: Session = Depends(get_db)):
    return success_response(
        data=[StoreResponse.model_validate(s) for s in CatalogService.list_stores(db)]
    )


@admin_router.post(
    "/stores",
    response_model=APIResponse[StoreResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_store(payload: StoreCreate, db: Session = Depends(get_db)):
    store = CatalogService.create_store(db, payload)
    return success_response(data=StoreResponse.model_validate(store))


@admin_router.get(
    "/stores/{store_id}/products",
    response_model=APIResponse[List[StoreProductResponse]],
)
def search_store_products(
    store_id: UUID,
    q: Optional[str] = Query(None, max_length=200),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    rows = CatalogService.search_store_products(db, store_id, q, limit)
    return success_response(data=[StoreProductResponse.model_validate(r) for r in rows])


# -- links (per user) ----------------------------------------------------------


@router.get("", response_model=APIResponse[Optional[IngredientProductLinkResponse]])
def get_link(
    canonical_ingredient_id: str = Query(...),
    store_id: str = Query(...),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    link = CatalogService.get_link(db, user_id, canonical_ingredient_id, store_id)
    return success_response(
        data=IngredientProductLinkResponse.model_validate(link) if link else None
    )


@router.post("/query", response_model=APIResponse[List[IngredientProductLinkResponse]])
def get_links_for_store(
    payload: LinksForStoreRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    links = CatalogService.get_links_for_store(
        db, user_id, payload.store_id, payload.canonical_ingredient_ids
    )
    return success_response(
        data=[IngredientProductLinkResponse.model_validate(link) for link in links]
    )


@router.put("", response_model=APIResponse[IngredientProductLinkResponse])
def upsert_link(
    payload: IngredientProductLinkUpsert,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    link = CatalogService.upsert_link(db, user_id, payload)
    return success_response(data=IngredientProductLinkResponse.model_validate(link))


@router.delete("", response_model=APIResponse[dict])
def delete_link(
    canonical_ingredient_id: str = Query(...),
    store_id: str = Query(...),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    removed = CatalogService.delete_link(db, user_id, canonical_ingredient_id, store_id)
    return success_response(data={"removed": removed})
