"""Barcode lookup, product search and product source administration"""

from typing import List

import httpx
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.dependencies import get_current_user_id, get_db, get_http_client, require_admin
from api.responses import ERROR_RESPONSES, APIResponse, success_response
from domain.enums import ProductSource
from domain.schemas.product_schemas import (
    ProductLookupResult,
    ProductSearchResult,
    ProductSourceConfigResponse,
    ProductSourceConfigUpdate,
    SourceConnectionResult,
)
from services import ProductLookupService

router = APIRouter(
    prefix="/products",
    tags=["Products"],
    responses=ERROR_RESPONSES,
    dependencies=[Depends(get_current_user_id)],
)
admin_router = APIRouter(
    prefix="/admin/product-sources",
    tags=["Products", "Admin"],
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_admin)],
)


@router.get("/barcode/{barcode}", response_model=APIResponse[ProductLookupResult])
def lookup_barcode(
    barcode: str,
    db: Session = Depends(get_db),
    client: httpx.Client = Depends(get_http_client),
):
    """
    Look a barcode up in the enabled product sources.

    A miss is not an error: the payload has found=false with reason
    not_found, rate_limited or error.
    """
    result = ProductLookupService.lookup_by_barcode(db, client, barcode)
    return success_response(data=result)


@router.get("/search", response_model=APIResponse[ProductSearchResult])
def search_products(
    q: str = Query("", max_length=200),
    source: ProductSource = Query(ProductSource.OPEN_FOOD_FACTS),
    limit: int = Query(10, ge=1, le=30),
    db: Session = Depends(get_db),
    client: httpx.Client = Depends(get_http_client),
):
    result = ProductLookupService.search_products(db, client, q, source.value, limit)
    return success_response(data=result)


@admin_router.get("", response_model=APIResponse[List[ProductSourceConfigResponse]])
def list_product_sources(db: Session = Depends(get_db)):
    return success_response(data=ProductLookupService.list_source_config(db))


@admin_router.patch("/{source}", response_model=APIResponse[ProductSourceConfigResponse])
def update_product_source(
    source: ProductSource,
    changes: ProductSourceConfigUpdate,
    db: Session = Depends(get_db),
):
    row = ProductLookupService.update_source_config(db, source.value, changes)
    return success_response(data=row, message=f"Product source {source.value} updated")


@admin_router.post("/{source}/test", response_model=APIResponse[SourceConnectionResult])
def test_product_source(
    source: ProductSource,
    db: Session = Depends(get_db),
    client: httpx.Client = Depends(get_http_client),
):
    return success_response(
        data=ProductLookupService.test_source_connection(db, client, source.value)
    )
