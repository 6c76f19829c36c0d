from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from uuid import UUID


class CanonicalIngredientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class CanonicalIngredientResponse(BaseModel):
    id: UUID
    name: str
    slug: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class StoreCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    base_url: Optional[str] = Field(None, max_length=2000)


class StoreResponse(BaseModel):
    id: UUID
    name: str
    base_url: Optional[str] = None
    is_active: bool

    model_config = {"from_attributes": True}


class StoreProductResponse(BaseModel):
    id: UUID
    store_id: UUID
    external_key: str
    product_url: Optional[str] = None
    title: str
    brand: Optional[str] = None
    gtin: Optional[str] = None
    price_cents: Optional[int] = None
    category_path: Optional[str] = None
    is_active: bool

    model_config = {"from_attributes": True}


class IngredientProductLinkUpsert(BaseModel):
    """Ids are taken as strings so blanks can be rejected with a clear message"""

    canonical_ingredient_id: str
    store_id: str
    store_product_id: str


class LinksForStoreRequest(BaseModel):
    store_id: str
    canonical_ingredient_ids: List[str] = Field(default_factory=list)


class IngredientProductLinkResponse(BaseModel):
    id: UUID
    canonical_ingredient_id: UUID
    store_id: UUID
    store_product_id: UUID
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
