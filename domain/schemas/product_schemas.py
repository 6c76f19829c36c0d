"""
Schemas for external product lookup (barcode and text search) and the
product source configuration.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID

from domain.enums import LookupFailureReason, ProductSource


class ExternalProduct(BaseModel):
    """A product normalized from any source"""

    source: ProductSource
    barcode: Optional[str] = None
    name: str
    brand: str = ""
    nutriscore_grade: Optional[str] = Field(None, description="A-E or null")
    image_url: Optional[str] = None
    quantity: Optional[str] = None
    product_url: Optional[str] = None


class ProductLookupResult(BaseModel):
    found: bool
    product: Optional[ExternalProduct] = None
    reason: Optional[LookupFailureReason] = None
    message: Optional[str] = None

    @classmethod
    def hit(cls, product: ExternalProduct) -> "ProductLookupResult":
        return cls(found=True, product=product)

    @classmethod
    def miss(
        cls, reason: LookupFailureReason, message: Optional[str] = None
    ) -> "ProductLookupResult":
        return cls(found=False, reason=reason, message=message)


class ProductSearchResult(BaseModel):
    ok: bool
    products: List[ExternalProduct] = Field(default_factory=list)
    reason: Optional[LookupFailureReason] = None
    message: Optional[str] = None

    @classmethod
    def failed(
        cls, reason: LookupFailureReason, message: Optional[str] = None
    ) -> "ProductSearchResult":
        return cls(ok=False, reason=reason, message=message)


class ProductSourceConfigResponse(BaseModel):
    """Admin view of a source; credentials are never returned"""

    id: UUID
    source: ProductSource
    is_enabled: bool
    priority: int
    has_credentials: bool
    updated_at: Optional[datetime] = None


class ProductSourceConfigUpdate(BaseModel):
    is_enabled: Optional[bool] = None
    priority: Optional[int] = Field(None, ge=1)
    config_json: Optional[Dict[str, Any]] = None


class SourceConnectionResult(BaseModel):
    ok: bool
    message: Optional[str] = None
    error: Optional[str] = None
