from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from decimal import Decimal


class PantryItemUpsert(BaseModel):
    """Schema for inserting or updating one pantry row"""

    nevo_code: str = Field(..., description="NEVO food code")
    available_g: Optional[Decimal] = Field(
        None, ge=0, description="Grams available; omit when unknown"
    )
    is_available: bool = Field(default=True)

    @field_validator("nevo_code")
    @classmethod
    def validate_nevo_code(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("nevo_code must not be empty")
        return v


class PantryBulkUpsertRequest(BaseModel):
    items: List[PantryItemUpsert] = Field(default_factory=list)


class PantryAvailabilityRequest(BaseModel):
    nevo_codes: List[str] = Field(default_factory=list)


class PantryItemResponse(BaseModel):
    id: UUID
    nevo_code: str
    available_g: Optional[Decimal]
    is_available: bool
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PantryBulkUpsertResponse(BaseModel):
    written: int
    batches: int
