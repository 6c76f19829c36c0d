"""Pantry routes; every operation is scoped to the authenticated user"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.dependencies import get_current_user_id, get_db
from api.responses import ERROR_RESPONSES, APIResponse, success_response
from domain.schemas.pantry_schemas import (
    PantryAvailabilityRequest,
    PantryBulkUpsertRequest,
    PantryBulkUpsertResponse,
    PantryItemResponse,
    PantryItemUpsert,
)
from services import PantryService

router = APIRouter(prefix="/pantry", tags=["Pantry"], responses=ERROR_RESPONSES)


@router.get("", response_model=APIResponse[List[PantryItemResponse]])
def list_pantry(
    user_id: UUID = Depends(get_current_user_id), db: Session = Depends(get_db)
):
    """All pantry rows of the caller, ordered by NEVO code"""
    items = PantryService.list_items(db, user_id)
    return success_response(data=[PantryItemResponse.model_validate(i) for i in items])


@router.post("/availability", response_model=APIResponse[List[PantryItemResponse]])
def load_availability(
    payload: PantryAvailabilityRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Pantry rows for a set of NEVO codes (used when rendering recipes and plans)"""
    items = PantryService.load_availability(db, user_id, payload.nevo_codes)
    return success_response(data=[PantryItemResponse.model_validate(i) for i in items])


@router.put("", response_model=APIResponse[PantryItemResponse])
def upsert_pantry_item(
    item: PantryItemUpsert,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    row = PantryService.upsert_item(db, user_id, item)
    return success_response(data=PantryItemResponse.model_validate(row))


@router.post("/bulk", response_model=APIResponse[PantryBulkUpsertResponse])
def bulk_upsert_pantry(
    payload: PantryBulkUpsertRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    result = PantryService.bulk_upsert(db, user_id, payload.items)
    return success_response(
        data=result, message=f"{result.written} pantry items saved"
    )


@router.delete("/items/{nevo_code}", response_model=APIResponse[dict])
def delete_pantry_item(
    nevo_code: str,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    PantryService.delete_item(db, user_id, nevo_code)
    return success_response(data={"removed": nevo_code.strip()})


@router.delete("", response_model=APIResponse[dict])
def clear_pantry(
    user_id: UUID = Depends(get_current_user_id), db: Session = Depends(get_db)
):
    removed = PantryService.delete_all(db, user_id)
    return success_response(data={"removed": removed})
