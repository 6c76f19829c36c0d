"""Meal plan generator configuration (admin)"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.dependencies import get_db, require_admin
from api.responses import ERROR_RESPONSES, APIResponse, success_response
from domain.schemas.generator_schemas import (
    ConfigRowSaved,
    GeneratorConfig,
    GeneratorSettingsUpsert,
    VarietyTargetsUpsert,
)
from services import GeneratorConfigService

router = APIRouter(
    prefix="/admin/meal-plan-generator",
    tags=["Meal plans", "Admin"],
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_admin)],
)


@router.get("/config", response_model=APIResponse[GeneratorConfig])
def get_generator_config(
    diet_key: Optional[str] = Query(None, max_length=100),
    db: Session = Depends(get_db),
):
    """Effective config for a diet key (falls back to the global rows)"""
    return success_response(data=GeneratorConfigService.load_generator_config(db, diet_key))


@router.put("/settings", response_model=APIResponse[ConfigRowSaved])
def upsert_generator_settings(
    payload: GeneratorSettingsUpsert, db: Session = Depends(get_db)
):
    row = GeneratorConfigService.upsert_settings(db, payload)
    return success_response(data=ConfigRowSaved.model_validate(row))


@router.put("/variety-targets", response_model=APIResponse[ConfigRowSaved])
def upsert_variety_targets(
    payload: VarietyTargetsUpsert, db: Session = Depends(get_db)
):
    row = GeneratorConfigService.upsert_variety_targets(db, payload)
    return success_response(data=ConfigRowSaved.model_validate(row))
