"""Meal plan checks: variety scorecard and full validation"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.dependencies import get_current_user_id, get_db
from api.responses import ERROR_RESPONSES, APIResponse, success_response
from domain.schemas.generator_schemas import (
    PlanCheckRequest,
    PlanValidationResult,
    VarietyScorecard,
)
from services import GeneratorConfigService

router = APIRouter(
    prefix="/meal-plans",
    tags=["Meal plans"],
    responses=ERROR_RESPONSES,
    dependencies=[Depends(get_current_user_id)],
)


@router.post("/variety-scorecard", response_model=APIResponse[VarietyScorecard])
def variety_scorecard(payload: PlanCheckRequest, db: Session = Depends(get_db)):
    """Report-only: counts and target flags, never rejects the plan"""
    scorecard = GeneratorConfigService.variety_scorecard(db, payload.plan, payload.diet_key)
    return success_response(data=scorecard)


@router.post("/validate", response_model=APIResponse[PlanValidationResult])
def validate_plan(payload: PlanCheckRequest, db: Session = Depends(get_db)):
    """
    Enforce variety targets and culinary rules. A failing plan answers 400
    with MEAL_PLAN_VARIETY_TARGETS_NOT_MET or MEAL_PLAN_CULINARY_VIOLATION.
    """
    result = GeneratorConfigService.validate_plan(db, payload.plan, payload.diet_key)
    return success_response(data=result)
