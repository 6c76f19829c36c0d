"""Household avoid rules (allergens, dislikes, warnings) for the caller's household"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from api.dependencies import get_current_user_id, get_db
from api.responses import ERROR_RESPONSES, APIResponse, success_response
from domain.schemas.household_schemas import (
    HouseholdAvoidRuleCreate,
    HouseholdAvoidRuleResponse,
)
from services import HouseholdRuleService

router = APIRouter(
    prefix="/household/avoid-rules", tags=["Household"], responses=ERROR_RESPONSES
)


@router.get("", response_model=APIResponse[List[HouseholdAvoidRuleResponse]])
def list_avoid_rules(
    user_id: UUID = Depends(get_current_user_id), db: Session = Depends(get_db)
):
    rules = HouseholdRuleService.list_rules(db, user_id)
    return success_response(
        data=[HouseholdAvoidRuleResponse.model_validate(r) for r in rules]
    )


@router.post(
    "",
    response_model=APIResponse[HouseholdAvoidRuleResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_avoid_rule(
    payload: HouseholdAvoidRuleCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    rule = HouseholdRuleService.create_rule(db, user_id, payload)
    return success_response(data=HouseholdAvoidRuleResponse.model_validate(rule))


@router.delete("/{rule_id}", response_model=APIResponse[dict])
def delete_avoid_rule(
    rule_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    HouseholdRuleService.delete_rule(db, user_id, rule_id)
    return success_response(data={"removed": str(rule_id)})
