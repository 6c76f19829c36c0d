"""Guardrails administration: ruleset views, evaluation and rule editing"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from api.dependencies import get_db, require_admin
from api.responses import ERROR_RESPONSES, APIResponse, success_response
from domain.schemas.guardrail_schemas import (
    CreatedRule,
    CreateRuleBody,
    EvaluateRequest,
    GroupPolicyView,
    GuardDecision,
    RuleRefRequest,
    RuleStatusRequest,
    RulesetView,
    SwapPrioritiesRequest,
    TextRulesSummary,
    UpdateRuleRequest,
)
from services import GuardrailsService

router = APIRouter(
    prefix="/admin/guardrails",
    tags=["Guardrails", "Admin"],
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_admin)],
)


@router.get("/diets/{diet_id}/ruleset", response_model=APIResponse[RulesetView])
def get_ruleset(diet_id: UUID, db: Session = Depends(get_db)):
    """Merged ruleset of a diet with version, hash and provenance"""
    return success_response(data=GuardrailsService.load_ruleset_view(db, diet_id))


@router.get(
    "/diets/{diet_id}/group-policies",
    response_model=APIResponse[List[GroupPolicyView]],
)
def get_group_policies(diet_id: UUID, db: Session = Depends(get_db)):
    return success_response(data=GuardrailsService.group_policies(db, diet_id))


@router.get("/diets/{diet_id}/text-rules", response_model=APIResponse[TextRulesSummary])
def get_text_rules(
    diet_id: UUID,
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return success_response(data=GuardrailsService.text_rules_summary(db, diet_id, limit))


@router.post("/diets/{diet_id}/evaluate", response_model=APIResponse[GuardDecision])
def evaluate_targets(
    diet_id: UUID, payload: EvaluateRequest, db: Session = Depends(get_db)
):
    """Run the diet's ruleset against recipe ingredients, steps and metadata"""
    return success_response(data=GuardrailsService.evaluate(db, diet_id, payload.targets))


@router.post(
    "/diets/{diet_id}/rules",
    response_model=APIResponse[CreatedRule],
    status_code=status.HTTP_201_CREATED,
)
def create_rule(diet_id: UUID, payload: CreateRuleBody, db: Session = Depends(get_db)):
    created = GuardrailsService.create_rule(db, diet_id, payload.rule)
    message = "Regel opnieuw geactiveerd" if created.reactivated else "Regel aangemaakt"
    return success_response(data=created, message=message)


@router.post("/rules/update", response_model=APIResponse[dict])
def update_rule(payload: UpdateRuleRequest, db: Session = Depends(get_db)):
    changed = GuardrailsService.update_rule(db, payload.ref, payload.changes)
    return success_response(data={"changed": changed})


@router.post("/rules/status", response_model=APIResponse[dict])
def set_rule_status(payload: RuleStatusRequest, db: Session = Depends(get_db)):
    """block deactivates the rule; pause keeps a constraint but stops applying it"""
    GuardrailsService.block_or_pause_rule(db, payload.ref, payload.action)
    return success_response(data={"rule_key": payload.ref.rule_key, "action": payload.action.value})


@router.post("/rules/delete", response_model=APIResponse[dict])
def delete_rule(payload: RuleRefRequest, db: Session = Depends(get_db)):
    GuardrailsService.delete_rule(db, payload.ref)
    return success_response(data={"rule_key": payload.ref.rule_key})


@router.post("/rules/swap-priorities", response_model=APIResponse[dict])
def swap_priorities(payload: SwapPrioritiesRequest, db: Session = Depends(get_db)):
    GuardrailsService.swap_priorities(db, payload.ref_a, payload.ref_b)
    return success_response(
        data={"swapped": [payload.ref_a.rule_key, payload.ref_b.rule_key]}
    )
