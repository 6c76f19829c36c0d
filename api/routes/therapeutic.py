"""Therapeutic protocol editor (admin)"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from api.dependencies import get_db, require_admin
from api.responses import ERROR_RESPONSES, APIResponse, success_response
from domain.schemas.therapeutic_schemas import (
    CloneProtocolRequest,
    EvaluateRulesRequest,
    ProtocolEditorResponse,
    ProtocolResponse,
    SourceRefsUpdate,
    SupplementResponse,
    SupplementRuleFilterResult,
    SupplementRuleResponse,
    SupplementRuleUpsert,
    SupplementUpsert,
    TargetResponse,
    TargetUpsert,
    ToggleRequest,
)
from services import TherapeuticService

router = APIRouter(
    prefix="/admin/therapeutic-protocols",
    tags=["Therapeutic protocols", "Admin"],
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_admin)],
)


@router.get(
    "/{protocol_id}/editor",
    response_model=APIResponse[Optional[ProtocolEditorResponse]],
)
def get_editor(protocol_id: UUID, db: Session = Depends(get_db)):
    """Protocol with targets, supplements, rules and snippets; data is null for an unknown id"""
    return success_response(data=TherapeuticService.get_editor(db, protocol_id))


@router.post(
    "/{protocol_id}/clone",
    response_model=APIResponse[ProtocolResponse],
    status_code=status.HTTP_201_CREATED,
)
def clone_protocol(
    protocol_id: UUID, payload: CloneProtocolRequest, db: Session = Depends(get_db)
):
    clone = TherapeuticService.clone_protocol(db, protocol_id, payload)
    return success_response(data=ProtocolResponse.model_validate(clone))


@router.put("/{protocol_id}/source-refs", response_model=APIResponse[ProtocolResponse])
def update_source_refs(
    protocol_id: UUID, payload: SourceRefsUpdate, db: Session = Depends(get_db)
):
    protocol = TherapeuticService.update_source_refs(db, protocol_id, payload.refs)
    return success_response(data=ProtocolResponse.model_validate(protocol))


# -- targets -----------------------------------------------------------------


@router.put("/{protocol_id}/targets", response_model=APIResponse[TargetResponse])
def upsert_target(protocol_id: UUID, payload: TargetUpsert, db: Session = Depends(get_db)):
    target = TherapeuticService.upsert_target(db, protocol_id, payload)
    return success_response(data=TargetResponse.model_validate(target))


@router.delete("/targets/{target_id}", response_model=APIResponse[dict])
def delete_target(target_id: UUID, db: Session = Depends(get_db)):
    TherapeuticService.delete_target(db, target_id)
    return success_response(data={"removed": str(target_id)})


# -- supplements -------------------------------------------------------------


@router.put("/{protocol_id}/supplements", response_model=APIResponse[SupplementResponse])
def upsert_supplement(
    protocol_id: UUID, payload: SupplementUpsert, db: Session = Depends(get_db)
):
    supplement = TherapeuticService.upsert_supplement(db, protocol_id, payload)
    return success_response(data=SupplementResponse.model_validate(supplement))


@router.patch(
    "/supplements/{supplement_id}/active",
    response_model=APIResponse[SupplementResponse],
)
def toggle_supplement(
    supplement_id: UUID, payload: ToggleRequest, db: Session = Depends(get_db)
):
    supplement = TherapeuticService.toggle_supplement(db, supplement_id, payload.is_active)
    return success_response(data=SupplementResponse.model_validate(supplement))


@router.delete("/supplements/{supplement_id}", response_model=APIResponse[dict])
def delete_supplement(supplement_id: UUID, db: Session = Depends(get_db)):
    TherapeuticService.delete_supplement(db, supplement_id)
    return success_response(data={"removed": str(supplement_id)})


# -- supplement rules --------------------------------------------------------


@router.put("/{protocol_id}/rules", response_model=APIResponse[SupplementRuleResponse])
def upsert_supplement_rule(
    protocol_id: UUID, payload: SupplementRuleUpsert, db: Session = Depends(get_db)
):
    return success_response(
        data=TherapeuticService.upsert_supplement_rule(db, protocol_id, payload)
    )


@router.patch("/rules/{rule_id}/active", response_model=APIResponse[SupplementRuleResponse])
def toggle_supplement_rule(
    rule_id: UUID, payload: ToggleRequest, db: Session = Depends(get_db)
):
    return success_response(
        data=TherapeuticService.toggle_supplement_rule(db, rule_id, payload.is_active)
    )


@router.delete("/rules/{rule_id}", response_model=APIResponse[dict])
def delete_supplement_rule(rule_id: UUID, db: Session = Depends(get_db)):
    TherapeuticService.delete_supplement_rule(db, rule_id)
    return success_response(data={"removed": str(rule_id)})


@router.post(
    "/{protocol_id}/rules/evaluate",
    response_model=APIResponse[SupplementRuleFilterResult],
)
def evaluate_supplement_rules(
    protocol_id: UUID, payload: EvaluateRulesRequest, db: Session = Depends(get_db)
):
    """Which active supplement rules apply to a user context (preview for the editor)"""
    return success_response(
        data=TherapeuticService.evaluate_rules(db, protocol_id, payload.context)
    )
