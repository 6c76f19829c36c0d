"""
Therapeutic protocol editor: targets, supplements, supplement rules, source
references and protocol cloning. All callers are admins.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import ConflictError, NotFoundError, ServiceValidationError
from domain.enums import TargetValueType
from domain.models import (
    TherapeuticProtocol,
    TherapeuticProtocolSupplement,
    TherapeuticProtocolTarget,
    TherapeuticSupplementRule,
)
from domain.schemas.therapeutic_schemas import (
    CloneProtocolRequest,
    ProtocolEditorResponse,
    ProtocolResponse,
    RuleContext,
    SnippetResponse,
    SourceRef,
    SupplementResponse,
    SupplementRuleFilterResult,
    SupplementRuleResponse,
    SupplementRuleUpsert,
    SupplementUpsert,
    TargetResponse,
    TargetUpsert,
)
from repositories import TherapeuticRepository
from services.when_json import decode_when_json_text, filter_supplement_rules, when_json_status

logger = logging.getLogger("nutricoach.therapeutic")

ADH_PERCENT_UNIT = "%_adh"


def _require_text(value: Optional[str], field: str, min_len: int, max_len: int) -> str:
    text = (value or "").strip()
    if len(text) < min_len:
        raise ServiceValidationError(f"{field} is verplicht (minimaal {min_len} tekens)")
    if len(text) > max_len:
        raise ServiceValidationError(f"{field} maximaal {max_len} tekens")
    return text


def _optional_text(value: Optional[str], field: str, max_len: int) -> Optional[str]:
    text = (value or "").strip()
    if not text:
        return None
    if len(text) > max_len:
        raise ServiceValidationError(f"{field} maximaal {max_len} tekens")
    return text


def rule_response(rule: TherapeuticSupplementRule) -> SupplementRuleResponse:
    response = SupplementRuleResponse.model_validate(rule)
    response.when_json_status = when_json_status(rule.when_json)
    return response


class TherapeuticService:
    @staticmethod
    def _get_protocol(repo: TherapeuticRepository, protocol_id: uuid.UUID) -> TherapeuticProtocol:
        protocol = repo.get_by_id(protocol_id)
        if protocol is None:
            raise NotFoundError(f"Protocol {protocol_id} not found")
        return protocol

    @staticmethod
    def _save(db: Session, entity, what: str, conflict_message: str):
        try:
            db.add(entity)
            db.commit()
            db.refresh(entity)
        except IntegrityError:
            db.rollback()
            raise ConflictError(conflict_message)
        except Exception:
            db.rollback()
            logger.exception("Error saving %s", what)
            raise
        return entity

    @staticmethod
    def _delete(db: Session, entity, what: str):
        try:
            db.delete(entity)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Error deleting %s", what)
            raise

    # ------------------------------------------------------------------
    # Editor
    # ------------------------------------------------------------------

    @staticmethod
    def get_editor(db: Session, protocol_id: uuid.UUID) -> Optional[ProtocolEditorResponse]:
        """Everything the protocol editor shows; None when the protocol does not exist"""
        repo = TherapeuticRepository(db)
        protocol = repo.get_by_id(protocol_id)
        if protocol is None:
            return None
        return ProtocolEditorResponse(
            protocol=ProtocolResponse.model_validate(protocol),
            targets=[TargetResponse.model_validate(t) for t in repo.list_targets(protocol_id)],
            supplements=[
                SupplementResponse.model_validate(s) for s in repo.list_supplements(protocol_id)
            ],
            rules=[rule_response(r) for r in repo.list_rules(protocol_id)],
            snippets=[SnippetResponse.model_validate(s) for s in repo.list_snippets()],
        )

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------

    @staticmethod
    def upsert_target(
        db: Session, protocol_id: uuid.UUID, data: TargetUpsert
    ) -> TherapeuticProtocolTarget:
        """
        Create or update a target. The unit follows the value type:
        adh_percent always uses '%_adh', count has no unit.
        """
        repo = TherapeuticRepository(db)
        TherapeuticService._get_protocol(repo, protocol_id)

        key = _require_text(data.target_key, "target_key", 1, 200)
        if data.value_type == TargetValueType.ADH_PERCENT:
            unit = ADH_PERCENT_UNIT
        elif data.value_type == TargetValueType.COUNT:
            unit = None
        else:
            unit = _optional_text(data.unit, "unit", 50)

        if data.id is not None:
            target = repo.get_target(data.id)
            if target is None or target.protocol_id != protocol_id:
                raise NotFoundError(f"Target {data.id} not found")
        else:
            target = TherapeuticProtocolTarget(protocol_id=protocol_id)

        target.period = data.period.value
        target.target_kind = data.target_kind.value
        target.target_key = key
        target.value_num = data.value_num
        target.unit = unit
        target.value_type = data.value_type.value

        target = TherapeuticService._save(
            db,
            target,
            f"target {key}",
            "Er bestaat al een doel met deze periode, soort en sleutel",
        )
        logger.info("Saved target %s (%s) for protocol %s", target.id, key, protocol_id)
        return target

    @staticmethod
    def delete_target(db: Session, target_id: uuid.UUID) -> bool:
        repo = TherapeuticRepository(db)
        target = repo.get_target(target_id)
        if target is None:
            raise NotFoundError(f"Target {target_id} not found")
        TherapeuticService._delete(db, target, f"target {target_id}")
        return True

    # ------------------------------------------------------------------
    # Supplements
    # ------------------------------------------------------------------

    @staticmethod
    def upsert_supplement(
        db: Session, protocol_id: uuid.UUID, data: SupplementUpsert
    ) -> TherapeuticProtocolSupplement:
        repo = TherapeuticRepository(db)
        TherapeuticService._get_protocol(repo, protocol_id)

        if data.id is not None:
            supplement = repo.get_supplement(data.id)
            if supplement is None or supplement.protocol_id != protocol_id:
                raise NotFoundError(f"Supplement {data.id} not found")
        else:
            supplement = TherapeuticProtocolSupplement(protocol_id=protocol_id)

        supplement.supplement_key = _require_text(data.supplement_key, "supplement_key", 1, 200)
        supplement.label_nl = _require_text(data.label_nl, "label_nl", 1, 500)
        supplement.dosage_text = _optional_text(data.dosage_text, "dosage_text", 500)
        supplement.notes_nl = _optional_text(data.notes_nl, "notes_nl", 1000)
        supplement.is_active = data.is_active

        supplement = TherapeuticService._save(
            db,
            supplement,
            f"supplement {supplement.supplement_key}",
            "Supplement key bestaat al binnen dit protocol.",
        )
        logger.info("Saved supplement %s for protocol %s", supplement.supplement_key, protocol_id)
        return supplement

    @staticmethod
    def toggle_supplement(
        db: Session, supplement_id: uuid.UUID, is_active: bool
    ) -> TherapeuticProtocolSupplement:
        repo = TherapeuticRepository(db)
        supplement = repo.get_supplement(supplement_id)
        if supplement is None:
            raise NotFoundError(f"Supplement {supplement_id} not found")
        supplement.is_active = is_active
        return TherapeuticService._save(
            db, supplement, f"supplement {supplement_id}", "Supplement kon niet worden bijgewerkt"
        )

    @staticmethod
    def delete_supplement(db: Session, supplement_id: uuid.UUID) -> bool:
        repo = TherapeuticRepository(db)
        supplement = repo.get_supplement(supplement_id)
        if supplement is None:
            raise NotFoundError(f"Supplement {supplement_id} not found")
        TherapeuticService._delete(db, supplement, f"supplement {supplement_id}")
        return True

    # ------------------------------------------------------------------
    # Protocol level
    # ------------------------------------------------------------------

    @staticmethod
    def clone_protocol(
        db: Session, source_id: uuid.UUID, data: CloneProtocolRequest
    ) -> TherapeuticProtocol:
        """Copy a protocol with its targets and supplements under a new key (one transaction)"""
        repo = TherapeuticRepository(db)
        source = TherapeuticService._get_protocol(repo, source_id)

        key = data.protocol_key.strip()
        name = data.name_nl.strip()
        if len(key) < 2 or len(name) < 2:
            raise ServiceValidationError("protocol_key en name_nl zijn minimaal 2 tekens")
        if repo.get_by_key(key) is not None:
            raise ConflictError("Protocol key already exists", details={"protocol_key": key})

        clone = TherapeuticProtocol(
            protocol_key=key,
            name_nl=name,
            description_nl=source.description_nl,
            version=source.version,
            is_active=data.is_active,
            source_refs=list(source.source_refs or []),
        )
        try:
            db.add(clone)
            db.flush()
            for t in repo.list_targets(source_id):
                db.add(
                    TherapeuticProtocolTarget(
                        protocol_id=clone.id,
                        period=t.period,
                        target_kind=t.target_kind,
                        target_key=t.target_key,
                        value_num=t.value_num,
                        unit=t.unit,
                        value_type=t.value_type,
                    )
                )
            for s in repo.list_supplements(source_id):
                db.add(
                    TherapeuticProtocolSupplement(
                        protocol_id=clone.id,
                        supplement_key=s.supplement_key,
                        label_nl=s.label_nl,
                        dosage_text=s.dosage_text,
                        notes_nl=s.notes_nl,
                        is_active=s.is_active,
                    )
                )
            db.commit()
            db.refresh(clone)
        except IntegrityError:
            db.rollback()
            raise ConflictError("Protocol key already exists", details={"protocol_key": key})
        except Exception:
            db.rollback()
            logger.exception("Error cloning protocol %s", source_id)
            raise

        logger.info("Cloned protocol %s into %s (%s)", source_id, clone.id, key)
        return clone

    @staticmethod
    def update_source_refs(
        db: Session, protocol_id: uuid.UUID, refs: List[SourceRef]
    ) -> TherapeuticProtocol:
        repo = TherapeuticRepository(db)
        protocol = TherapeuticService._get_protocol(repo, protocol_id)
        payload = []
        for ref in refs:
            item = {"title": _require_text(ref.title, "title", 1, 300)}
            url = (ref.url or "").strip()
            if url:
                item["url"] = url
            payload.append(item)
        protocol.source_refs = payload
        return TherapeuticService._save(
            db, protocol, f"source refs of {protocol_id}", "Bronnen konden niet worden opgeslagen"
        )

    # ------------------------------------------------------------------
    # Supplement rules
    # ------------------------------------------------------------------

    @staticmethod
    def upsert_supplement_rule(
        db: Session, protocol_id: uuid.UUID, data: SupplementRuleUpsert
    ) -> SupplementRuleResponse:
        """
        Create or update a supplement rule. when_json arrives as text: empty
        means "always applies", text that is not JSON is rejected. JSON that
        does not match the condition DSL is stored and reported as invalid.
        """
        repo = TherapeuticRepository(db)
        TherapeuticService._get_protocol(repo, protocol_id)

        try:
            when_json = decode_when_json_text(data.when_json)
        except ValueError:
            raise ServiceValidationError("when_json is geen geldige JSON.")

        if data.id is not None:
            rule = repo.get_rule(data.id)
            if rule is None or rule.protocol_id != protocol_id:
                raise NotFoundError(f"Supplement rule {data.id} not found")
        else:
            rule = TherapeuticSupplementRule(protocol_id=protocol_id)

        rule.supplement_key = _require_text(data.supplement_key, "supplement_key", 2, 200)
        rule.rule_key = _require_text(data.rule_key, "rule_key", 2, 200)
        rule.kind = data.kind.value
        rule.severity = data.severity.value
        rule.when_json = when_json
        rule.message_nl = _require_text(data.message_nl, "message_nl", 5, 400)
        rule.is_active = data.is_active

        rule = TherapeuticService._save(
            db,
            rule,
            f"supplement rule {rule.rule_key}",
            "Rule key bestaat al voor dit supplement binnen dit protocol.",
        )
        logger.info("Saved supplement rule %s/%s", rule.supplement_key, rule.rule_key)
        return rule_response(rule)

    @staticmethod
    def toggle_supplement_rule(
        db: Session, rule_id: uuid.UUID, is_active: bool
    ) -> SupplementRuleResponse:
        repo = TherapeuticRepository(db)
        rule = repo.get_rule(rule_id)
        if rule is None:
            raise NotFoundError(f"Supplement rule {rule_id} not found")
        rule.is_active = is_active
        rule = TherapeuticService._save(
            db, rule, f"supplement rule {rule_id}", "Regel kon niet worden bijgewerkt"
        )
        return rule_response(rule)

    @staticmethod
    def delete_supplement_rule(db: Session, rule_id: uuid.UUID) -> bool:
        repo = TherapeuticRepository(db)
        rule = repo.get_rule(rule_id)
        if rule is None:
            raise NotFoundError(f"Supplement rule {rule_id} not found")
        TherapeuticService._delete(db, rule, f"supplement rule {rule_id}")
        return True

    @staticmethod
    def evaluate_rules(
        db: Session, protocol_id: uuid.UUID, context: RuleContext
    ) -> SupplementRuleFilterResult:
        """Which active supplement rules of a protocol apply to this context"""
        repo = TherapeuticRepository(db)
        protocol = TherapeuticService._get_protocol(repo, protocol_id)
        if context.protocol_key is None:
            context = context.model_copy(update={"protocol_key": protocol.protocol_key})
        return filter_supplement_rules(repo.list_rules(protocol_id, active_only=True), context)
