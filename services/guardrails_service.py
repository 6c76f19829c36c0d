"""
Guardrails admin service: loads diet rule rows, exposes ruleset / policy views
and edits constraints and recipe adaptation rules by RuleRef.
"""

import logging
import uuid
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import ConflictError, NotFoundError, ServiceValidationError
from domain.enums import CategoryType, DietLogic, RuleAction, RuleStatusAction, Strictness
from domain.models import DietCategoryConstraint, RecipeAdaptationRule
from domain.schemas.guardrail_schemas import (
    ConstraintRef,
    CreateConstraintRequest,
    CreatedRule,
    CreateRecipeRuleRequest,
    EvaluationTargets,
    GroupPolicyView,
    GuardDecision,
    GuardrailsRuleset,
    RecipeRuleRef,
    RuleChanges,
    RulesetView,
    RuleView,
    TextRulesSummary,
    TextRuleView,
)
from repositories import GuardrailRepository
from services import guardrails_evaluator, guardrails_ruleset

logger = logging.getLogger("nutricoach.guardrails")

MIN_RULE_PRIORITY = 1
MAX_RULE_PRIORITY = 65500
SWAP_DEFAULT_PRIORITY = 50
GROUP_POLICY_DEFAULT_PRIORITY = 100

EditableRow = Union[DietCategoryConstraint, RecipeAdaptationRule]


def _valid_diet_logic(value: Optional[str]) -> Optional[DietLogic]:
    try:
        return DietLogic(value) if value else None
    except ValueError:
        return None


def diet_logic_to_action(logic: DietLogic) -> RuleAction:
    """drop / limit block; force / pass allow"""
    if logic in (DietLogic.DROP, DietLogic.LIMIT):
        return RuleAction.BLOCK
    return RuleAction.ALLOW


class GuardrailsService:
    # ------------------------------------------------------------------
    # Loading and views
    # ------------------------------------------------------------------

    @staticmethod
    def load_ruleset(db: Session, diet_id: uuid.UUID) -> GuardrailsRuleset:
        """Assemble the ruleset for a diet; DB failures degrade to the fallback ruleset"""
        repo = GuardrailRepository(db)
        try:
            constraints = repo.load_constraints(diet_id)
            recipe_rules = repo.load_recipe_rules(diet_id)
            heuristics = repo.load_heuristics(diet_id)
        except SQLAlchemyError as e:
            logger.exception("Error loading guardrail rules for diet %s", diet_id)
            ruleset = guardrails_ruleset.fallback_ruleset(diet_id)
            ruleset.provenance.errors.append(f"Failed to load rules: {e}")
            return ruleset
        return guardrails_ruleset.build_ruleset(diet_id, constraints, recipe_rules, heuristics)

    @staticmethod
    def load_ruleset_view(db: Session, diet_id: uuid.UUID) -> RulesetView:
        ruleset = GuardrailsService.load_ruleset(db, diet_id)
        rules = guardrails_ruleset.sort_for_display(ruleset.rules)
        return RulesetView(
            diet_id=diet_id,
            version=ruleset.version,
            content_hash=ruleset.content_hash,
            source=ruleset.provenance.source,
            sources=[s.ref for s in ruleset.provenance.sources],
            counts_by_kind=guardrails_ruleset.counts_by_kind(ruleset.rules),
            errors=ruleset.provenance.errors,
            rules=[
                RuleView(
                    ref=rule.ref,
                    rule_key=rule.rule_key,
                    action=rule.action,
                    strictness=rule.strictness,
                    priority=rule.priority,
                    # constraints are edited per category, not per item
                    target="category" if isinstance(rule.ref, ConstraintRef) else rule.target.value,
                    term=rule.match.term,
                    synonyms=rule.match.synonyms,
                    rule_code=rule.metadata.rule_code,
                    label=rule.metadata.label,
                    category=rule.metadata.category,
                )
                for rule in rules
            ],
        )

    @staticmethod
    def group_policies(db: Session, diet_id: uuid.UUID) -> List[GroupPolicyView]:
        """One policy per active constraint, priority ASC (1 = highest) then category name"""
        repo = GuardrailRepository(db)
        policies = []
        for c in repo.load_constraints(diet_id):
            if c.is_active is False or c.category is None:
                continue
            category = c.category
            required = category.category_type == CategoryType.REQUIRED.value
            action = c.rule_action or (RuleAction.ALLOW.value if required else RuleAction.BLOCK.value)
            diet_logic = _valid_diet_logic(c.diet_logic) or (
                DietLogic.FORCE if required else DietLogic.DROP
            )
            priority = c.rule_priority
            if priority is None:
                priority = c.priority if c.priority is not None else GROUP_POLICY_DEFAULT_PRIORITY
            policies.append(
                GroupPolicyView(
                    constraint_id=c.id,
                    category_id=c.category_id,
                    category_code=category.code or "unknown",
                    category_name=category.name_nl or "Onbekende categorie",
                    category_type=category.category_type,
                    item_count=sum(1 for i in category.items if i.is_active is not False),
                    priority=priority,
                    action=action,
                    diet_logic=diet_logic,
                    strictness=c.strictness or Strictness.HARD.value,
                    is_paused=c.is_paused is True,
                    min_per_day=c.min_per_day,
                    min_per_week=c.min_per_week,
                    max_per_day=c.max_per_day,
                    max_per_week=c.max_per_week,
                    ai_instruction=c.ai_instruction,
                )
            )
        policies.sort(key=lambda p: (p.priority, p.category_name.lower()))
        return policies

    @staticmethod
    def text_rules_summary(db: Session, diet_id: uuid.UUID, limit: int = 20) -> TextRulesSummary:
        repo = GuardrailRepository(db)
        return TextRulesSummary(
            total_count=repo.count_active_recipe_rules(diet_id),
            rules=[
                TextRuleView.model_validate(r)
                for r in repo.top_active_recipe_rules(diet_id, limit)
            ],
        )

    @staticmethod
    def evaluate(
        db: Session, diet_id: uuid.UUID, targets: EvaluationTargets
    ) -> GuardDecision:
        ruleset = GuardrailsService.load_ruleset(db, diet_id)
        return guardrails_evaluator.evaluate(ruleset, targets)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @staticmethod
    def _get_row(repo: GuardrailRepository, ref) -> EditableRow:
        if isinstance(ref, ConstraintRef):
            row = repo.get_constraint(ref.id)
        elif isinstance(ref, RecipeRuleRef):
            row = repo.get_recipe_rule(ref.id)
        else:
            raise ServiceValidationError(
                "Onbekend regel type, kan niet worden bijgewerkt",
                details={"kind": ref.kind},
            )
        if row is None:
            raise NotFoundError(f"Rule {ref.rule_key} not found")
        return row

    @staticmethod
    def _commit(db: Session, what: str, conflict_message: Optional[str] = None):
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if conflict_message is None:
                logger.exception("Error committing guardrail change: %s", what)
                raise
            raise ConflictError(conflict_message)
        except Exception:
            db.rollback()
            logger.exception("Error committing guardrail change: %s", what)
            raise

    @staticmethod
    def update_rule(db: Session, ref, changes: RuleChanges) -> bool:
        """
        Apply the fields that make sense for the row kind.

        Returns:
            False when nothing applicable was sent (no write), True otherwise
        """
        repo = GuardrailRepository(db)
        row = GuardrailsService._get_row(repo, ref)
        sent = changes.model_dump(exclude_unset=True)
        updates = {}

        if isinstance(ref, ConstraintRef):
            if sent.get("priority") is not None:
                if not MIN_RULE_PRIORITY <= changes.priority <= MAX_RULE_PRIORITY:
                    raise ServiceValidationError(
                        "Prioriteit moet tussen 1 en 65500 liggen (1 = hoogst)"
                    )
                updates["rule_priority"] = changes.priority
                updates["priority"] = changes.priority
            if sent.get("strictness") is not None:
                updates["strictness"] = changes.strictness.value
            if sent.get("action") is not None:
                updates["rule_action"] = changes.action.value
            if sent.get("is_paused") is not None:
                updates["is_paused"] = changes.is_paused
        else:
            if sent.get("priority") is not None:
                updates["priority"] = changes.priority
            if changes.match_value and changes.match_value.strip():
                updates["term"] = changes.match_value.strip().lower()
            if changes.rule_code and changes.rule_code.strip():
                updates["rule_code"] = changes.rule_code.strip()
            if sent.get("rule_label") is not None:
                updates["rule_label"] = changes.rule_label
            if sent.get("target") is not None:
                updates["target"] = changes.target.value
            if sent.get("match_mode") is not None:
                updates["match_mode"] = changes.match_mode.value

        if not updates:
            return False

        for key, value in updates.items():
            setattr(row, key, value)
        GuardrailsService._commit(
            db,
            f"update {ref.rule_key}",
            conflict_message=(
                "Een constraint met deze categorie bestaat al voor dit dieettype"
                if isinstance(ref, ConstraintRef)
                else "Een regel met deze term bestaat al voor dit dieettype"
            ),
        )
        logger.info("Updated guardrail rule %s: %s", ref.rule_key, sorted(updates))
        return True

    @staticmethod
    def block_or_pause_rule(db: Session, ref, action: RuleStatusAction) -> None:
        """
        block: is_active = false. pause: constraints get is_paused = true and
        keep their strictness; recipe rules have no pause flag and are
        deactivated instead.
        """
        repo = GuardrailRepository(db)
        row = GuardrailsService._get_row(repo, ref)
        if action == RuleStatusAction.PAUSE and isinstance(ref, ConstraintRef):
            row.is_paused = True
        else:
            row.is_active = False
        GuardrailsService._commit(db, f"{action.value} {ref.rule_key}")
        logger.info("Guardrail rule %s: %s", ref.rule_key, action.value)

    @staticmethod
    def delete_rule(db: Session, ref) -> None:
        """Soft delete; the row stays so a later create can reactivate it"""
        repo = GuardrailRepository(db)
        row = GuardrailsService._get_row(repo, ref)
        row.is_active = False
        GuardrailsService._commit(db, f"delete {ref.rule_key}")
        logger.info("Soft-deleted guardrail rule %s", ref.rule_key)

    @staticmethod
    def _priority_of(row: EditableRow) -> int:
        if isinstance(row, DietCategoryConstraint) and row.rule_priority is not None:
            return row.rule_priority
        return row.priority if row.priority is not None else SWAP_DEFAULT_PRIORITY

    @staticmethod
    def _set_priority(row: EditableRow, value: int):
        row.priority = value
        if isinstance(row, DietCategoryConstraint):
            row.rule_priority = value

    @staticmethod
    def swap_priorities(db: Session, ref_a, ref_b) -> None:
        """Swap the priorities of two rules of the same kind and diet in one transaction"""
        if ref_a.rule_key == ref_b.rule_key:
            raise ServiceValidationError("Kan niet dezelfde regel met zichzelf verwisselen")
        if ref_a.kind != ref_b.kind:
            raise ServiceValidationError(
                "Regels moeten van hetzelfde type zijn om te herordenen"
            )

        repo = GuardrailRepository(db)
        row_a = GuardrailsService._get_row(repo, ref_a)
        row_b = GuardrailsService._get_row(repo, ref_b)
        if row_a.diet_type_id != row_b.diet_type_id:
            raise ServiceValidationError("Regels moeten tot hetzelfde dieettype behoren")

        priority_a = GuardrailsService._priority_of(row_a)
        priority_b = GuardrailsService._priority_of(row_b)
        for p in (priority_a, priority_b):
            if not MIN_RULE_PRIORITY <= p <= MAX_RULE_PRIORITY:
                raise ServiceValidationError(
                    "Prioriteit moet tussen 1 en 65500 liggen (1 = hoogst)"
                )

        GuardrailsService._set_priority(row_a, priority_b)
        GuardrailsService._set_priority(row_b, priority_a)
        GuardrailsService._commit(db, f"swap {ref_a.rule_key} <-> {ref_b.rule_key}")
        logger.info(
            "Swapped priorities %s (%d) <-> %s (%d)",
            ref_a.rule_key,
            priority_a,
            ref_b.rule_key,
            priority_b,
        )

    @staticmethod
    def create_rule(
        db: Session,
        diet_id: uuid.UUID,
        payload: Union[CreateRecipeRuleRequest, CreateConstraintRequest],
    ) -> CreatedRule:
        repo = GuardrailRepository(db)
        if repo.get_diet(diet_id) is None:
            raise NotFoundError("Dieettype niet gevonden")
        if isinstance(payload, CreateRecipeRuleRequest):
            return GuardrailsService._create_recipe_rule(db, diet_id, payload)
        return GuardrailsService._create_constraint(db, repo, diet_id, payload)

    @staticmethod
    def _create_recipe_rule(
        db: Session, diet_id: uuid.UUID, payload: CreateRecipeRuleRequest
    ) -> CreatedRule:
        term = payload.term.strip().lower()
        if not term or not payload.rule_code.strip() or not payload.rule_label.strip():
            raise ServiceValidationError(
                "Term, ruleCode en ruleLabel zijn verplicht voor recipe rules"
            )
        row = RecipeAdaptationRule(
            diet_type_id=diet_id,
            term=term,
            synonyms=list(payload.synonyms),
            rule_code=payload.rule_code.strip(),
            rule_label=payload.rule_label.strip(),
            substitution_suggestions=list(payload.substitution_suggestions),
            priority=payload.priority,
            target=payload.target.value,
            match_mode=payload.match_mode.value,
            is_active=True,
        )
        try:
            db.add(row)
            db.commit()
            db.refresh(row)
        except IntegrityError:
            db.rollback()
            raise ConflictError(
                f"Er bestaat al een regel voor '{term}' bij dit dieettype",
                details={"term": term},
            )
        except Exception:
            db.rollback()
            logger.exception("Error creating recipe rule %s for diet %s", term, diet_id)
            raise
        logger.info("Created recipe rule %s for diet %s", row.id, diet_id)
        return CreatedRule(ref=RecipeRuleRef(id=row.id))

    @staticmethod
    def _create_constraint(
        db: Session,
        repo: GuardrailRepository,
        diet_id: uuid.UUID,
        payload: CreateConstraintRequest,
    ) -> CreatedRule:
        if payload.diet_logic is not None:
            diet_logic = payload.diet_logic
            action = diet_logic_to_action(diet_logic)
        elif payload.rule_action is not None:
            action = payload.rule_action
            diet_logic = DietLogic.FORCE if action == RuleAction.ALLOW else DietLogic.DROP
        else:
            raise ServiceValidationError("diet_logic of rule_action is verplicht")

        if repo.get_category(payload.category_id) is None:
            raise NotFoundError("Categorie niet gevonden")

        values = dict(
            diet_type_id=diet_id,
            category_id=payload.category_id,
            constraint_type=(
                CategoryType.FORBIDDEN.value
                if action == RuleAction.BLOCK
                else CategoryType.REQUIRED.value
            ),
            rule_action=action.value,
            diet_logic=diet_logic.value,
            strictness=payload.strictness.value,
            rule_priority=payload.rule_priority,
            priority=payload.rule_priority,
            min_per_day=payload.min_per_day,
            min_per_week=payload.min_per_week,
            max_per_day=payload.max_per_day,
            max_per_week=payload.max_per_week,
            ai_instruction=(payload.ai_instruction or "").strip() or None,
            is_active=True,
            is_paused=False,
        )

        existing = repo.find_constraint(diet_id, payload.category_id, action.value)
        if existing is not None and existing.is_active:
            raise ConflictError(
                "Er bestaat al een dieetregel voor deze ingrediëntgroep bij dit dieettype"
            )

        try:
            if existing is not None:
                for key, value in values.items():
                    setattr(existing, key, value)
                row, reactivated = existing, True
            else:
                row, reactivated = DietCategoryConstraint(**values), False
                db.add(row)
            db.commit()
            db.refresh(row)
        except IntegrityError:
            db.rollback()
            raise ConflictError(
                "Een constraint met deze categorie bestaat al voor dit dieettype"
            )
        except Exception:
            db.rollback()
            logger.exception("Error creating constraint for diet %s", diet_id)
            raise

        logger.info(
            "%s constraint %s for diet %s",
            "Reactivated" if reactivated else "Created",
            row.id,
            diet_id,
        )
        return CreatedRule(ref=ConstraintRef(id=row.id), reactivated=reactivated)
