"""
Culinary coherence check: applies the configured culinary rules to a plan.

Block rules that match raise MEAL_PLAN_CULINARY_VIOLATION with every
violation found. Warn rules are logged and returned to the caller.
"""

import logging
import re
from typing import Dict, List, Pattern

from app.exceptions import ServiceValidationError
from domain.enums import CulinaryAction, CulinaryMatchMode
from domain.schemas.generator_schemas import (
    CulinaryRule,
    CulinaryViolation,
    MealPlan,
    PlanMeal,
)

logger = logging.getLogger("nutricoach.meal_plans.culinary")

SMOOTHIE_SLOT = "smoothie"
SMOOTHIE_MARKERS = ("smoothie", "shake")


def relevant_text(meal: PlanMeal) -> str:
    """Meal name plus every ingredient name / nevo code, space separated"""
    parts = [meal.name or ""]
    for ref in meal.ingredient_refs:
        if ref.display_name:
            parts.append(ref.display_name)
        if ref.nevo_code:
            parts.append(ref.nevo_code)
    for ing in meal.ingredients:
        if ing.name:
            parts.append(ing.name)
    return " ".join(parts)


def is_smoothie_like(text: str) -> bool:
    lower = text.lower()
    return any(marker in lower for marker in SMOOTHIE_MARKERS)


def term_matches(text: str, value: str) -> bool:
    """Single words match on word boundaries ('ei' is not 'eiwit'); phrases as substring"""
    value = (value or "").strip().lower()
    if not value:
        return False
    lower = text.lower()
    if " " in value:
        return value in lower
    return re.search(r"\b" + re.escape(value) + r"\b", lower) is not None


def _compile_block_regex(rule: CulinaryRule) -> Pattern:
    try:
        return re.compile(rule.match_value, re.IGNORECASE)
    except re.error:
        raise ServiceValidationError(
            "Ongeldige culinaire regel (regex). Pas de regel in de configuratie aan.",
            details={"rule_code": rule.rule_code},
            code="MEAL_PLAN_CONFIG_INVALID",
        )


def _warn_matches(rule: CulinaryRule, text: str) -> bool:
    if rule.match_mode == CulinaryMatchMode.REGEX:
        try:
            return re.search(rule.match_value, text, re.IGNORECASE) is not None
        except re.error:
            return False
    return term_matches(text, rule.match_value)


def validate_culinary_coherence(
    plan: MealPlan, rules: List[CulinaryRule]
) -> List[CulinaryViolation]:
    """
    Check every meal of the plan against the culinary rules.

    A meal is checked against rules for its own slot, and additionally against
    'smoothie' rules when its text looks like a smoothie or shake.

    Returns:
        Warn-rule matches (never raises for those)

    Raises:
        ServiceValidationError: MEAL_PLAN_CULINARY_VIOLATION on any block match,
            MEAL_PLAN_CONFIG_INVALID when a block rule has an invalid regex
    """
    if not rules:
        return []

    block_rules = [r for r in rules if r.action == CulinaryAction.BLOCK]
    warn_rules = [r for r in rules if r.action == CulinaryAction.WARN]
    compiled: Dict[str, Pattern] = {}

    violations: List[CulinaryViolation] = []
    warnings: List[CulinaryViolation] = []

    for day_index, day in enumerate(plan.days):
        date = day.date or ""
        for meal in day.meals:
            text = relevant_text(meal)
            slot = meal.slot or ""
            slot_types = {slot}
            if is_smoothie_like(text):
                slot_types.add(SMOOTHIE_SLOT)

            def violation(rule: CulinaryRule) -> CulinaryViolation:
                return CulinaryViolation(
                    rule_code=rule.rule_code,
                    reason_code=rule.reason_code,
                    slot=slot,
                    match_value=rule.match_value,
                    day_index=day_index,
                    date=date,
                    slot_type=rule.slot_type,
                )

            for rule in block_rules:
                if rule.slot_type not in slot_types:
                    continue
                if rule.match_mode == CulinaryMatchMode.REGEX:
                    if rule.rule_code not in compiled:
                        compiled[rule.rule_code] = _compile_block_regex(rule)
                    matched = compiled[rule.rule_code].search(text) is not None
                else:
                    matched = term_matches(text, rule.match_value)
                if matched:
                    violations.append(violation(rule))

            for rule in warn_rules:
                if rule.slot_type in slot_types and _warn_matches(rule, text):
                    logger.warning(
                        "Culinary warn %s (%s) slot=%s date=%s",
                        rule.rule_code,
                        rule.reason_code,
                        slot,
                        date,
                    )
                    warnings.append(violation(rule))

    if violations:
        raise ServiceValidationError(
            "Er zit een culinaire mismatch in het menu (bijv. onlogische combinatie "
            "in een smoothie). Probeer opnieuw of pas je regels aan.",
            details={"violations": [v.model_dump() for v in violations]},
            code="MEAL_PLAN_CULINARY_VIOLATION",
        )
    return warnings
