"""
Guardrails ruleset assembly.

Turns the raw rule rows of one diet (category constraints, recipe adaptation
rules and heuristics) into a deterministic GuardrailsRuleset. Nothing here
touches the database; GuardrailsService loads the rows and hands them in.
"""

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from domain.enums import (
    CategoryType,
    GuardReasonCode,
    MatchMode,
    MatchTarget,
    RuleAction,
    Specificity,
    Strictness,
)
from domain.schemas.guardrail_schemas import (
    ConstraintRef,
    FallbackRef,
    GuardRule,
    GuardrailsRuleset,
    ProvenanceSource,
    RecipeRuleRef,
    RemediationHint,
    RuleMatch,
    RuleMetadata,
    RulesetProvenance,
)

logger = logging.getLogger("nutricoach.guardrails.ruleset")

DEFAULT_RULE_PRIORITY = 50
ADDED_SUGAR_HEURISTIC = "added_sugar"
FALLBACK_SUGAR_TERMS = ["suiker", "siroop", "stroop"]

# Codes a recipe adaptation rule may carry; anything else becomes UNKNOWN_ERROR
RECIPE_RULE_CODES = {
    GuardReasonCode.FORBIDDEN_INGREDIENT,
    GuardReasonCode.ALLERGEN_PRESENT,
    GuardReasonCode.DISLIKED_INGREDIENT,
    GuardReasonCode.MISSING_REQUIRED_CATEGORY,
    GuardReasonCode.INVALID_CATEGORY,
    GuardReasonCode.INVALID_NEVO_CODE,
    GuardReasonCode.INVALID_CANONICAL_ID,
    GuardReasonCode.CALORIE_TARGET_MISS,
    GuardReasonCode.MACRO_TARGET_MISS,
    GuardReasonCode.MEAL_PREFERENCE_MISS,
    GuardReasonCode.MEAL_STRUCTURE_VIOLATION,
    GuardReasonCode.SOFT_CONSTRAINT_VIOLATION,
}


def hash_content(payload: Any) -> str:
    """sha256 over canonical JSON (sorted keys, no whitespace)"""
    canonical = json.dumps(
        payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _lower_all(values: Optional[Iterable[str]]) -> List[str]:
    return [v.lower() for v in (values or []) if v]


def _is_active(value: Optional[bool]) -> bool:
    # NULL is treated as active
    return value is not False


def _enum_or(enum_cls, value, default):
    try:
        return enum_cls(value) if value is not None else default
    except ValueError:
        return default


def constraint_item_rule(constraint, item_index: int) -> GuardRule:
    """Map one item of a category constraint to a rule"""
    category = constraint.category
    item = category.items[item_index]
    category_type = _enum_or(CategoryType, category.category_type, CategoryType.FORBIDDEN)
    action = _enum_or(
        RuleAction,
        constraint.rule_action,
        RuleAction.BLOCK if category_type == CategoryType.FORBIDDEN else RuleAction.ALLOW,
    )
    strictness = _enum_or(Strictness, constraint.strictness, Strictness.HARD)

    if category_type == CategoryType.REQUIRED:
        rule_code = GuardReasonCode.MISSING_REQUIRED_CATEGORY
    elif strictness == Strictness.HARD:
        rule_code = GuardReasonCode.FORBIDDEN_INGREDIENT
    else:
        rule_code = GuardReasonCode.SOFT_CONSTRAINT_VIOLATION

    if action == RuleAction.ALLOW:
        label = f"{category.name_nl} (Toegestaan)"
    elif strictness == Strictness.HARD:
        label = f"{category.name_nl} (Strikt verboden)"
    else:
        label = f"{category.name_nl} (Niet gewenst)"

    return GuardRule(
        ref=ConstraintRef(id=constraint.id, item_index=item_index),
        action=action,
        strictness=strictness,
        priority=constraint.rule_priority or DEFAULT_RULE_PRIORITY,
        target=MatchTarget.INGREDIENT,
        match=RuleMatch(term=item.term.lower(), synonyms=_lower_all(item.synonyms)),
        metadata=RuleMetadata(
            rule_code=rule_code,
            label=label,
            category=category.code,
            specificity=Specificity.DIET,
            is_non_enforcing_allow=action == RuleAction.ALLOW,
        ),
    )


def recipe_rule_to_rule(row) -> GuardRule:
    """Recipe adaptation rules always block; strictness follows the rule code"""
    term = row.term.lower()
    try:
        rule_code = GuardReasonCode(row.rule_code)
    except ValueError:
        rule_code = GuardReasonCode.UNKNOWN_ERROR
    if rule_code not in RECIPE_RULE_CODES:
        rule_code = GuardReasonCode.UNKNOWN_ERROR

    suggestions = list(row.substitution_suggestions or [])
    remediation = []
    if suggestions:
        remediation.append(
            RemediationHint(
                type="substitute",
                payload={"original": term, "alternatives": suggestions},
                prompt_text=f"Replace '{term}' with {' or '.join(suggestions)}",
            )
        )

    return GuardRule(
        ref=RecipeRuleRef(id=row.id),
        action=RuleAction.BLOCK,
        strictness=Strictness.SOFT if "SOFT" in rule_code.value else Strictness.HARD,
        priority=row.priority or DEFAULT_RULE_PRIORITY,
        target=_enum_or(MatchTarget, row.target, MatchTarget.INGREDIENT),
        match=RuleMatch(
            term=term,
            synonyms=_lower_all(row.synonyms),
            preferred_match_mode=_enum_or(
                MatchMode, row.match_mode, MatchMode.WORD_BOUNDARY
            ),
        ),
        metadata=RuleMetadata(
            rule_code=rule_code,
            label=row.rule_label,
            specificity=Specificity.DIET,
        ),
        remediation=remediation,
    )


def _fallback_rules() -> List[GuardRule]:
    return [
        GuardRule(
            ref=FallbackRef(key="pasta"),
            action=RuleAction.BLOCK,
            strictness=Strictness.HARD,
            priority=DEFAULT_RULE_PRIORITY,
            target=MatchTarget.INGREDIENT,
            match=RuleMatch(
                term="pasta",
                synonyms=["spaghetti", "penne", "fusilli", "macaroni", "orzo"],
            ),
            metadata=RuleMetadata(
                rule_code=GuardReasonCode.FORBIDDEN_INGREDIENT,
                label="Glutenvrij dieet",
                specificity=Specificity.GLOBAL,
            ),
            remediation=[
                RemediationHint(
                    type="substitute",
                    payload={
                        "original": "pasta",
                        "alternatives": ["rijstnoedels", "zucchininoedels"],
                    },
                    prompt_text="Replace 'pasta' with rijstnoedels or zucchininoedels",
                )
            ],
        ),
        GuardRule(
            ref=FallbackRef(key="melk"),
            action=RuleAction.BLOCK,
            strictness=Strictness.HARD,
            priority=DEFAULT_RULE_PRIORITY,
            target=MatchTarget.INGREDIENT,
            match=RuleMatch(term="melk", synonyms=["koemelk", "volle melk"]),
            metadata=RuleMetadata(
                rule_code=GuardReasonCode.FORBIDDEN_INGREDIENT,
                label="Lactose-intolerantie",
                specificity=Specificity.GLOBAL,
            ),
        ),
    ]


def _policy_hash(diet_id: UUID, rules: List[GuardRule], heuristics) -> str:
    return hash_content(
        {
            "diet_id": str(diet_id),
            "rules": [r.model_dump(mode="json") for r in rules],
            "heuristics": heuristics,
        }
    )


def fallback_ruleset(diet_id: UUID, now: Optional[datetime] = None) -> GuardrailsRuleset:
    now = now or datetime.now(timezone.utc)
    rules = sorted(_fallback_rules(), key=lambda r: r.rule_key)
    heuristics = {"added_sugar_terms": list(FALLBACK_SUGAR_TERMS)}
    return GuardrailsRuleset(
        diet_id=diet_id,
        version=1,
        rules=rules,
        heuristics=heuristics,
        provenance=RulesetProvenance(
            source="fallback",
            loaded_at=now,
            reason="No database rules found, using hardcoded fallback",
        ),
        content_hash=_policy_hash(diet_id, rules, heuristics),
    )


def compute_version(updated_ats: Iterable[Any]) -> int:
    """Deterministic (not sequential) version from the rows' updated_at values"""
    stamps = sorted(
        v.isoformat() if isinstance(v, datetime) else str(v) for v in updated_ats if v
    )
    if not stamps:
        return 1
    digest = hash_content(",".join(stamps))
    return int(digest[:8], 16) or 1


def merge_rules(base: List[GuardRule], overlay: List[GuardRule]) -> List[GuardRule]:
    """Overlay rules replace base rules with the same ref; others are appended"""
    merged = list(base)
    index = {rule.rule_key: i for i, rule in enumerate(merged)}
    for rule in overlay:
        pos = index.get(rule.rule_key)
        if pos is not None:
            merged[pos] = rule
        else:
            index[rule.rule_key] = len(merged)
            merged.append(rule)
    return merged


def sort_for_display(rules: Sequence[GuardRule]) -> List[GuardRule]:
    """Priority DESC, then rule key ascending"""
    return sorted(rules, key=lambda r: (-r.priority, r.rule_key))


def build_ruleset(
    diet_id: UUID,
    constraints: Sequence[Any],
    recipe_rules: Sequence[Any],
    heuristics: Sequence[Any],
    errors: Optional[List[str]] = None,
    now: Optional[datetime] = None,
) -> GuardrailsRuleset:
    """
    Assemble the ruleset for one diet.

    Args:
        diet_id: diet the rows belong to
        constraints: DietCategoryConstraint rows with category and items loaded
        recipe_rules: RecipeAdaptationRule rows (active and inactive)
        heuristics: active RecipeAdaptationHeuristic rows
        errors: load errors to carry into provenance
        now: timestamp for provenance (tests pass a fixed value)

    Returns:
        GuardrailsRuleset; the hardcoded fallback when no rule survives filtering
    """
    now = now or datetime.now(timezone.utc)
    errors = list(errors or [])
    sources: List[ProvenanceSource] = []
    rules: List[GuardRule] = []

    if constraints:
        for constraint in constraints:
            category = constraint.category
            if category is None or not category.items:
                continue
            if constraint.is_paused:
                continue
            if not _is_active(constraint.is_active):
                continue
            for index, item in enumerate(category.items):
                if not _is_active(item.is_active):
                    continue
                rules.append(constraint_item_rule(constraint, index))
        sources.append(
            ProvenanceSource(
                kind="db",
                ref="diet_category_constraints",
                loaded_at=now,
                details={
                    "constraint_count": len(constraints),
                    "rule_count": len(rules),
                    "active_constraint_count": sum(
                        1 for c in constraints if _is_active(c.is_active)
                    ),
                },
            )
        )

    if recipe_rules:
        mapped = [recipe_rule_to_rule(r) for r in recipe_rules if _is_active(r.is_active)]
        rules = merge_rules(rules, mapped)
        sources.append(
            ProvenanceSource(
                kind="db",
                ref="recipe_adaptation_rules",
                loaded_at=now,
                details={
                    "rule_count": len(mapped),
                    "active_rule_count": len(mapped),
                },
            )
        )

    if not rules:
        logger.info(f"No guardrail rules for diet {diet_id}, using fallback ruleset")
        return fallback_ruleset(diet_id, now)

    sugar_terms: List[str] = []
    for h in heuristics:
        if h.heuristic_type == ADDED_SUGAR_HEURISTIC:
            sugar_terms = list(h.terms or [])
            break
    heuristics_payload = {"added_sugar_terms": sugar_terms} if sugar_terms else None

    sorted_rules = sorted(rules, key=lambda r: r.rule_key)
    version = compute_version(
        [c.updated_at for c in constraints]
        + [r.updated_at for r in recipe_rules]
        + [h.updated_at for h in heuristics]
    )

    return GuardrailsRuleset(
        diet_id=diet_id,
        version=version,
        rules=sorted_rules,
        heuristics=heuristics_payload,
        provenance=RulesetProvenance(
            source="database",
            loaded_at=now,
            sources=sources,
            rule_counts={
                "total": len(sorted_rules),
                "by_source": {s.ref: s.details.get("rule_count", 0) for s in sources},
            },
            errors=errors,
        ),
        content_hash=_policy_hash(diet_id, sorted_rules, heuristics_payload),
    )


def counts_by_kind(rules: Sequence[GuardRule]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for rule in rules:
        counts[rule.ref.kind] = counts.get(rule.ref.kind, 0) + 1
    return counts
