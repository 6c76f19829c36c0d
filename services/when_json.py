"""
when_json evaluation for therapeutic supplement rules.

A rule without when_json always applies. A rule whose when_json does not
parse never applies and is counted as invalid (fail-closed).
"""

import json
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError

from domain.enums import WhenJsonStatus
from domain.schemas.therapeutic_schemas import (
    FieldCondition,
    MatchedCondition,
    OverrideCondition,
    RuleContext,
    SupplementRuleFilterResult,
    SupplementRuleResponse,
    WhenJson,
    WhenJsonEvaluation,
)

MAX_MATCHED_CONDITIONS = 6

# DSL field name -> RuleContext attribute
CONTEXT_ATTRS = {
    "sex": "sex",
    "ageYears": "age_years",
    "heightCm": "height_cm",
    "weightKg": "weight_kg",
    "dietKey": "diet_key",
    "protocolKey": "protocol_key",
    "protocolVersion": "protocol_version",
}
STRING_FIELDS = {"sex", "dietKey", "protocolKey"}


class _Missing:
    pass


MISSING = _Missing()


def parse_when_json(raw: Any) -> Optional[WhenJson]:
    """Validate a decoded when_json value; raises pydantic.ValidationError"""
    if raw is None:
        return None
    return WhenJson.model_validate(raw)


def when_json_status(raw: Any) -> WhenJsonStatus:
    if raw is None:
        return WhenJsonStatus.NONE
    try:
        WhenJson.model_validate(raw)
    except ValidationError:
        return WhenJsonStatus.INVALID
    return WhenJsonStatus.OK


def decode_when_json_text(text: Optional[str]) -> Optional[Any]:
    """Admin input arrives as text; empty means no condition. Raises ValueError on bad JSON"""
    if text is None or not text.strip():
        return None
    return json.loads(text)


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _equal(left: Any, right: Any) -> bool:
    if _is_number(left) and _is_number(right):
        return float(left) == float(right)
    return type(left) is type(right) and left == right


def _context_value(ctx: RuleContext, field: str) -> Any:
    value = getattr(ctx, CONTEXT_ATTRS[field])
    if value is None:
        return MISSING
    if field in STRING_FIELDS:
        return value if isinstance(value, str) else MISSING
    return value if _is_number(value) else MISSING


def _compare(op: str, left: Any, expected: Any) -> Tuple[bool, bool]:
    """Returns (result, invalid)"""
    if left is MISSING:
        return False, False
    if op == "in":
        options = expected if isinstance(expected, list) else [expected]
        return any(_equal(left, o) for o in options), False
    right = expected[0] if isinstance(expected, list) and expected else expected
    if op in ("gte", "lte"):
        if not (_is_number(left) and _is_number(right)):
            return False, True
        return (left >= right if op == "gte" else left <= right), False
    if op == "eq":
        return _equal(left, right), False
    if op == "neq":
        return not _equal(left, right), False
    return False, False


def _primitive_or_none(v: Any) -> Any:
    if v is MISSING or v is None:
        return None
    if isinstance(v, (str, int, float, bool)):
        return v
    return None


def evaluate_condition(
    cond: Union[OverrideCondition, FieldCondition], ctx: RuleContext
) -> Tuple[bool, bool, Optional[MatchedCondition]]:
    """Returns (result, invalid, matched)"""
    if isinstance(cond, OverrideCondition):
        overrides = ctx.overrides or {}
        actual = overrides.get(cond.key, MISSING)
        if cond.op == "exists":
            result = cond.key in overrides and overrides[cond.key] is not None
            matched = (
                MatchedCondition(
                    type="override", op="exists", key=cond.key, expected=True, actual=True
                )
                if result
                else None
            )
            return result, False, matched
        if cond.value is None:
            return False, False, None
        result, invalid = _compare(cond.op, actual, cond.value)
        matched = None
        if result and not invalid:
            matched = MatchedCondition(
                type="override",
                op=cond.op,
                key=cond.key,
                expected=cond.value,
                actual=_primitive_or_none(actual),
            )
        return result, invalid, matched

    actual = _context_value(ctx, cond.field)
    result, invalid = _compare(cond.op, actual, cond.value)
    matched = None
    if result and not invalid:
        matched = MatchedCondition(
            type="field",
            field=cond.field,
            op=cond.op,
            expected=cond.value,
            actual=_primitive_or_none(actual),
        )
    return result, invalid, matched


def evaluate_when_json(raw: Any, ctx: RuleContext) -> WhenJsonEvaluation:
    """
    Evaluate a (decoded) when_json against a user context.

    all: every condition true; any: at least one true (empty list never
    applies); not: the single condition is false. A type mismatch on
    gte/lte marks the rule invalid.
    """
    if raw is None:
        return WhenJsonEvaluation(applicable=True)
    try:
        when = WhenJson.model_validate(raw)
    except ValidationError:
        return WhenJsonEvaluation(applicable=False, invalid=True)

    if when.all is not None:
        matched: List[MatchedCondition] = []
        for cond in when.all:
            result, invalid, m = evaluate_condition(cond, ctx)
            if invalid:
                return WhenJsonEvaluation(applicable=False, invalid=True)
            if not result:
                return WhenJsonEvaluation(applicable=False)
            if m is not None:
                matched.append(m)
        return WhenJsonEvaluation(
            applicable=True, matched=matched[:MAX_MATCHED_CONDITIONS]
        )

    if when.any is not None:
        matched = []
        for cond in when.any:
            result, invalid, m = evaluate_condition(cond, ctx)
            if invalid:
                return WhenJsonEvaluation(applicable=False, invalid=True)
            if result and m is not None:
                matched.append(m)
        if not matched:
            return WhenJsonEvaluation(applicable=False)
        return WhenJsonEvaluation(
            applicable=True, matched=matched[:MAX_MATCHED_CONDITIONS]
        )

    result, invalid, _ = evaluate_condition(when.not_, ctx)
    if invalid:
        return WhenJsonEvaluation(applicable=False, invalid=True)
    return WhenJsonEvaluation(applicable=not result)


def filter_supplement_rules(
    rules: Iterable[Any], ctx: RuleContext
) -> SupplementRuleFilterResult:
    """Keep active rules whose when_json applies to ctx"""
    rules = [r for r in rules if r.is_active]
    applicable_rules: List[SupplementRuleResponse] = []
    matched_by_rule_id: Dict[str, List[MatchedCondition]] = {}
    invalid_count = 0

    for rule in rules:
        evaluation = evaluate_when_json(rule.when_json, ctx)
        if evaluation.invalid:
            invalid_count += 1
        if not evaluation.applicable:
            continue
        response = SupplementRuleResponse.model_validate(rule)
        response.when_json_status = when_json_status(rule.when_json)
        applicable_rules.append(response)
        if evaluation.matched:
            matched_by_rule_id[str(rule.id)] = evaluation.matched

    return SupplementRuleFilterResult(
        applicable_rules=applicable_rules,
        total=len(rules),
        applicable=len(applicable_rules),
        skipped=len(rules) - len(applicable_rules) - invalid_count,
        invalid_when_json=invalid_count,
        matched_by_rule_id=matched_by_rule_id,
    )
