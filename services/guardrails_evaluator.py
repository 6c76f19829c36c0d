"""
Guardrails evaluator.

Pure and deterministic: given a ruleset and the text atoms of a recipe or
plan (ingredients, steps, metadata) it decides allowed / warned / blocked.
Block always wins over allow; soft blocks only warn.
"""

import re
from typing import List, Optional, Tuple

from domain.enums import (
    GuardOutcome,
    GuardReasonCode,
    MatchMode,
    MatchTarget,
    RuleAction,
    Specificity,
    Strictness,
)
from domain.schemas.guardrail_schemas import (
    EvaluationTargets,
    GuardDecision,
    GuardRule,
    GuardRuleMatch,
    GuardrailsRuleset,
    RemediationHint,
    TextAtom,
)

SPECIFICITY_SCORE = {
    Specificity.USER: 3,
    Specificity.DIET: 2,
    Specificity.GLOBAL: 1,
}


def sort_rules(rules: List[GuardRule]) -> List[GuardRule]:
    """Priority DESC, specificity DESC (user > diet > global), rule key ASC"""
    return sorted(
        rules,
        key=lambda r: (
            -r.priority,
            -SPECIFICITY_SCORE.get(r.metadata.specificity, 2),
            r.rule_key,
        ),
    )


# ---------------------------------------------------------------------------
# Matchers
# ---------------------------------------------------------------------------


def match_exact(text: str, term: str) -> bool:
    return text.strip().lower() == term.strip().lower()


def match_word_boundary(text: str, term: str) -> bool:
    """'suiker' matches 'suiker' but not 'suikervrij'"""
    pattern = r"\b" + re.escape(term.lower()) + r"\b"
    return re.search(pattern, text.lower()) is not None


def match_substring(text: str, term: str) -> bool:
    return term.lower() in text.lower()


def match_canonical_id(atom: TextAtom, canonical_id: str) -> bool:
    if atom.canonical_id:
        return atom.canonical_id == canonical_id
    return atom.text == canonical_id


def match_atom(atom: TextAtom, term: str, mode: MatchMode) -> bool:
    if mode == MatchMode.EXACT:
        return match_exact(atom.text, term)
    if mode == MatchMode.WORD_BOUNDARY:
        return match_word_boundary(atom.text, term)
    if mode == MatchMode.SUBSTRING:
        return match_substring(atom.text, term)
    if mode == MatchMode.CANONICAL_ID:
        return match_canonical_id(atom, term)
    return False


def _matched_text(atom: TextAtom, term: str, mode: MatchMode) -> str:
    if mode == MatchMode.CANONICAL_ID and atom.canonical_id:
        return atom.canonical_id
    if mode == MatchMode.WORD_BOUNDARY:
        index = atom.text.lower().find(term.lower())
        if index >= 0:
            return atom.text[index : index + len(term)]
    return term


# ---------------------------------------------------------------------------
# Rule evaluation
# ---------------------------------------------------------------------------


def _match_mode(rule: GuardRule, target: MatchTarget) -> MatchMode:
    if rule.match.preferred_match_mode is not None:
        return rule.match.preferred_match_mode
    if target == MatchTarget.METADATA and rule.match.canonical_id:
        return MatchMode.CANONICAL_ID
    if target in (MatchTarget.INGREDIENT, MatchTarget.STEP):
        return MatchMode.WORD_BOUNDARY
    return MatchMode.EXACT


def _config_error(rule: GuardRule) -> bool:
    # substring matching on free-text steps gives too many false positives
    return (
        rule.match.preferred_match_mode == MatchMode.SUBSTRING
        and rule.target == MatchTarget.STEP
    )


def _slots(
    rule: GuardRule, targets: EvaluationTargets
) -> List[Tuple[MatchTarget, List[TextAtom]]]:
    # forbidden ingredients mentioned in the preparation steps count too
    if rule.action == RuleAction.BLOCK and rule.target == MatchTarget.INGREDIENT:
        wanted = [MatchTarget.INGREDIENT, MatchTarget.STEP]
    else:
        wanted = [rule.target]
    slots = []
    for target in wanted:
        atoms = getattr(targets, target.value)
        if atoms:
            slots.append((target, atoms))
    return slots


def find_rule_matches(rule: GuardRule, targets: EvaluationTargets) -> List[GuardRuleMatch]:
    matches: List[GuardRuleMatch] = []
    seen_paths = set()

    def record(atom: TextAtom, matched_text: str, mode: MatchMode):
        if atom.path in seen_paths:
            return
        seen_paths.add(atom.path)
        matches.append(
            GuardRuleMatch(
                rule_key=rule.rule_key,
                ref=rule.ref,
                matched_text=matched_text,
                target_path=atom.path,
                match_mode=mode,
                rule_code=rule.metadata.rule_code,
                rule_label=rule.metadata.label,
            )
        )

    for target, atoms in _slots(rule, targets):
        mode = _match_mode(rule, target)
        for term in [rule.match.term] + list(rule.match.synonyms):
            for atom in atoms:
                if match_atom(atom, term, mode):
                    record(atom, _matched_text(atom, term, mode), mode)
        if rule.match.canonical_id and target == MatchTarget.METADATA:
            for atom in atoms:
                if match_canonical_id(atom, rule.match.canonical_id):
                    record(
                        atom,
                        atom.canonical_id or rule.match.canonical_id,
                        MatchMode.CANONICAL_ID,
                    )
    return matches


def _reason_code(rule: GuardRule) -> GuardReasonCode:
    if rule.metadata.rule_code is not None:
        return rule.metadata.rule_code
    if rule.strictness == Strictness.SOFT:
        return GuardReasonCode.SOFT_CONSTRAINT_VIOLATION
    if rule.action == RuleAction.BLOCK:
        return GuardReasonCode.FORBIDDEN_INGREDIENT
    return GuardReasonCode.UNKNOWN_ERROR


def _summary(hard: bool, soft: bool, allow: bool, applied: int, matches: int) -> str:
    if hard:
        return f"Blocked: {applied} hard constraint violation(s) detected"
    if soft:
        return f"Warned: {applied} soft constraint violation(s) detected"
    if allow and matches:
        return f"Allowed: {matches} allow rule(s) matched"
    return "Allowed: No violations detected"


def evaluate(
    ruleset: GuardrailsRuleset, targets: Optional[EvaluationTargets] = None
) -> GuardDecision:
    """
    Evaluate a ruleset against text targets.

    Returns:
        GuardDecision with outcome, matches, deduplicated reason codes and the
        remediation hints of every applied rule
    """
    targets = targets or EvaluationTargets()
    rules = sort_rules(ruleset.rules)

    has_hard = False
    has_soft = False
    has_allow = False
    applied: List[GuardRule] = []
    reason_codes: List[GuardReasonCode] = []
    all_matches: List[GuardRuleMatch] = []

    for rule in rules:
        matches = find_rule_matches(rule, targets)
        all_matches.extend(matches)

        if _config_error(rule):
            applied.append(rule)
            if rule.strictness == Strictness.HARD:
                has_hard = True
                reason_codes.append(GuardReasonCode.EVALUATOR_ERROR)
            else:
                has_soft = True
                reason_codes.append(GuardReasonCode.EVALUATOR_WARNING)
            continue

        if not matches:
            continue

        if rule.action == RuleAction.ALLOW:
            has_allow = True
            continue

        applied.append(rule)
        reason_codes.append(_reason_code(rule))
        if rule.strictness == Strictness.HARD:
            has_hard = True
        else:
            has_soft = True

    if has_hard:
        outcome = GuardOutcome.BLOCKED
    elif has_soft:
        outcome = GuardOutcome.WARNED
    else:
        outcome = GuardOutcome.ALLOWED

    hints: List[RemediationHint] = []
    for rule in applied:
        hints.extend(rule.remediation)

    return GuardDecision(
        ok=not has_hard,
        outcome=outcome,
        matches=all_matches,
        applied_rule_keys=[r.rule_key for r in applied],
        summary=_summary(has_hard, has_soft, has_allow, len(applied), len(all_matches)),
        reason_codes=list(dict.fromkeys(reason_codes)),
        remediation_hints=hints,
        ruleset_version=ruleset.version,
        ruleset_hash=ruleset.content_hash,
    )
