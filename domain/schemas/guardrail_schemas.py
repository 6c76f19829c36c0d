"""
Guardrail schemas: rule references, the assembled ruleset, evaluation
input/output and the admin request/response shapes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from domain.enums import (
    DietLogic,
    GuardOutcome,
    GuardReasonCode,
    MatchMode,
    MatchTarget,
    RuleAction,
    RuleStatusAction,
    Specificity,
    Strictness,
)


# ---------------------------------------------------------------------------
# Rule references
# ---------------------------------------------------------------------------


class ConstraintRef(BaseModel):
    """One item of a category constraint"""

    kind: Literal["constraint"] = "constraint"
    id: UUID
    item_index: int = Field(default=0, ge=0)

    @property
    def rule_key(self) -> str:
        # zero-padded so item 10 sorts after item 9
        return f"constraint:{self.id}:{self.item_index:05d}"


class RecipeRuleRef(BaseModel):
    kind: Literal["recipe_rule"] = "recipe_rule"
    id: UUID

    @property
    def rule_key(self) -> str:
        return f"recipe_rule:{self.id}"


class FallbackRef(BaseModel):
    kind: Literal["fallback"] = "fallback"
    key: str = Field(..., min_length=1)

    @property
    def rule_key(self) -> str:
        return f"fallback:{self.key}"


RuleRef = Annotated[
    Union[ConstraintRef, RecipeRuleRef, FallbackRef], Field(discriminator="kind")
]


# ---------------------------------------------------------------------------
# Ruleset
# ---------------------------------------------------------------------------


class RuleMatch(BaseModel):
    term: str
    synonyms: List[str] = Field(default_factory=list)
    preferred_match_mode: Optional[MatchMode] = None
    canonical_id: Optional[str] = None


class RuleMetadata(BaseModel):
    rule_code: GuardReasonCode
    label: str
    category: Optional[str] = None
    specificity: Specificity = Specificity.DIET
    is_non_enforcing_allow: bool = False


class RemediationHint(BaseModel):
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    prompt_text: Optional[str] = None


class GuardRule(BaseModel):
    ref: RuleRef
    action: RuleAction
    strictness: Strictness
    priority: int
    target: MatchTarget
    match: RuleMatch
    metadata: RuleMetadata
    remediation: List[RemediationHint] = Field(default_factory=list)

    @property
    def rule_key(self) -> str:
        return self.ref.rule_key


class ProvenanceSource(BaseModel):
    kind: Literal["db", "fallback"]
    ref: str
    loaded_at: datetime
    details: Dict[str, Any] = Field(default_factory=dict)


class RulesetProvenance(BaseModel):
    source: Literal["database", "fallback"]
    loaded_at: datetime
    sources: List[ProvenanceSource] = Field(default_factory=list)
    rule_counts: Dict[str, Any] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    reason: Optional[str] = None


class GuardrailsRuleset(BaseModel):
    diet_id: UUID
    version: int
    rules: List[GuardRule]
    heuristics: Optional[Dict[str, List[str]]] = None
    provenance: RulesetProvenance
    content_hash: str


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


class TextAtom(BaseModel):
    text: str
    path: str
    canonical_id: Optional[str] = None


class EvaluationTargets(BaseModel):
    ingredient: List[TextAtom] = Field(default_factory=list)
    step: List[TextAtom] = Field(default_factory=list)
    metadata: List[TextAtom] = Field(default_factory=list)


class GuardRuleMatch(BaseModel):
    rule_key: str
    ref: RuleRef
    matched_text: str
    target_path: str
    match_mode: MatchMode
    rule_code: GuardReasonCode
    rule_label: str


class GuardDecision(BaseModel):
    ok: bool
    outcome: GuardOutcome
    matches: List[GuardRuleMatch] = Field(default_factory=list)
    applied_rule_keys: List[str] = Field(default_factory=list)
    summary: str
    reason_codes: List[GuardReasonCode] = Field(default_factory=list)
    remediation_hints: List[RemediationHint] = Field(default_factory=list)
    ruleset_version: Optional[int] = None
    ruleset_hash: Optional[str] = None


class EvaluateRequest(BaseModel):
    targets: EvaluationTargets


# ---------------------------------------------------------------------------
# Admin views
# ---------------------------------------------------------------------------


class RuleView(BaseModel):
    """Flat rule row for the admin overview"""

    ref: RuleRef
    rule_key: str
    action: RuleAction
    strictness: Strictness
    priority: int
    target: str
    term: str
    synonyms: List[str] = Field(default_factory=list)
    rule_code: GuardReasonCode
    label: str
    category: Optional[str] = None


class RulesetView(BaseModel):
    diet_id: UUID
    version: int
    content_hash: str
    source: Literal["database", "fallback"]
    sources: List[str] = Field(default_factory=list)
    counts_by_kind: Dict[str, int] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    rules: List[RuleView] = Field(default_factory=list)


class GroupPolicyView(BaseModel):
    constraint_id: UUID
    category_id: UUID
    category_code: str
    category_name: str
    category_type: str
    item_count: int
    priority: int
    action: RuleAction
    diet_logic: DietLogic
    strictness: Strictness
    is_paused: bool
    min_per_day: Optional[int] = None
    min_per_week: Optional[int] = None
    max_per_day: Optional[int] = None
    max_per_week: Optional[int] = None
    ai_instruction: Optional[str] = None


class TextRuleView(BaseModel):
    id: UUID
    term: str
    rule_code: str
    rule_label: str
    priority: int
    target: str
    match_mode: str

    model_config = {"from_attributes": True}


class TextRulesSummary(BaseModel):
    total_count: int
    rules: List[TextRuleView] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Admin requests
# ---------------------------------------------------------------------------


class RuleChanges(BaseModel):
    """Partial update; which fields apply depends on the ref kind"""

    priority: Optional[int] = None
    strictness: Optional[Strictness] = None
    action: Optional[RuleAction] = None
    is_paused: Optional[bool] = None
    match_value: Optional[str] = None
    rule_code: Optional[str] = None
    rule_label: Optional[str] = None
    target: Optional[MatchTarget] = None
    match_mode: Optional[MatchMode] = None


class UpdateRuleRequest(BaseModel):
    ref: RuleRef
    changes: RuleChanges = Field(default_factory=RuleChanges)


class RuleStatusRequest(BaseModel):
    ref: RuleRef
    action: RuleStatusAction


class RuleRefRequest(BaseModel):
    ref: RuleRef


class SwapPrioritiesRequest(BaseModel):
    ref_a: RuleRef
    ref_b: RuleRef


class CreateRecipeRuleRequest(BaseModel):
    kind: Literal["recipe_rule"]
    term: str = Field(..., min_length=1)
    synonyms: List[str] = Field(default_factory=list)
    rule_code: str = Field(..., min_length=1)
    rule_label: str = Field(..., min_length=1)
    substitution_suggestions: List[str] = Field(default_factory=list)
    priority: int = Field(default=50, ge=0, le=100)
    target: MatchTarget = MatchTarget.INGREDIENT
    match_mode: MatchMode = MatchMode.WORD_BOUNDARY


class CreateConstraintRequest(BaseModel):
    kind: Literal["constraint"]
    category_id: UUID
    strictness: Strictness
    rule_action: Optional[RuleAction] = None
    diet_logic: Optional[DietLogic] = None
    rule_priority: int = Field(default=100, ge=1, le=65500)
    min_per_day: Optional[int] = Field(None, ge=0)
    min_per_week: Optional[int] = Field(None, ge=0)
    max_per_day: Optional[int] = Field(None, ge=0)
    max_per_week: Optional[int] = Field(None, ge=0)
    ai_instruction: Optional[str] = None


CreateRuleRequest = Annotated[
    Union[CreateRecipeRuleRequest, CreateConstraintRequest],
    Field(discriminator="kind"),
]


class CreatedRule(BaseModel):
    ref: RuleRef
    reactivated: bool = False


class CreateRuleBody(BaseModel):
    rule: CreateRuleRequest
