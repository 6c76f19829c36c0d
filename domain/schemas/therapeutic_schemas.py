"""
Therapeutic protocol schemas, including the when_json condition DSL used by
supplement rules.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import (
    BaseModel,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    model_validator,
)

from domain.enums import (
    SupplementRuleKind,
    SupplementRuleSeverity,
    TargetKind,
    TargetPeriod,
    TargetValueType,
    WhenJsonStatus,
)


# ---------------------------------------------------------------------------
# when_json DSL
# ---------------------------------------------------------------------------

Primitive = Union[StrictBool, StrictInt, StrictFloat, StrictStr]
ConditionValue = Union[Primitive, List[Primitive]]

ContextField = Literal[
    "sex",
    "ageYears",
    "heightCm",
    "weightKg",
    "dietKey",
    "protocolKey",
    "protocolVersion",
]


class FieldCondition(BaseModel):
    field: ContextField
    op: Literal["eq", "neq", "gte", "lte", "in"]
    value: ConditionValue

    model_config = {"extra": "forbid"}


class OverrideCondition(BaseModel):
    field: Literal["override"]
    key: str = Field(..., min_length=1)
    op: Literal["eq", "neq", "gte", "lte", "in", "exists"]
    value: Optional[ConditionValue] = None

    model_config = {"extra": "forbid"}


Condition = Annotated[
    Union[FieldCondition, OverrideCondition], Field(discriminator="field")
]


class WhenJson(BaseModel):
    """Exactly one of all / any / not"""

    all: Optional[List[Condition]] = None
    any: Optional[List[Condition]] = None
    not_: Optional[Condition] = Field(None, alias="not")

    model_config = {"extra": "forbid", "populate_by_name": True}

    @model_validator(mode="after")
    def exactly_one_combinator(self):
        present = [x for x in (self.all, self.any, self.not_) if x is not None]
        if len(present) != 1:
            raise ValueError("when_json needs exactly one of 'all', 'any' or 'not'")
        return self


class RuleContext(BaseModel):
    """What a when_json condition can be evaluated against"""

    sex: Optional[str] = None
    age_years: Optional[float] = Field(None, alias="ageYears")
    height_cm: Optional[float] = Field(None, alias="heightCm")
    weight_kg: Optional[float] = Field(None, alias="weightKg")
    diet_key: Optional[str] = Field(None, alias="dietKey")
    protocol_key: Optional[str] = Field(None, alias="protocolKey")
    protocol_version: Optional[float] = Field(None, alias="protocolVersion")
    overrides: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class MatchedCondition(BaseModel):
    type: Literal["field", "override"]
    field: Optional[str] = None
    op: str
    key: Optional[str] = None
    expected: Any = None
    actual: Any = None


class WhenJsonEvaluation(BaseModel):
    applicable: bool
    invalid: bool = False
    matched: List[MatchedCondition] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Editor responses
# ---------------------------------------------------------------------------


class SourceRef(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    url: Optional[str] = Field(None, max_length=2000)


class ProtocolResponse(BaseModel):
    id: UUID
    protocol_key: str
    name_nl: str
    description_nl: Optional[str] = None
    version: Optional[str] = None
    is_active: bool
    source_refs: List[Dict[str, Any]] = Field(default_factory=list)
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TargetResponse(BaseModel):
    id: UUID
    period: str
    target_kind: str
    target_key: str
    value_num: Decimal
    unit: Optional[str] = None
    value_type: str

    model_config = {"from_attributes": True}


class SupplementResponse(BaseModel):
    id: UUID
    supplement_key: str
    label_nl: str
    dosage_text: Optional[str] = None
    notes_nl: Optional[str] = None
    is_active: bool

    model_config = {"from_attributes": True}


class SupplementRuleResponse(BaseModel):
    id: UUID
    supplement_key: str
    rule_key: str
    kind: str
    severity: str
    when_json: Optional[Any] = None
    when_json_status: WhenJsonStatus = WhenJsonStatus.NONE
    message_nl: str
    is_active: bool

    model_config = {"from_attributes": True}


class SupplementRuleFilterResult(BaseModel):
    applicable_rules: List[SupplementRuleResponse] = Field(default_factory=list)
    total: int = 0
    applicable: int = 0
    skipped: int = 0
    invalid_when_json: int = 0
    matched_by_rule_id: Dict[str, List[MatchedCondition]] = Field(default_factory=dict)


class SnippetResponse(BaseModel):
    id: UUID
    snippet_key: str
    label_nl: str
    description_nl: Optional[str] = None
    template_json: Any

    model_config = {"from_attributes": True}


class ProtocolEditorResponse(BaseModel):
    protocol: ProtocolResponse
    targets: List[TargetResponse] = Field(default_factory=list)
    supplements: List[SupplementResponse] = Field(default_factory=list)
    rules: List[SupplementRuleResponse] = Field(default_factory=list)
    snippets: List[SnippetResponse] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TargetUpsert(BaseModel):
    id: Optional[UUID] = None
    period: TargetPeriod
    target_kind: TargetKind
    target_key: str
    value_num: Decimal = Field(..., ge=0)
    unit: Optional[str] = None
    value_type: TargetValueType


class SupplementUpsert(BaseModel):
    id: Optional[UUID] = None
    supplement_key: str
    label_nl: str
    dosage_text: Optional[str] = None
    notes_nl: Optional[str] = None
    is_active: bool = True


class ToggleRequest(BaseModel):
    is_active: bool


class CloneProtocolRequest(BaseModel):
    protocol_key: str = Field(..., min_length=2)
    name_nl: str = Field(..., min_length=2)
    is_active: bool = False


class SourceRefsUpdate(BaseModel):
    refs: List[SourceRef] = Field(default_factory=list, max_length=50)


class SupplementRuleUpsert(BaseModel):
    id: Optional[UUID] = None
    supplement_key: str = Field(..., min_length=2)
    rule_key: str = Field(..., min_length=2)
    kind: SupplementRuleKind
    severity: SupplementRuleSeverity
    when_json: Optional[str] = Field(None, description="JSON text; empty means always")
    message_nl: str
    is_active: bool = True


class EvaluateRulesRequest(BaseModel):
    context: RuleContext = Field(default_factory=RuleContext)
