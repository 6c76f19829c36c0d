"""
Schemas for the meal plan generator configuration, the plan payload checked
by the variety scorecard / culinary validator, and the scorecard itself.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from domain.enums import CulinaryAction, CulinaryMatchMode, ScorecardStatus


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class GeneratorSettings(BaseModel):
    min_history_reuse_ratio: float = 0.2
    target_prefill_ratio: float = 0.7
    recency_window_days: int = 90
    max_ai_generated_slots_per_week: int = 14
    min_db_recipe_coverage_ratio: float = 0.5
    use_db_first: bool = True


class VarietyTargets(BaseModel):
    unique_veg_min: int = 5
    unique_fruit_min: int = 3
    protein_rotation_min_categories: int = 3
    max_repeat_same_recipe_within_days: int = 7
    favorites_repeat_boost: float = 1.0


class CulinaryRule(BaseModel):
    rule_code: str
    slot_type: str
    match_mode: CulinaryMatchMode = CulinaryMatchMode.TERM
    match_value: str
    action: CulinaryAction = CulinaryAction.BLOCK
    reason_code: str
    priority: int = 0


class GeneratorConfig(BaseModel):
    diet_key: Optional[str] = None
    settings: GeneratorSettings
    variety_targets: VarietyTargets
    culinary_rules: List[CulinaryRule] = Field(default_factory=list)


class GeneratorSettingsUpsert(BaseModel):
    diet_key: Optional[str] = None
    min_history_reuse_ratio: Optional[float] = Field(None, ge=0, le=1)
    target_prefill_ratio: Optional[float] = Field(None, ge=0, le=1)
    recency_window_days: Optional[int] = Field(None, ge=0)
    max_ai_generated_slots_per_week: Optional[int] = Field(None, ge=0)
    min_db_recipe_coverage_ratio: Optional[float] = Field(None, ge=0, le=1)
    use_db_first: bool = True


class VarietyTargetsUpsert(BaseModel):
    diet_key: Optional[str] = None
    unique_veg_min: Optional[int] = Field(None, ge=0)
    unique_fruit_min: Optional[int] = Field(None, ge=0)
    protein_rotation_min_categories: Optional[int] = Field(None, ge=0)
    max_repeat_same_recipe_within_days: Optional[int] = Field(None, ge=1)
    favorites_repeat_boost: Optional[float] = Field(None, ge=0)


class ConfigRowSaved(BaseModel):
    id: UUID
    diet_key: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Plan payload
# ---------------------------------------------------------------------------


class IngredientRef(BaseModel):
    nevo_code: Optional[str] = Field(None, alias="nevoCode")
    display_name: Optional[str] = Field(None, alias="displayName")

    model_config = {"populate_by_name": True}


class MealIngredient(BaseModel):
    name: Optional[str] = None


class PlanMeal(BaseModel):
    name: Optional[str] = None
    slot: Optional[str] = None
    ingredient_refs: List[IngredientRef] = Field(
        default_factory=list, alias="ingredientRefs"
    )
    ingredients: List[MealIngredient] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class PlanDay(BaseModel):
    date: Optional[str] = None
    meals: List[PlanMeal] = Field(default_factory=list)


class MealPlan(BaseModel):
    days: List[PlanDay] = Field(default_factory=list)


class PlanCheckRequest(BaseModel):
    diet_key: Optional[str] = None
    plan: MealPlan


# ---------------------------------------------------------------------------
# Scorecard
# ---------------------------------------------------------------------------


class ScaledTargets(BaseModel):
    unique_veg_min: int
    unique_fruit_min: int
    protein_rotation_min_categories: int
    max_repeat_same_recipe_within_days: int


class MeetsTargets(BaseModel):
    meets_unique_veg_min: bool
    meets_unique_fruit_min: bool
    meets_protein_rotation: bool
    meets_repeat_window: Union[bool, Literal["unknown"]]


class RepeatCount(BaseModel):
    name: str
    count: int


class VarietyScorecard(BaseModel):
    status: ScorecardStatus
    unique_veg_count: int = 0
    unique_fruit_count: int = 0
    protein_unique_count: int = 0
    max_repeat_within_days: int = 0
    repeat_window_days: int = 0
    targets: ScaledTargets
    meets_targets: MeetsTargets
    top_repeats: List[RepeatCount] = Field(default_factory=list)


class CulinaryViolation(BaseModel):
    rule_code: str
    reason_code: str
    slot: str
    match_value: str
    day_index: int
    date: str
    slot_type: str


class PlanValidationResult(BaseModel):
    valid: bool
    scorecard: VarietyScorecard
    warnings: List[CulinaryViolation] = Field(default_factory=list)
