"""
Meal plan generator configuration models.

Rows with diet_key NULL are the global defaults; a row with a diet_key
overrides them for that diet.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    Numeric,
    Text,
    TIMESTAMP,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base


class MealPlanGeneratorSettings(Base):
    __tablename__ = "meal_plan_generator_settings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    diet_key = Column(Text, index=True)
    min_history_reuse_ratio = Column(Numeric)
    target_prefill_ratio = Column(Numeric)
    recency_window_days = Column(Integer)
    max_ai_generated_slots_per_week = Column(Integer)
    min_db_recipe_coverage_ratio = Column(Numeric)
    use_db_first = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    schema_version = Column(Integer, nullable=False, default=1)
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class MealPlanVarietyTargets(Base):
    __tablename__ = "meal_plan_variety_targets"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    diet_key = Column(Text, index=True)
    unique_veg_min = Column(Integer)
    unique_fruit_min = Column(Integer)
    protein_rotation_min_categories = Column(Integer)
    max_repeat_same_recipe_within_days = Column(Integer)
    favorites_repeat_boost = Column(Numeric)
    is_active = Column(Boolean, nullable=False, default=True)
    schema_version = Column(Integer, nullable=False, default=1)
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class MealPlanCulinaryRule(Base):
    __tablename__ = "meal_plan_culinary_rules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    rule_code = Column(Text, nullable=False, unique=True)
    slot_type = Column(Text, nullable=False)
    match_mode = Column(Text, nullable=False, default="term")
    match_value = Column(Text, nullable=False)
    action = Column(Text, nullable=False, default="block")
    reason_code = Column(Text, nullable=False)
    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    schema_version = Column(Integer, nullable=False, default=1)
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )
