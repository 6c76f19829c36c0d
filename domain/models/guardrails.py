"""
Diet and guardrail rule models: category constraints and term-level recipe
adaptation rules.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    Text,
    TIMESTAMP,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base


class DietType(Base):
    """A diet that rules are attached to (e.g. Wahls paleo)"""

    __tablename__ = "diet_types"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class IngredientCategory(Base):
    __tablename__ = "ingredient_categories"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code = Column(Text, nullable=False, unique=True)
    name_nl = Column(Text, nullable=False)
    category_type = Column(Text, nullable=False, default="forbidden")
    is_active = Column(Boolean, nullable=False, default=True)

    items = relationship(
        "IngredientCategoryItem",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="IngredientCategoryItem.display_order",
    )

    __table_args__ = (
        CheckConstraint(
            "category_type IN ('forbidden', 'required')",
            name="ck_ingredient_categories_type",
        ),
    )


class IngredientCategoryItem(Base):
    __tablename__ = "ingredient_category_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    category_id = Column(
        UUID(as_uuid=True),
        ForeignKey("ingredient_categories.id", ondelete="CASCADE"),
        nullable=False,
    )
    term = Column(Text, nullable=False)
    term_nl = Column(Text)
    synonyms = Column(JSONB, nullable=False, default=list)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    category = relationship("IngredientCategory", back_populates="items")


class DietCategoryConstraint(Base):
    """Group-level policy: one ingredient category allowed/blocked for a diet"""

    __tablename__ = "diet_category_constraints"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    diet_type_id = Column(
        UUID(as_uuid=True),
        ForeignKey("diet_types.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category_id = Column(
        UUID(as_uuid=True),
        ForeignKey("ingredient_categories.id", ondelete="CASCADE"),
        nullable=False,
    )
    constraint_type = Column(Text, nullable=False, default="forbidden")
    rule_action = Column(Text, nullable=False, default="block")
    diet_logic = Column(Text)
    strictness = Column(Text, nullable=False, default="hard")
    # 1 = highest, 65500 = lowest
    priority = Column(Integer, nullable=False, default=100)
    rule_priority = Column(Integer, nullable=False, default=100)
    min_per_day = Column(Integer)
    min_per_week = Column(Integer)
    max_per_day = Column(Integer)
    max_per_week = Column(Integer)
    ai_instruction = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    is_paused = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    category = relationship("IngredientCategory")

    __table_args__ = (
        UniqueConstraint(
            "diet_type_id",
            "category_id",
            "rule_action",
            name="uq_diet_category_constraints_diet_category_action",
        ),
        CheckConstraint(
            "rule_priority BETWEEN 1 AND 65500", name="ck_constraints_rule_priority"
        ),
    )


class RecipeAdaptationRule(Base):
    """Term-level rule: a single ingredient term blocked for a diet"""

    __tablename__ = "recipe_adaptation_rules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    diet_type_id = Column(
        UUID(as_uuid=True),
        ForeignKey("diet_types.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    term = Column(Text, nullable=False)
    synonyms = Column(JSONB, nullable=False, default=list)
    rule_code = Column(Text, nullable=False)
    rule_label = Column(Text, nullable=False)
    substitution_suggestions = Column(JSONB, nullable=False, default=list)
    priority = Column(Integer, nullable=False, default=50)
    target = Column(Text, nullable=False, default="ingredient")
    match_mode = Column(Text, nullable=False, default="word_boundary")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("diet_type_id", "term", name="uq_recipe_rules_diet_term"),
    )


class RecipeAdaptationHeuristic(Base):
    __tablename__ = "recipe_adaptation_heuristics"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    diet_type_id = Column(
        UUID(as_uuid=True),
        ForeignKey("diet_types.id", ondelete="CASCADE"),
        nullable=False,
    )
    heuristic_type = Column(Text, nullable=False)
    terms = Column(JSONB, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )
