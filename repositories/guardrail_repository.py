"""
Guardrail Repository - diet types, category constraints, recipe adaptation
rules and heuristics
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session, joinedload

from repositories.base import BaseRepository
from domain.models import (
    DietType,
    DietCategoryConstraint,
    IngredientCategory,
    RecipeAdaptationRule,
    RecipeAdaptationHeuristic,
)


class GuardrailRepository(BaseRepository[DietCategoryConstraint]):
    """Repository for guardrail rule rows"""

    def __init__(self, db: Session):
        super().__init__(db, DietCategoryConstraint)

    # -- diets / categories ------------------------------------------------

    def get_diet(self, diet_id: UUID) -> Optional[DietType]:
        return self.db.query(DietType).filter(DietType.id == diet_id).first()

    def get_category(self, category_id: UUID) -> Optional[IngredientCategory]:
        return (
            self.db.query(IngredientCategory)
            .filter(IngredientCategory.id == category_id)
            .first()
        )

    # -- constraints -------------------------------------------------------

    def load_constraints(self, diet_id: UUID) -> List[DietCategoryConstraint]:
        """All constraints (active or not) with category and items loaded"""
        return (
            self.db.query(DietCategoryConstraint)
            .options(
                joinedload(DietCategoryConstraint.category).joinedload(
                    IngredientCategory.items
                )
            )
            .filter(DietCategoryConstraint.diet_type_id == diet_id)
            .order_by(
                DietCategoryConstraint.rule_priority.asc(),
                DietCategoryConstraint.priority.asc(),
            )
            .all()
        )

    def get_constraint(self, constraint_id: UUID) -> Optional[DietCategoryConstraint]:
        return self.get_by_id(constraint_id)

    def find_constraint(
        self, diet_id: UUID, category_id: UUID, rule_action: str
    ) -> Optional[DietCategoryConstraint]:
        return (
            self.db.query(DietCategoryConstraint)
            .filter(
                DietCategoryConstraint.diet_type_id == diet_id,
                DietCategoryConstraint.category_id == category_id,
                DietCategoryConstraint.rule_action == rule_action,
            )
            .first()
        )

    # -- recipe adaptation rules -------------------------------------------

    def load_recipe_rules(self, diet_id: UUID) -> List[RecipeAdaptationRule]:
        return (
            self.db.query(RecipeAdaptationRule)
            .filter(RecipeAdaptationRule.diet_type_id == diet_id)
            .order_by(RecipeAdaptationRule.priority.desc())
            .all()
        )

    def get_recipe_rule(self, rule_id: UUID) -> Optional[RecipeAdaptationRule]:
        return (
            self.db.query(RecipeAdaptationRule)
            .filter(RecipeAdaptationRule.id == rule_id)
            .first()
        )

    def count_active_recipe_rules(self, diet_id: UUID) -> int:
        return (
            self.db.query(RecipeAdaptationRule)
            .filter(
                RecipeAdaptationRule.diet_type_id == diet_id,
                RecipeAdaptationRule.is_active.is_(True),
            )
            .count()
        )

    def top_active_recipe_rules(
        self, diet_id: UUID, limit: int
    ) -> List[RecipeAdaptationRule]:
        return (
            self.db.query(RecipeAdaptationRule)
            .filter(
                RecipeAdaptationRule.diet_type_id == diet_id,
                RecipeAdaptationRule.is_active.is_(True),
            )
            .order_by(
                RecipeAdaptationRule.priority.desc(), RecipeAdaptationRule.term.asc()
            )
            .limit(limit)
            .all()
        )

    # -- heuristics --------------------------------------------------------

    def load_heuristics(self, diet_id: UUID) -> List[RecipeAdaptationHeuristic]:
        return (
            self.db.query(RecipeAdaptationHeuristic)
            .filter(
                RecipeAdaptationHeuristic.diet_type_id == diet_id,
                RecipeAdaptationHeuristic.is_active.is_(True),
            )
            .all()
        )
