"""
Generator Config Repository - per-diet generator settings, variety targets and
culinary rules
"""

from typing import List, Optional, Type, TypeVar
from sqlalchemy.orm import Session

from domain.models import (
    MealPlanGeneratorSettings,
    MealPlanVarietyTargets,
    MealPlanCulinaryRule,
)

ConfigRow = TypeVar("ConfigRow", MealPlanGeneratorSettings, MealPlanVarietyTargets)


class GeneratorConfigRepository:
    """Reads the newest active config row for a diet key, falling back to the global row"""

    def __init__(self, db: Session):
        self.db = db

    def _newest_active(
        self, model: Type[ConfigRow], diet_key: Optional[str]
    ) -> Optional[ConfigRow]:
        query = self.db.query(model).filter(model.is_active.is_(True))
        if diet_key is None:
            query = query.filter(model.diet_key.is_(None))
        else:
            query = query.filter(model.diet_key == diet_key)
        return query.order_by(model.updated_at.desc()).first()

    def _resolve(
        self, model: Type[ConfigRow], diet_key: Optional[str]
    ) -> Optional[ConfigRow]:
        if diet_key:
            row = self._newest_active(model, diet_key)
            if row is not None:
                return row
        return self._newest_active(model, None)

    def get_settings(self, diet_key: Optional[str]) -> Optional[MealPlanGeneratorSettings]:
        return self._resolve(MealPlanGeneratorSettings, diet_key)

    def get_variety_targets(
        self, diet_key: Optional[str]
    ) -> Optional[MealPlanVarietyTargets]:
        return self._resolve(MealPlanVarietyTargets, diet_key)

    def get_exact_settings(self, diet_key: Optional[str]) -> Optional[MealPlanGeneratorSettings]:
        return self._newest_active(MealPlanGeneratorSettings, diet_key)

    def get_exact_variety_targets(
        self, diet_key: Optional[str]
    ) -> Optional[MealPlanVarietyTargets]:
        return self._newest_active(MealPlanVarietyTargets, diet_key)

    def list_active_culinary_rules(self) -> List[MealPlanCulinaryRule]:
        return (
            self.db.query(MealPlanCulinaryRule)
            .filter(MealPlanCulinaryRule.is_active.is_(True))
            .order_by(MealPlanCulinaryRule.priority.desc())
            .all()
        )
