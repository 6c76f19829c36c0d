"""
Household Rule Repository - avoid rules shared by a household
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import HouseholdAvoidRule


class HouseholdRuleRepository(BaseRepository[HouseholdAvoidRule]):
    def __init__(self, db: Session):
        super().__init__(db, HouseholdAvoidRule)

    def list_for_household(self, household_id: UUID) -> List[HouseholdAvoidRule]:
        return (
            self.db.query(HouseholdAvoidRule)
            .filter(HouseholdAvoidRule.household_id == household_id)
            .order_by(HouseholdAvoidRule.created_at.desc())
            .all()
        )

    def find_duplicate(
        self, household_id: UUID, match_mode: str, match_value: str
    ) -> Optional[HouseholdAvoidRule]:
        return (
            self.db.query(HouseholdAvoidRule)
            .filter(
                HouseholdAvoidRule.household_id == household_id,
                HouseholdAvoidRule.match_mode == match_mode,
                HouseholdAvoidRule.match_value == match_value,
            )
            .first()
        )

    def get_in_household(
        self, household_id: UUID, rule_id: UUID
    ) -> Optional[HouseholdAvoidRule]:
        return (
            self.db.query(HouseholdAvoidRule)
            .filter(
                HouseholdAvoidRule.id == rule_id,
                HouseholdAvoidRule.household_id == household_id,
            )
            .first()
        )
