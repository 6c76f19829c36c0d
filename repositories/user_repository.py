"""
User Repository - roles and household membership for an identity-provider user id
"""

from typing import Optional
from uuid import UUID
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import UserPreference, UserRole


class UserRepository(BaseRepository[UserRole]):
    """Repository for per-user role and preference lookups"""

    def __init__(self, db: Session):
        super().__init__(db, UserRole)

    def has_role(self, user_id: UUID, role: str) -> bool:
        return (
            self.db.query(UserRole)
            .filter(UserRole.user_id == user_id, UserRole.role == role)
            .first()
            is not None
        )

    def get_preferences(self, user_id: UUID) -> Optional[UserPreference]:
        return (
            self.db.query(UserPreference)
            .filter(UserPreference.user_id == user_id)
            .first()
        )

    def get_household_id(self, user_id: UUID) -> Optional[UUID]:
        prefs = self.get_preferences(user_id)
        return prefs.household_id if prefs else None
