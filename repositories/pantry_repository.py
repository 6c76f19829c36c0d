"""
Pantry Repository - Data access layer for pantry operations
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import and_, func
from sqlalchemy.dialects.postgresql import insert as pg_insert

from repositories.base import BaseRepository
from domain.models import PantryItem


class PantryRepository(BaseRepository[PantryItem]):
    """Repository for pantry item data access"""

    def __init__(self, db: Session):
        super().__init__(db, PantryItem)

    def get_by_user_id(self, user_id: UUID) -> List[PantryItem]:
        """Get all pantry items for a user, ordered by NEVO code"""
        return (
            self.db.query(PantryItem)
            .filter(PantryItem.user_id == user_id)
            .order_by(PantryItem.nevo_code)
            .all()
        )

    def get_by_codes(self, user_id: UUID, nevo_codes: List[str]) -> List[PantryItem]:
        return (
            self.db.query(PantryItem)
            .filter(
                and_(
                    PantryItem.user_id == user_id,
                    PantryItem.nevo_code.in_(nevo_codes),
                )
            )
            .all()
        )

    def get_by_user_and_code(
        self, user_id: UUID, nevo_code: str
    ) -> Optional[PantryItem]:
        return (
            self.db.query(PantryItem)
            .filter(
                and_(
                    PantryItem.user_id == user_id,
                    PantryItem.nevo_code == nevo_code,
                )
            )
            .first()
        )

    def delete_by_code(self, user_id: UUID, nevo_code: str) -> int:
        """Delete one row; returns number of rows removed (0 or 1)"""
        return (
            self.db.query(PantryItem)
            .filter(
                and_(
                    PantryItem.user_id == user_id,
                    PantryItem.nevo_code == nevo_code,
                )
            )
            .delete(synchronize_session=False)
        )

    def delete_all_for_user(self, user_id: UUID) -> int:
        return (
            self.db.query(PantryItem)
            .filter(PantryItem.user_id == user_id)
            .delete(synchronize_session=False)
        )

    def upsert_many(self, user_id: UUID, rows: List[dict]) -> int:
        """
        INSERT ... ON CONFLICT (user_id, nevo_code) DO UPDATE for one batch.
        Does not commit.
        """
        if not rows:
            return 0
        stmt = pg_insert(PantryItem).values(
            [{"user_id": user_id, **row} for row in rows]
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[PantryItem.user_id, PantryItem.nevo_code],
            set_={
                "available_g": stmt.excluded.available_g,
                "is_available": stmt.excluded.is_available,
                "updated_at": func.now(),
            },
        )
        self.db.execute(stmt)
        return len(rows)
