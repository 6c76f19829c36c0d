from typing import List, Optional
from sqlalchemy.orm import Session
import logging
import uuid

from domain.models import PantryItem
from domain.schemas.pantry_schemas import PantryItemUpsert, PantryBulkUpsertResponse
from repositories import PantryRepository
from app.exceptions import NotFoundError, ServiceValidationError

logger = logging.getLogger("nutricoach.pantry")

BULK_BATCH_SIZE = 100


def _row(item: PantryItemUpsert) -> dict:
    return {
        "nevo_code": item.nevo_code.strip(),
        "available_g": item.available_g,
        "is_available": item.is_available,
    }


class PantryService:
    @staticmethod
    def load_availability(
        db: Session, user_id: uuid.UUID, nevo_codes: List[str]
    ) -> List[PantryItem]:
        """Pantry rows for the given NEVO codes; empty input short-circuits"""
        codes = [c.strip() for c in nevo_codes if c and c.strip()]
        if not codes:
            return []
        return PantryRepository(db).get_by_codes(user_id, codes)

    @staticmethod
    def list_items(db: Session, user_id: uuid.UUID) -> List[PantryItem]:
        return PantryRepository(db).get_by_user_id(user_id)

    @staticmethod
    def upsert_item(
        db: Session, user_id: uuid.UUID, item: PantryItemUpsert
    ) -> Optional[PantryItem]:
        """
        Insert or update one pantry row on (user_id, nevo_code).

        Returns:
            PantryItem: the row as stored, read back after commit
        """
        pantry_repo = PantryRepository(db)
        row = _row(item)
        try:
            pantry_repo.upsert_many(user_id, [row])
            db.commit()
        except Exception:
            db.rollback()
            logger.exception(
                "Error upserting pantry item %s for user %s", row["nevo_code"], user_id
            )
            raise
        logger.info("Upserted pantry item %s for user %s", row["nevo_code"], user_id)
        return pantry_repo.get_by_user_and_code(user_id, row["nevo_code"])

    @staticmethod
    def bulk_upsert(
        db: Session, user_id: uuid.UUID, items: List[PantryItemUpsert]
    ) -> PantryBulkUpsertResponse:
        """
        Upsert many rows in batches of BULK_BATCH_SIZE within one transaction.

        A code that appears more than once keeps its last occurrence; Postgres
        refuses to touch the same row twice in one INSERT ... ON CONFLICT.
        """
        if not items:
            return PantryBulkUpsertResponse(written=0, batches=0)

        by_code = {}
        for item in items:
            row = _row(item)
            by_code[row["nevo_code"]] = row
        rows = list(by_code.values())

        pantry_repo = PantryRepository(db)
        batches = 0
        try:
            for start in range(0, len(rows), BULK_BATCH_SIZE):
                pantry_repo.upsert_many(user_id, rows[start : start + BULK_BATCH_SIZE])
                batches += 1
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Error bulk upserting pantry for user %s", user_id)
            raise

        logger.info(
            f"Bulk upserted {len(rows)} pantry items in {batches} batch(es) for user {user_id}"
        )
        return PantryBulkUpsertResponse(written=len(rows), batches=batches)

    @staticmethod
    def delete_item(db: Session, user_id: uuid.UUID, nevo_code: str) -> bool:
        code = (nevo_code or "").strip()
        if not code:
            raise ServiceValidationError("nevo_code must not be empty")
        pantry_repo = PantryRepository(db)
        try:
            removed = pantry_repo.delete_by_code(user_id, code)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Error deleting pantry item %s for user %s", code, user_id)
            raise
        if not removed:
            raise NotFoundError(f"Pantry item {code} not found")
        return True

    @staticmethod
    def delete_all(db: Session, user_id: uuid.UUID) -> int:
        pantry_repo = PantryRepository(db)
        try:
            removed = pantry_repo.delete_all_for_user(user_id)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Error clearing pantry for user %s", user_id)
            raise
        logger.info("Cleared %d pantry items for user %s", removed, user_id)
        return removed
