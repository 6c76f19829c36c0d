from typing import List
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
import logging
import uuid

from domain.enums import HouseholdMatchMode
from domain.models import HouseholdAvoidRule
from domain.schemas.household_schemas import HouseholdAvoidRuleCreate
from repositories import HouseholdRuleRepository, UserRepository
from app.exceptions import NotFoundError, ServiceValidationError

logger = logging.getLogger("nutricoach.household")

MATCH_VALUE_MAX = 80
NOTE_MAX = 120
DUPLICATE_MESSAGE = "Deze regel bestaat al (zelfde type en waarde voor dit huishouden)."


class HouseholdRuleService:
    @staticmethod
    def _household_id(db: Session, user_id: uuid.UUID):
        return UserRepository(db).get_household_id(user_id)

    @staticmethod
    def list_rules(db: Session, user_id: uuid.UUID) -> List[HouseholdAvoidRule]:
        """Rules of the caller's household, newest first; no household means no rules"""
        household_id = HouseholdRuleService._household_id(db, user_id)
        if household_id is None:
            return []
        return HouseholdRuleRepository(db).list_for_household(household_id)

    @staticmethod
    def create_rule(
        db: Session, user_id: uuid.UUID, data: HouseholdAvoidRuleCreate
    ) -> HouseholdAvoidRule:
        """
        Add an avoid rule to the caller's household.

        Term values are lowercased so 'Pinda' and 'pinda' collide; NEVO codes
        are kept as given (trimmed).

        Raises:
            ServiceValidationError: no household, bad lengths, or a duplicate
        """
        value = (data.match_value or "").strip()
        if not value:
            raise ServiceValidationError("Matchwaarde is verplicht")
        if len(value) > MATCH_VALUE_MAX:
            raise ServiceValidationError("Matchwaarde maximaal 80 tekens")
        if data.match_mode == HouseholdMatchMode.TERM:
            value = value.lower()

        note = (data.note or "").strip() or None
        if note is not None and len(note) > NOTE_MAX:
            raise ServiceValidationError("Notitie maximaal 120 tekens")

        household_id = HouseholdRuleService._household_id(db, user_id)
        if household_id is None:
            raise ServiceValidationError("Huishouden ontbreekt")

        repo = HouseholdRuleRepository(db)
        if repo.find_duplicate(household_id, data.match_mode.value, value):
            raise ServiceValidationError(DUPLICATE_MESSAGE)

        rule = HouseholdAvoidRule(
            household_id=household_id,
            rule_type=data.rule_type.value,
            match_mode=data.match_mode.value,
            match_value=value,
            strictness=data.strictness.value,
            note=note,
        )
        try:
            rule = repo.create(rule)
        except IntegrityError:
            # lost a race with a concurrent insert of the same rule
            db.rollback()
            raise ServiceValidationError(DUPLICATE_MESSAGE)
        except Exception:
            db.rollback()
            logger.exception("Error creating household rule for household %s", household_id)
            raise
        logger.info(
            "Created household rule %s (%s:%s) for household %s",
            rule.id,
            rule.match_mode,
            rule.match_value,
            household_id,
        )
        return rule

    @staticmethod
    def delete_rule(db: Session, user_id: uuid.UUID, rule_id: uuid.UUID) -> bool:
        household_id = HouseholdRuleService._household_id(db, user_id)
        if household_id is None:
            raise ServiceValidationError("Huishouden ontbreekt")

        repo = HouseholdRuleRepository(db)
        rule = repo.get_in_household(household_id, rule_id)
        if rule is None:
            raise NotFoundError(f"Household rule {rule_id} not found")
        try:
            db.delete(rule)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Error deleting household rule %s", rule_id)
            raise
        logger.info("Deleted household rule %s", rule_id)
        return True
