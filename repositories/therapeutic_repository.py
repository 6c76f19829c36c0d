"""
Therapeutic Repository - protocols and their targets, supplements, supplement
rules and when_json snippets
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import (
    TherapeuticProtocol,
    TherapeuticProtocolTarget,
    TherapeuticProtocolSupplement,
    TherapeuticSupplementRule,
    WhenJsonSnippet,
)


class TherapeuticRepository(BaseRepository[TherapeuticProtocol]):
    def __init__(self, db: Session):
        super().__init__(db, TherapeuticProtocol)

    def get_by_key(self, protocol_key: str) -> Optional[TherapeuticProtocol]:
        return (
            self.db.query(TherapeuticProtocol)
            .filter(TherapeuticProtocol.protocol_key == protocol_key)
            .first()
        )

    # -- targets -----------------------------------------------------------

    def list_targets(self, protocol_id: UUID) -> List[TherapeuticProtocolTarget]:
        return (
            self.db.query(TherapeuticProtocolTarget)
            .filter(TherapeuticProtocolTarget.protocol_id == protocol_id)
            .order_by(
                TherapeuticProtocolTarget.period,
                TherapeuticProtocolTarget.target_kind,
                TherapeuticProtocolTarget.target_key,
            )
            .all()
        )

    def get_target(self, target_id: UUID) -> Optional[TherapeuticProtocolTarget]:
        return (
            self.db.query(TherapeuticProtocolTarget)
            .filter(TherapeuticProtocolTarget.id == target_id)
            .first()
        )

    def find_target(
        self, protocol_id: UUID, period: str, target_kind: str, target_key: str
    ) -> Optional[TherapeuticProtocolTarget]:
        return (
            self.db.query(TherapeuticProtocolTarget)
            .filter(
                TherapeuticProtocolTarget.protocol_id == protocol_id,
                TherapeuticProtocolTarget.period == period,
                TherapeuticProtocolTarget.target_kind == target_kind,
                TherapeuticProtocolTarget.target_key == target_key,
            )
            .first()
        )

    # -- supplements -------------------------------------------------------

    def list_supplements(
        self, protocol_id: UUID
    ) -> List[TherapeuticProtocolSupplement]:
        return (
            self.db.query(TherapeuticProtocolSupplement)
            .filter(TherapeuticProtocolSupplement.protocol_id == protocol_id)
            .order_by(TherapeuticProtocolSupplement.supplement_key)
            .all()
        )

    def get_supplement(
        self, supplement_id: UUID
    ) -> Optional[TherapeuticProtocolSupplement]:
        return (
            self.db.query(TherapeuticProtocolSupplement)
            .filter(TherapeuticProtocolSupplement.id == supplement_id)
            .first()
        )

    def find_supplement(
        self, protocol_id: UUID, supplement_key: str
    ) -> Optional[TherapeuticProtocolSupplement]:
        return (
            self.db.query(TherapeuticProtocolSupplement)
            .filter(
                TherapeuticProtocolSupplement.protocol_id == protocol_id,
                TherapeuticProtocolSupplement.supplement_key == supplement_key,
            )
            .first()
        )

    # -- supplement rules --------------------------------------------------

    def list_rules(
        self, protocol_id: UUID, active_only: bool = False
    ) -> List[TherapeuticSupplementRule]:
        query = self.db.query(TherapeuticSupplementRule).filter(
            TherapeuticSupplementRule.protocol_id == protocol_id
        )
        if active_only:
            query = query.filter(TherapeuticSupplementRule.is_active.is_(True))
        return query.order_by(
            TherapeuticSupplementRule.supplement_key,
            TherapeuticSupplementRule.rule_key,
        ).all()

    def get_rule(self, rule_id: UUID) -> Optional[TherapeuticSupplementRule]:
        return (
            self.db.query(TherapeuticSupplementRule)
            .filter(TherapeuticSupplementRule.id == rule_id)
            .first()
        )

    def find_rule(
        self, protocol_id: UUID, supplement_key: str, rule_key: str
    ) -> Optional[TherapeuticSupplementRule]:
        return (
            self.db.query(TherapeuticSupplementRule)
            .filter(
                TherapeuticSupplementRule.protocol_id == protocol_id,
                TherapeuticSupplementRule.supplement_key == supplement_key,
                TherapeuticSupplementRule.rule_key == rule_key,
            )
            .first()
        )

    # -- snippets ----------------------------------------------------------

    def list_snippets(self) -> List[WhenJsonSnippet]:
        return (
            self.db.query(WhenJsonSnippet)
            .filter(WhenJsonSnippet.is_active.is_(True))
            .order_by(WhenJsonSnippet.snippet_key)
            .all()
        )
