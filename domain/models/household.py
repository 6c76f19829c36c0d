"""
Household avoid-rule model.
"""

from sqlalchemy import (
    Column,
    Text,
    TIMESTAMP,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base


class HouseholdAvoidRule(Base):
    """Allergen / avoid / warning rule shared by everyone in a household"""

    __tablename__ = "household_avoid_rules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    household_id = Column(
        UUID(as_uuid=True),
        ForeignKey("households.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    rule_type = Column(Text, nullable=False)
    match_mode = Column(Text, nullable=False)
    match_value = Column(Text, nullable=False)
    strictness = Column(Text, nullable=False, default="hard")
    note = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    household = relationship("Household", back_populates="avoid_rules")

    __table_args__ = (
        UniqueConstraint(
            "household_id",
            "match_mode",
            "match_value",
            name="uq_household_avoid_rules_match",
        ),
    )
