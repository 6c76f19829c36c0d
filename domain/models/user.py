"""
User-related database models.

Accounts themselves live with the identity provider; these tables only hold
what the application attaches to a user id.
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


class Household(Base):
    """A group of users sharing avoid rules"""

    __tablename__ = "households"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    avoid_rules = relationship(
        "HouseholdAvoidRule", back_populates="household", cascade="all, delete-orphan"
    )


class UserPreference(Base):
    """Per-user settings, including household membership"""

    __tablename__ = "user_preferences"

    user_id = Column(UUID(as_uuid=True), primary_key=True)
    household_id = Column(
        UUID(as_uuid=True), ForeignKey("households.id", ondelete="SET NULL")
    )
    diet_key = Column(Text)
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class UserRole(Base):
    """Role assignments (admin checks)"""

    __tablename__ = "user_roles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    role = Column(Text, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)
