"""
Pantry models.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Text,
    TIMESTAMP,
    Numeric,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base


class PantryItem(Base):
    """What a user has at home, keyed by NEVO food code"""

    __tablename__ = "pantry_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    nevo_code = Column(Text, nullable=False)
    available_g = Column(Numeric)
    is_available = Column(Boolean, nullable=False, default=True, server_default="true")
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "nevo_code", name="uq_pantry_items_user_nevo"),
        CheckConstraint(
            "available_g IS NULL OR available_g >= 0", name="ck_pantry_available_nonneg"
        ),
    )
