"""
Therapeutic protocol models: protocols with nutrient targets, supplements and
conditional supplement rules.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Numeric,
    Text,
    TIMESTAMP,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base


class TherapeuticProtocol(Base):
    __tablename__ = "therapeutic_protocols"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    protocol_key = Column(Text, nullable=False, unique=True)
    name_nl = Column(Text, nullable=False)
    description_nl = Column(Text)
    version = Column(Text)
    is_active = Column(Boolean, nullable=False, default=False)
    source_refs = Column(JSONB, nullable=False, default=list)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    targets = relationship(
        "TherapeuticProtocolTarget", back_populates="protocol", cascade="all, delete-orphan"
    )
    supplements = relationship(
        "TherapeuticProtocolSupplement",
        back_populates="protocol",
        cascade="all, delete-orphan",
    )


class TherapeuticProtocolTarget(Base):
    __tablename__ = "therapeutic_protocol_targets"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    protocol_id = Column(
        UUID(as_uuid=True),
        ForeignKey("therapeutic_protocols.id", ondelete="CASCADE"),
        nullable=False,
    )
    period = Column(Text, nullable=False)
    target_kind = Column(Text, nullable=False)
    target_key = Column(Text, nullable=False)
    value_num = Column(Numeric, nullable=False)
    unit = Column(Text)
    value_type = Column(Text, nullable=False)
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    protocol = relationship("TherapeuticProtocol", back_populates="targets")

    __table_args__ = (
        UniqueConstraint(
            "protocol_id",
            "period",
            "target_kind",
            "target_key",
            name="uq_protocol_targets_key",
        ),
        CheckConstraint("value_num >= 0", name="ck_protocol_targets_value_nonneg"),
    )


class TherapeuticProtocolSupplement(Base):
    __tablename__ = "therapeutic_protocol_supplements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    protocol_id = Column(
        UUID(as_uuid=True),
        ForeignKey("therapeutic_protocols.id", ondelete="CASCADE"),
        nullable=False,
    )
    supplement_key = Column(Text, nullable=False)
    label_nl = Column(Text, nullable=False)
    dosage_text = Column(Text)
    notes_nl = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    protocol = relationship("TherapeuticProtocol", back_populates="supplements")

    __table_args__ = (
        UniqueConstraint(
            "protocol_id", "supplement_key", name="uq_protocol_supplements_key"
        ),
    )


class TherapeuticSupplementRule(Base):
    __tablename__ = "therapeutic_protocol_supplement_rules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    protocol_id = Column(
        UUID(as_uuid=True),
        ForeignKey("therapeutic_protocols.id", ondelete="CASCADE"),
        nullable=False,
    )
    supplement_key = Column(Text, nullable=False)
    rule_key = Column(Text, nullable=False)
    kind = Column(Text, nullable=False)
    severity = Column(Text, nullable=False)
    when_json = Column(JSONB)
    message_nl = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "protocol_id",
            "supplement_key",
            "rule_key",
            name="uq_supplement_rules_key",
        ),
    )


class WhenJsonSnippet(Base):
    """Reusable when_json templates offered in the protocol editor"""

    __tablename__ = "therapeutic_when_json_snippets"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    snippet_key = Column(Text, nullable=False, unique=True)
    label_nl = Column(Text, nullable=False)
    description_nl = Column(Text)
    template_json = Column(JSONB, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )
