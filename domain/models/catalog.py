"""
Ingredient/product catalog models and product source configuration.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
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


class CanonicalIngredient(Base):
    __tablename__ = "canonical_ingredients"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class Store(Base):
    __tablename__ = "stores"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    base_url = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class StoreProduct(Base):
    __tablename__ = "store_products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    store_id = Column(
        UUID(as_uuid=True), ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    external_key = Column(Text, nullable=False)
    product_url = Column(Text)
    title = Column(Text, nullable=False)
    brand = Column(Text)
    gtin = Column(Text)
    price_cents = Column(Integer)
    category_path = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    store = relationship("Store")

    __table_args__ = (
        UniqueConstraint("store_id", "external_key", name="uq_store_products_external"),
    )


class IngredientStoreProductLink(Base):
    """A user's choice of store product for a canonical ingredient"""

    __tablename__ = "ingredient_store_product_links"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False)
    canonical_ingredient_id = Column(
        UUID(as_uuid=True),
        ForeignKey("canonical_ingredients.id", ondelete="CASCADE"),
        nullable=False,
    )
    store_id = Column(
        UUID(as_uuid=True), ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    store_product_id = Column(
        UUID(as_uuid=True),
        ForeignKey("store_products.id", ondelete="CASCADE"),
        nullable=False,
    )
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "store_id",
            "canonical_ingredient_id",
            name="uq_ingredient_store_product_links_user_store_ingredient",
        ),
    )


class ProductSourceConfig(Base):
    """Which barcode/product sources are enabled, in which order"""

    __tablename__ = "product_source_config"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    source = Column(Text, nullable=False, unique=True)
    is_enabled = Column(Boolean, nullable=False, default=False)
    priority = Column(Integer, nullable=False, default=1)
    config_json = Column(JSONB)
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("priority >= 1", name="ck_product_source_priority"),
    )
