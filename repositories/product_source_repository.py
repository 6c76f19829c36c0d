"""
Product Source Repository - which product sources are enabled and their config
"""

from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import ProductSourceConfig


class ProductSourceRepository(BaseRepository[ProductSourceConfig]):
    def __init__(self, db: Session):
        super().__init__(db, ProductSourceConfig)

    def list_all(self) -> List[ProductSourceConfig]:
        return (
            self.db.query(ProductSourceConfig)
            .order_by(ProductSourceConfig.priority.asc())
            .all()
        )

    def list_enabled(self) -> List[ProductSourceConfig]:
        return (
            self.db.query(ProductSourceConfig)
            .filter(ProductSourceConfig.is_enabled.is_(True))
            .order_by(ProductSourceConfig.priority.asc())
            .all()
        )

    def get_by_source(self, source: str) -> Optional[ProductSourceConfig]:
        return (
            self.db.query(ProductSourceConfig)
            .filter(ProductSourceConfig.source == source)
            .first()
        )

    def get_config_json(self, source: str) -> Optional[Dict[str, Any]]:
        row = self.get_by_source(source)
        if row is None or not row.config_json:
            return None
        return row.config_json
