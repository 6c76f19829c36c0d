"""
Product lookup orchestration over the enabled product sources, plus the admin
operations on product_source_config.
"""

import logging
import re
from typing import List, Optional, Union

import httpx
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from adapters import AhConfig, AlbertHeijnAdapter, OpenFoodFactsAdapter
from app.config import settings
from app.exceptions import ConflictError, NotFoundError, ServiceValidationError
from domain.enums import LookupFailureReason, ProductSource
from domain.models import ProductSourceConfig
from domain.schemas.product_schemas import (
    ProductLookupResult,
    ProductSearchResult,
    ProductSourceConfigResponse,
    ProductSourceConfigUpdate,
    SourceConnectionResult,
)
from repositories import ProductSourceRepository

logger = logging.getLogger("nutricoach.products")

# AH first so a hit can link to the shop, then OFF, then anything else
BARCODE_LOOKUP_ORDER = {
    ProductSource.ALBERT_HEIJN.value: 0,
    ProductSource.OPEN_FOOD_FACTS.value: 1,
}

Adapter = Union[OpenFoodFactsAdapter, AlbertHeijnAdapter]

_WHITESPACE = re.compile(r"\s")


def barcode_lookup_order(source: str) -> int:
    return BARCODE_LOOKUP_ORDER.get(source, 2)


def _to_response(row: ProductSourceConfig) -> ProductSourceConfigResponse:
    return ProductSourceConfigResponse(
        id=row.id,
        source=row.source,
        is_enabled=bool(row.is_enabled),
        priority=int(row.priority),
        has_credentials=bool(row.config_json),
        updated_at=row.updated_at,
    )


class ProductLookupService:
    @staticmethod
    def build_adapter(db: Session, client: httpx.Client, source: str) -> Optional[Adapter]:
        """Adapter for a source id, or None when the source is unknown"""
        if source == ProductSource.OPEN_FOOD_FACTS.value:
            return OpenFoodFactsAdapter(
                client,
                settings.open_food_facts_base_url,
                settings.open_food_facts_user_agent,
            )
        if source == ProductSource.ALBERT_HEIJN.value:
            raw = ProductSourceRepository(db).get_config_json(source)
            config = AhConfig.from_json(
                raw,
                default_base_url=settings.albert_heijn_base_url,
                default_client_id=settings.albert_heijn_client_id,
            )
            return AlbertHeijnAdapter(client, config)
        return None

    @staticmethod
    def lookup_by_barcode(
        db: Session, client: httpx.Client, barcode: str
    ) -> ProductLookupResult:
        """
        Try every enabled source in barcode lookup order and return the first hit.

        not_found moves on to the next source; rate_limited or error stops the
        lookup and is returned as is. An Open Food Facts hit is enriched with an
        Albert Heijn product URL (search by name) when AH is enabled.
        """
        code = _WHITESPACE.sub("", barcode or "")
        if not code:
            return ProductLookupResult.miss(LookupFailureReason.ERROR, "Lege barcode")

        enabled = ProductSourceRepository(db).list_enabled()
        if not enabled:
            return ProductLookupResult.miss(
                LookupFailureReason.ERROR, "Geen productbronnen actief"
            )

        sources = sorted(
            (row.source for row in enabled), key=barcode_lookup_order
        )
        ah_enabled = ProductSource.ALBERT_HEIJN.value in sources

        for source in sources:
            adapter = ProductLookupService.build_adapter(db, client, source)
            if adapter is None:
                return ProductLookupResult.miss(LookupFailureReason.ERROR, "Onbekende bron")

            result = adapter.get_by_barcode(code)
            if result.found:
                if (
                    source == ProductSource.OPEN_FOOD_FACTS.value
                    and ah_enabled
                    and result.product.name.strip()
                ):
                    ProductLookupService._attach_ah_url(db, client, result)
                logger.info("Barcode %s found via %s", code, source)
                return result

            if result.reason in (LookupFailureReason.RATE_LIMITED, LookupFailureReason.ERROR):
                logger.warning(
                    "Barcode lookup via %s stopped: %s %s", source, result.reason.value, result.message
                )
                return result

        return ProductLookupResult.miss(LookupFailureReason.NOT_FOUND)

    @staticmethod
    def _attach_ah_url(db: Session, client: httpx.Client, result: ProductLookupResult):
        ah = ProductLookupService.build_adapter(db, client, ProductSource.ALBERT_HEIJN.value)
        try:
            search = ah.search(result.product.name, 1)
        except (httpx.HTTPError, ValueError) as e:
            logger.info("AH enrichment skipped for %s: %s", result.product.barcode, e)
            return
        if search.ok and search.products and search.products[0].product_url:
            result.product.product_url = search.products[0].product_url

    @staticmethod
    def search_products(
        db: Session, client: httpx.Client, query: str, source: str, limit: int = 10
    ) -> ProductSearchResult:
        adapter = ProductLookupService.build_adapter(db, client, source)
        if adapter is None:
            return ProductSearchResult.failed(LookupFailureReason.ERROR, "Onbekende bron")
        return adapter.search(query, limit)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    @staticmethod
    def list_source_config(db: Session) -> List[ProductSourceConfigResponse]:
        return [_to_response(row) for row in ProductSourceRepository(db).list_all()]

    @staticmethod
    def update_source_config(
        db: Session, source: str, changes: ProductSourceConfigUpdate
    ) -> ProductSourceConfigResponse:
        repo = ProductSourceRepository(db)
        row = repo.get_by_source(source)
        if row is None:
            raise NotFoundError(f"Product source {source} not found")

        fields = changes.model_dump(exclude_unset=True)
        if not fields:
            return _to_response(row)
        if "priority" in fields and fields["priority"] is None:
            raise ServiceValidationError("priority must be >= 1")

        try:
            for key, value in fields.items():
                setattr(row, key, value)
            repo.update(row)
        except IntegrityError as e:
            db.rollback()
            raise ConflictError(f"Could not update product source {source}", details={"error": str(e.orig)})
        except Exception:
            db.rollback()
            logger.exception("Error updating product source %s", source)
            raise

        logger.info("Updated product source %s: %s", source, sorted(fields))
        return _to_response(row)

    @staticmethod
    def test_source_connection(
        db: Session, client: httpx.Client, source: str
    ) -> SourceConnectionResult:
        adapter = ProductLookupService.build_adapter(db, client, source)
        if adapter is None:
            return SourceConnectionResult(ok=False, error="Onbekende bron")
        try:
            return adapter.test_connection()
        except httpx.HTTPError as e:
            logger.warning("Connection test for %s failed: %s", source, e)
            return SourceConnectionResult(ok=False, error=str(e) or "Onbekende fout")
