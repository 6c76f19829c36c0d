"""
Repository layer for data access.
"""

from repositories.base import BaseRepository
from repositories.user_repository import UserRepository
from repositories.pantry_repository import PantryRepository
from repositories.guardrail_repository import GuardrailRepository
from repositories.household_rule_repository import HouseholdRuleRepository
from repositories.therapeutic_repository import TherapeuticRepository
from repositories.generator_config_repository import GeneratorConfigRepository
from repositories.catalog_repository import CatalogRepository
from repositories.product_source_repository import ProductSourceRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "PantryRepository",
    "GuardrailRepository",
    "HouseholdRuleRepository",
    "TherapeuticRepository",
    "GeneratorConfigRepository",
    "CatalogRepository",
    "ProductSourceRepository",
]
