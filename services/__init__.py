"""Services package - Business logic layer"""

from services.pantry_service import PantryService
from services.product_lookup_service import ProductLookupService
from services.guardrails_service import GuardrailsService
from services.household_rule_service import HouseholdRuleService
from services.therapeutic_service import TherapeuticService
from services.generator_config_service import GeneratorConfigService
from services.catalog_service import CatalogService

# Note: guardrails_ruleset, guardrails_evaluator, when_json, variety_scorecard
# and culinary_coherence hold pure functions, not classes

__all__ = [
    "PantryService",
    "ProductLookupService",
    "GuardrailsService",
    "HouseholdRuleService",
    "TherapeuticService",
    "GeneratorConfigService",
    "CatalogService",
]
