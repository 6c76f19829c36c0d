"""
Domain schemas package - Pydantic models for validation.
"""

from domain.schemas.pantry_schemas import (
    PantryItemUpsert,
    PantryBulkUpsertRequest,
    PantryAvailabilityRequest,
    PantryItemResponse,
    PantryBulkUpsertResponse,
)
from domain.schemas.product_schemas import (
    ExternalProduct,
    ProductLookupResult,
    ProductSearchResult,
    ProductSourceConfigResponse,
    ProductSourceConfigUpdate,
    SourceConnectionResult,
)
from domain.schemas.guardrail_schemas import (
    ConstraintRef,
    RecipeRuleRef,
    FallbackRef,
    RuleRef,
    GuardRule,
    GuardrailsRuleset,
    GuardDecision,
    TextAtom,
    EvaluationTargets,
)
from domain.schemas.household_schemas import (
    HouseholdAvoidRuleCreate,
    HouseholdAvoidRuleResponse,
)
from domain.schemas.therapeutic_schemas import (
    WhenJson,
    RuleContext,
    WhenJsonEvaluation,
    ProtocolEditorResponse,
)
from domain.schemas.generator_schemas import (
    GeneratorConfig,
    VarietyTargets,
    MealPlan,
    VarietyScorecard,
)
from domain.schemas.catalog_schemas import (
    CanonicalIngredientResponse,
    StoreResponse,
    StoreProductResponse,
    IngredientProductLinkResponse,
)

__all__ = [
    # Pantry schemas
    "PantryItemUpsert",
    "PantryBulkUpsertRequest",
    "PantryAvailabilityRequest",
    "PantryItemResponse",
    "PantryBulkUpsertResponse",
    # Product schemas
    "ExternalProduct",
    "ProductLookupResult",
    "ProductSearchResult",
    "ProductSourceConfigResponse",
    "ProductSourceConfigUpdate",
    "SourceConnectionResult",
    # Guardrail schemas
    "ConstraintRef",
    "RecipeRuleRef",
    "FallbackRef",
    "RuleRef",
    "GuardRule",
    "GuardrailsRuleset",
    "GuardDecision",
    "TextAtom",
    "EvaluationTargets",
    # Household schemas
    "HouseholdAvoidRuleCreate",
    "HouseholdAvoidRuleResponse",
    # Therapeutic schemas
    "WhenJson",
    "RuleContext",
    "WhenJsonEvaluation",
    "ProtocolEditorResponse",
    # Generator schemas
    "GeneratorConfig",
    "VarietyTargets",
    "MealPlan",
    "VarietyScorecard",
    # Catalog schemas
    "CanonicalIngredientResponse",
    "StoreResponse",
    "StoreProductResponse",
    "IngredientProductLinkResponse",
]
