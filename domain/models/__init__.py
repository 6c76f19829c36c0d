"""
Domain models package - SQLAlchemy ORM models.
"""

from domain.models.database import (
    Base,
    engine,
    SessionLocal,
    init_database,
    get_db_session,
)
from domain.models.user import Household, UserPreference, UserRole
from domain.models.pantry import PantryItem
from domain.models.guardrails import (
    DietType,
    IngredientCategory,
    IngredientCategoryItem,
    DietCategoryConstraint,
    RecipeAdaptationRule,
    RecipeAdaptationHeuristic,
)
from domain.models.household import HouseholdAvoidRule
from domain.models.therapeutic import (
    TherapeuticProtocol,
    TherapeuticProtocolTarget,
    TherapeuticProtocolSupplement,
    TherapeuticSupplementRule,
    WhenJsonSnippet,
)
from domain.models.generator_config import (
    MealPlanGeneratorSettings,
    MealPlanVarietyTargets,
    MealPlanCulinaryRule,
)
from domain.models.catalog import (
    CanonicalIngredient,
    Store,
    StoreProduct,
    IngredientStoreProductLink,
    ProductSourceConfig,
)

__all__ = [
    # Database
    "Base",
    "engine",
    "SessionLocal",
    "init_database",
    "get_db_session",
    # User models
    "Household",
    "UserPreference",
    "UserRole",
    # Pantry models
    "PantryItem",
    # Guardrail models
    "DietType",
    "IngredientCategory",
    "IngredientCategoryItem",
    "DietCategoryConstraint",
    "RecipeAdaptationRule",
    "RecipeAdaptationHeuristic",
    # Household models
    "HouseholdAvoidRule",
    # Therapeutic models
    "TherapeuticProtocol",
    "TherapeuticProtocolTarget",
    "TherapeuticProtocolSupplement",
    "TherapeuticSupplementRule",
    "WhenJsonSnippet",
    # Generator config models
    "MealPlanGeneratorSettings",
    "MealPlanVarietyTargets",
    "MealPlanCulinaryRule",
    # Catalog models
    "CanonicalIngredient",
    "Store",
    "StoreProduct",
    "IngredientStoreProductLink",
    "ProductSourceConfig",
]
