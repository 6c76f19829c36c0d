"""API routes package"""

from . import (
    catalog,
    generator_config,
    guardrails,
    health,
    household_rules,
    meal_plans,
    pantry,
    products,
    therapeutic,
)

__all__ = [
    "catalog",
    "generator_config",
    "guardrails",
    "health",
    "household_rules",
    "meal_plans",
    "pantry",
    "products",
    "therapeutic",
]
