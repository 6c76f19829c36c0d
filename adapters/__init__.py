"""
Adapters package - outbound HTTP integrations with product sources.
"""

from adapters.open_food_facts import OpenFoodFactsAdapter
from adapters.albert_heijn import AlbertHeijnAdapter, AhConfig

__all__ = [
    "OpenFoodFactsAdapter",
    "AlbertHeijnAdapter",
    "AhConfig",
]
