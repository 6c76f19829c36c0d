"""
Variety scorecard for a generated meal plan.

Reporting only; raise_if_variety_targets_not_met does the enforcement and is
called by the plan validation endpoint before a plan would be persisted.

Targets are configured per week. Plans shorter than a week get proportionally
lower minimums, and the repeat window never exceeds the plan length.
"""

import logging
import math
from collections import Counter
from typing import Dict, List, Optional, Tuple

from app.exceptions import ServiceValidationError
from domain.enums import ScorecardStatus
from domain.schemas.generator_schemas import (
    MealPlan,
    MeetsTargets,
    PlanMeal,
    RepeatCount,
    ScaledTargets,
    VarietyScorecard,
    VarietyTargets,
)

logger = logging.getLogger("nutricoach.meal_plans.variety")

REFERENCE_DAYS = 7
TOP_REPEATS_LIMIT = 10

VEG_TERMS = frozenset(
    [
        "groente", "groenten", "tomaten", "tomaat", "wortel", "wortelen", "ui",
        "uien", "knoflook", "paprika", "courgette", "aubergine", "spinazie", "sla",
        "broccoli", "bloemkool", "boerenkool", "andijvie", "prei", "bleekselderij",
        "komkommer", "radijs", "biet", "bieten",
        "vegetable", "tomato", "carrot", "onion", "garlic", "pepper", "spinach",
        "lettuce", "cauliflower", "kale", "zucchini", "eggplant", "cucumber",
        "celery", "leek",
    ]
)

FRUIT_TERMS = frozenset(
    [
        "fruit", "appel", "appels", "banaan", "bananen", "sinaasappel", "citroen",
        "limoen", "peer", "peren", "druif", "druiven", "bes", "bessen", "aardbei",
        "aardbeien", "framboos", "blauwe bes", "mango", "ananas", "kiwi",
        "apple", "banana", "orange", "lemon", "lime", "pear", "grape", "berry",
        "berries", "strawberry", "raspberry", "blueberry", "pineapple",
    ]
)

PROTEIN_TERMS = frozenset(
    [
        "kip", "kipfilet", "kipfilets", "vlees", "rund", "varken", "gehakt", "ei",
        "eieren", "vis", "zalm", "tonijn", "kabeljauw", "forel", "tofu", "tempeh",
        "linzen", "kikkererwten", "bonen", "quorn",
        "chicken", "beef", "pork", "egg", "fish", "salmon", "tuna", "cod",
        "lentil", "chickpea", "bean", "beans",
    ]
)


def scale_variety_targets(num_days: int, targets: Optional[VarietyTargets]) -> ScaledTargets:
    """Scale weekly minimums down for plans shorter than REFERENCE_DAYS (never below 1)."""
    if targets is None or num_days < 1:
        return ScaledTargets(
            unique_veg_min=1,
            unique_fruit_min=1,
            protein_rotation_min_categories=1,
            max_repeat_same_recipe_within_days=max(1, num_days),
        )
    scale = min(1.0, num_days / REFERENCE_DAYS)
    return ScaledTargets(
        unique_veg_min=max(1, math.ceil(targets.unique_veg_min * scale)),
        unique_fruit_min=max(1, math.ceil(targets.unique_fruit_min * scale)),
        protein_rotation_min_categories=max(
            1, math.ceil(targets.protein_rotation_min_categories * scale)
        ),
        max_repeat_same_recipe_within_days=min(
            targets.max_repeat_same_recipe_within_days, max(1, num_days)
        ),
    )


def _normalize(value: Optional[str]) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def ingredient_keys(meal: PlanMeal) -> List[str]:
    """Distinct keys of a meal: display name or nevo code per ref, then legacy names"""
    keys: List[str] = []
    seen = set()
    candidates = [
        _normalize(ref.display_name) or _normalize(ref.nevo_code)
        for ref in meal.ingredient_refs
    ]
    candidates += [_normalize(ing.name) for ing in meal.ingredients]
    for key in candidates:
        if key and key not in seen:
            seen.add(key)
            keys.append(key)
    return keys


def _matches_any(key: str, terms) -> bool:
    return any(t in key or key in t for t in terms)


def is_veg(key: str) -> bool:
    return _matches_any(key, VEG_TERMS)


def is_fruit(key: str) -> bool:
    return _matches_any(key, FRUIT_TERMS)


def is_protein(key: str) -> bool:
    return _matches_any(key, PROTEIN_TERMS)


def max_repeat_within_days(plan: MealPlan, window_days: int) -> Tuple[int, List[RepeatCount]]:
    """
    Highest number of times one meal name occurs inside any sliding window of
    window_days consecutive days (days ordered by date).

    Returns:
        (max_repeat, top_repeats) where top_repeats are the names occurring more
        than once in the whole plan, most frequent first
    """
    days = sorted(plan.days, key=lambda d: d.date or "")
    if window_days < 1 or not days:
        return 0, []

    names_per_day = [
        [_normalize(meal.name) or "unknown" for meal in day.meals] for day in days
    ]

    best = 0
    for start in range(0, len(days) - window_days + 1):
        window = Counter()
        for names in names_per_day[start : start + window_days]:
            window.update(names)
        if window:
            best = max(best, max(window.values()))

    totals = Counter(name for names in names_per_day for name in names)
    repeats = sorted(
        ((name, count) for name, count in totals.items() if count > 1),
        key=lambda item: -item[1],
    )
    top = [RepeatCount(name=name, count=count) for name, count in repeats[:TOP_REPEATS_LIMIT]]
    return best, top


def unavailable_scorecard() -> VarietyScorecard:
    return VarietyScorecard(
        status=ScorecardStatus.UNAVAILABLE,
        targets=ScaledTargets(
            unique_veg_min=0,
            unique_fruit_min=0,
            protein_rotation_min_categories=0,
            max_repeat_same_recipe_within_days=0,
        ),
        meets_targets=MeetsTargets(
            meets_unique_veg_min=False,
            meets_unique_fruit_min=False,
            meets_protein_rotation=False,
            meets_repeat_window="unknown",
        ),
    )


def build_scorecard(plan: MealPlan, targets: Optional[VarietyTargets]) -> VarietyScorecard:
    """Build the scorecard; missing targets yield an 'unavailable' scorecard"""
    if targets is None:
        return unavailable_scorecard()

    num_days = max(1, len(plan.days))
    scaled = scale_variety_targets(num_days, targets)

    buckets: Dict[str, set] = {"veg": set(), "fruit": set(), "protein": set()}
    for day in plan.days:
        for meal in day.meals:
            for key in ingredient_keys(meal):
                if is_veg(key):
                    buckets["veg"].add(key)
                if is_fruit(key):
                    buckets["fruit"].add(key)
                if is_protein(key):
                    buckets["protein"].add(key)

    max_repeat, top_repeats = max_repeat_within_days(
        plan, scaled.max_repeat_same_recipe_within_days
    )

    return VarietyScorecard(
        status=ScorecardStatus.OK,
        unique_veg_count=len(buckets["veg"]),
        unique_fruit_count=len(buckets["fruit"]),
        protein_unique_count=len(buckets["protein"]),
        max_repeat_within_days=max_repeat,
        repeat_window_days=scaled.max_repeat_same_recipe_within_days,
        targets=scaled,
        meets_targets=MeetsTargets(
            meets_unique_veg_min=len(buckets["veg"]) >= scaled.unique_veg_min,
            meets_unique_fruit_min=len(buckets["fruit"]) >= scaled.unique_fruit_min,
            meets_protein_rotation=len(buckets["protein"])
            >= scaled.protein_rotation_min_categories,
            meets_repeat_window=max_repeat <= 1,
        ),
        top_repeats=top_repeats,
    )


def raise_if_variety_targets_not_met(scorecard: Optional[VarietyScorecard]) -> None:
    """
    Raises:
        ServiceValidationError: MEAL_PLAN_CONFIG_INVALID when the scorecard is
            unavailable, MEAL_PLAN_VARIETY_TARGETS_NOT_MET when a target is missed
    """
    if scorecard is None:
        return
    if scorecard.status != ScorecardStatus.OK:
        raise ServiceValidationError(
            "Variatie-instellingen ontbreken. Configureer variatiedoelen in beheer.",
            details={"reason": "variety_scorecard_unavailable"},
            code="MEAL_PLAN_CONFIG_INVALID",
        )
    meets = scorecard.meets_targets
    not_met = (
        meets.meets_unique_veg_min is False
        or meets.meets_unique_fruit_min is False
        or meets.meets_protein_rotation is False
        or meets.meets_repeat_window is False
    )
    if not not_met:
        return
    logger.info(
        "Variety targets not met: veg=%d fruit=%d protein=%d max_repeat=%d",
        scorecard.unique_veg_count,
        scorecard.unique_fruit_count,
        scorecard.protein_unique_count,
        scorecard.max_repeat_within_days,
    )
    raise ServiceValidationError(
        "Menu voldoet niet aan variatiedoelen (groente, fruit, proteïne of herhaling). "
        "Voeg meer recepten toe of pas variatie-instellingen aan in beheer.",
        details={
            "unique_veg_count": scorecard.unique_veg_count,
            "unique_fruit_count": scorecard.unique_fruit_count,
            "protein_unique_count": scorecard.protein_unique_count,
            "max_repeat_within_days": scorecard.max_repeat_within_days,
            "targets": scorecard.targets.model_dump(),
            "meets_targets": scorecard.meets_targets.model_dump(),
        },
        code="MEAL_PLAN_VARIETY_TARGETS_NOT_MET",
    )
