"""
Domain enums for NutriCoach application.
Contains all enumeration types used across the domain models and schemas.
"""

import enum


class UserRoleType(str, enum.Enum):
    """Roles stored in user_roles"""

    ADMIN = "admin"
    USER = "user"


# -- Product sources ---------------------------------------------------------


class ProductSource(str, enum.Enum):
    """External product/barcode sources"""

    OPEN_FOOD_FACTS = "openfoodfacts"
    ALBERT_HEIJN = "albert_heijn"


class LookupFailureReason(str, enum.Enum):
    """Why a product lookup or search did not produce a result"""

    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"


# -- Guardrails --------------------------------------------------------------


class RuleAction(str, enum.Enum):
    """Firewall semantics: block always wins over allow"""

    ALLOW = "allow"
    BLOCK = "block"


class Strictness(str, enum.Enum):
    """Hard rules block output, soft rules only warn"""

    HARD = "hard"
    SOFT = "soft"


class MatchTarget(str, enum.Enum):
    INGREDIENT = "ingredient"
    STEP = "step"
    METADATA = "metadata"


class MatchMode(str, enum.Enum):
    EXACT = "exact"
    WORD_BOUNDARY = "word_boundary"
    SUBSTRING = "substring"
    CANONICAL_ID = "canonical_id"


class CategoryType(str, enum.Enum):
    FORBIDDEN = "forbidden"
    REQUIRED = "required"


class DietLogic(str, enum.Enum):
    """Diet logic levels for category constraints (P0-P3)"""

    DROP = "drop"
    FORCE = "force"
    LIMIT = "limit"
    PASS = "pass"


class Specificity(str, enum.Enum):
    USER = "user"
    DIET = "diet"
    GLOBAL = "global"


class RuleRefKind(str, enum.Enum):
    CONSTRAINT = "constraint"
    RECIPE_RULE = "recipe_rule"
    FALLBACK = "fallback"


class RuleStatusAction(str, enum.Enum):
    BLOCK = "block"
    PAUSE = "pause"


class GuardReasonCode(str, enum.Enum):
    FORBIDDEN_INGREDIENT = "FORBIDDEN_INGREDIENT"
    ALLERGEN_PRESENT = "ALLERGEN_PRESENT"
    DISLIKED_INGREDIENT = "DISLIKED_INGREDIENT"
    MISSING_REQUIRED_CATEGORY = "MISSING_REQUIRED_CATEGORY"
    INVALID_CATEGORY = "INVALID_CATEGORY"
    INVALID_NEVO_CODE = "INVALID_NEVO_CODE"
    INVALID_CANONICAL_ID = "INVALID_CANONICAL_ID"
    CALORIE_TARGET_MISS = "CALORIE_TARGET_MISS"
    MACRO_TARGET_MISS = "MACRO_TARGET_MISS"
    MEAL_PREFERENCE_MISS = "MEAL_PREFERENCE_MISS"
    MEAL_STRUCTURE_VIOLATION = "MEAL_STRUCTURE_VIOLATION"
    SOFT_CONSTRAINT_VIOLATION = "SOFT_CONSTRAINT_VIOLATION"
    EVALUATOR_ERROR = "EVALUATOR_ERROR"
    EVALUATOR_WARNING = "EVALUATOR_WARNING"
    RULESET_LOAD_ERROR = "RULESET_LOAD_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class GuardOutcome(str, enum.Enum):
    ALLOWED = "allowed"
    BLOCKED = "blocked"
    WARNED = "warned"


# -- Household rules ---------------------------------------------------------


class HouseholdRuleType(str, enum.Enum):
    ALLERGEN = "allergen"
    AVOID = "avoid"
    WARNING = "warning"


class HouseholdMatchMode(str, enum.Enum):
    NEVO_CODE = "nevo_code"
    TERM = "term"


# -- Therapeutic protocols ---------------------------------------------------


class TargetPeriod(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


class TargetKind(str, enum.Enum):
    MACRO = "macro"
    MICRO = "micro"
    FOOD_GROUP = "food_group"
    VARIETY = "variety"
    FREQUENCY = "frequency"


class TargetValueType(str, enum.Enum):
    ABSOLUTE = "absolute"
    ADH_PERCENT = "adh_percent"
    COUNT = "count"


class SupplementRuleKind(str, enum.Enum):
    WARNING = "warning"
    CONDITION = "condition"
    CONTRAINDICATION = "contraindication"


class SupplementRuleSeverity(str, enum.Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class WhenJsonStatus(str, enum.Enum):
    NONE = "none"
    OK = "ok"
    INVALID = "invalid"


# -- Meal plan generator -----------------------------------------------------


class CulinaryMatchMode(str, enum.Enum):
    TERM = "term"
    REGEX = "regex"


class CulinaryAction(str, enum.Enum):
    BLOCK = "block"
    WARN = "warn"


class ScorecardStatus(str, enum.Enum):
    OK = "ok"
    UNAVAILABLE = "unavailable"
