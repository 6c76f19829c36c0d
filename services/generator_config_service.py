"""
Meal plan generator configuration: settings, variety targets and culinary
rules per diet, and the plan checks built on top of them.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.exceptions import ServiceValidationError
from domain.enums import CulinaryAction, CulinaryMatchMode
from domain.models import MealPlanGeneratorSettings, MealPlanVarietyTargets
from domain.schemas.generator_schemas import (
    CulinaryRule,
    GeneratorConfig,
    GeneratorSettings,
    GeneratorSettingsUpsert,
    MealPlan,
    PlanValidationResult,
    VarietyScorecard,
    VarietyTargets,
    VarietyTargetsUpsert,
)
from repositories import GeneratorConfigRepository
from services.culinary_coherence import validate_culinary_coherence
from services.variety_scorecard import build_scorecard, raise_if_variety_targets_not_met

logger = logging.getLogger("nutricoach.meal_plans.config")

CONFIG_INVALID = "MEAL_PLAN_CONFIG_INVALID"


def _diet_key(value: Optional[str]) -> Optional[str]:
    key = (value or "").strip()
    return key or None


def _or(value, default):
    return default if value is None else value


def settings_from_row(row: MealPlanGeneratorSettings) -> GeneratorSettings:
    defaults = GeneratorSettings()
    return GeneratorSettings(
        min_history_reuse_ratio=float(_or(row.min_history_reuse_ratio, defaults.min_history_reuse_ratio)),
        target_prefill_ratio=float(_or(row.target_prefill_ratio, defaults.target_prefill_ratio)),
        recency_window_days=int(_or(row.recency_window_days, defaults.recency_window_days)),
        max_ai_generated_slots_per_week=int(
            _or(row.max_ai_generated_slots_per_week, defaults.max_ai_generated_slots_per_week)
        ),
        min_db_recipe_coverage_ratio=float(
            _or(row.min_db_recipe_coverage_ratio, defaults.min_db_recipe_coverage_ratio)
        ),
        use_db_first=bool(_or(row.use_db_first, defaults.use_db_first)),
    )


def variety_targets_from_row(row: MealPlanVarietyTargets) -> VarietyTargets:
    defaults = VarietyTargets()
    return VarietyTargets(
        unique_veg_min=int(_or(row.unique_veg_min, defaults.unique_veg_min)),
        unique_fruit_min=int(_or(row.unique_fruit_min, defaults.unique_fruit_min)),
        protein_rotation_min_categories=int(
            _or(row.protein_rotation_min_categories, defaults.protein_rotation_min_categories)
        ),
        max_repeat_same_recipe_within_days=int(
            _or(row.max_repeat_same_recipe_within_days, defaults.max_repeat_same_recipe_within_days)
        ),
        favorites_repeat_boost=float(_or(row.favorites_repeat_boost, defaults.favorites_repeat_boost)),
    )


def culinary_rule_from_row(row) -> CulinaryRule:
    """Unknown match modes fall back to term, unknown actions to block"""
    mode = (
        CulinaryMatchMode.REGEX
        if row.match_mode == CulinaryMatchMode.REGEX.value
        else CulinaryMatchMode.TERM
    )
    action = (
        CulinaryAction.WARN if row.action == CulinaryAction.WARN.value else CulinaryAction.BLOCK
    )
    return CulinaryRule(
        rule_code=row.rule_code,
        slot_type=row.slot_type,
        match_mode=mode,
        match_value=row.match_value,
        action=action,
        reason_code=row.reason_code,
        priority=row.priority or 0,
    )


class GeneratorConfigService:
    @staticmethod
    def load_generator_config(db: Session, diet_key: Optional[str] = None) -> GeneratorConfig:
        """
        Resolve the generator config for a diet: the diet's own active rows
        when present, else the global (diet_key NULL) rows.

        Raises:
            ServiceValidationError: MEAL_PLAN_CONFIG_INVALID when settings or
                variety targets are missing altogether
        """
        key = _diet_key(diet_key)
        repo = GeneratorConfigRepository(db)

        settings_row = repo.get_settings(key)
        if settings_row is None:
            logger.warning("No generator settings for diet %s", key)
            raise ServiceValidationError(
                "Geen generatorinstellingen gevonden (ook geen standaard).",
                details={"diet_key": key, "missing": "settings"},
                code=CONFIG_INVALID,
            )
        targets_row = repo.get_variety_targets(key)
        if targets_row is None:
            logger.warning("No variety targets for diet %s", key)
            raise ServiceValidationError(
                "Geen variatiedoelen gevonden (ook geen standaard).",
                details={"diet_key": key, "missing": "variety_targets"},
                code=CONFIG_INVALID,
            )

        return GeneratorConfig(
            diet_key=key,
            settings=settings_from_row(settings_row),
            variety_targets=variety_targets_from_row(targets_row),
            culinary_rules=[culinary_rule_from_row(r) for r in repo.list_active_culinary_rules()],
        )

    @staticmethod
    def upsert_settings(db: Session, data: GeneratorSettingsUpsert) -> MealPlanGeneratorSettings:
        key = _diet_key(data.diet_key)
        repo = GeneratorConfigRepository(db)
        row = repo.get_exact_settings(key)
        if row is None:
            row = MealPlanGeneratorSettings(diet_key=key, is_active=True)
            db.add(row)
        for field, value in data.model_dump(exclude={"diet_key"}).items():
            setattr(row, field, value)
        try:
            db.commit()
            db.refresh(row)
        except Exception:
            db.rollback()
            logger.exception("Error saving generator settings for diet %s", key)
            raise
        logger.info("Saved generator settings for diet %s", key or "<default>")
        return row

    @staticmethod
    def upsert_variety_targets(db: Session, data: VarietyTargetsUpsert) -> MealPlanVarietyTargets:
        key = _diet_key(data.diet_key)
        repo = GeneratorConfigRepository(db)
        row = repo.get_exact_variety_targets(key)
        if row is None:
            row = MealPlanVarietyTargets(diet_key=key, is_active=True)
            db.add(row)
        for field, value in data.model_dump(exclude={"diet_key"}).items():
            setattr(row, field, value)
        try:
            db.commit()
            db.refresh(row)
        except Exception:
            db.rollback()
            logger.exception("Error saving variety targets for diet %s", key)
            raise
        logger.info("Saved variety targets for diet %s", key or "<default>")
        return row

    @staticmethod
    def variety_scorecard(db: Session, plan: MealPlan, diet_key: Optional[str] = None) -> VarietyScorecard:
        config = GeneratorConfigService.load_generator_config(db, diet_key)
        return build_scorecard(plan, config.variety_targets)

    @staticmethod
    def validate_plan(db: Session, plan: MealPlan, diet_key: Optional[str] = None) -> PlanValidationResult:
        """
        Everything a plan must pass before it is stored: the variety targets
        and the culinary rules. Warn-level culinary matches are returned.
        """
        config = GeneratorConfigService.load_generator_config(db, diet_key)
        scorecard = build_scorecard(plan, config.variety_targets)
        raise_if_variety_targets_not_met(scorecard)
        warnings = validate_culinary_coherence(plan, config.culinary_rules)
        return PlanValidationResult(valid=True, scorecard=scorecard, warnings=warnings)
