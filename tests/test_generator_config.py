"""
Tests for the meal plan generator configuration and the plan check endpoints
built on it (variety scorecard and validation).
"""

import uuid
from unittest.mock import Mock

import pytest

from test_fixtures import (
    client,
    make_culinary_rule_row,
    make_generator_settings_row,
    make_variety_targets_row,
    mock_db,
    plan_payload,
    signed_in,
)
from app.exceptions import ServiceValidationError
from domain.enums import CulinaryAction, CulinaryMatchMode, ScorecardStatus
from domain.schemas.generator_schemas import (
    GeneratorSettingsUpsert,
    MealPlan,
    VarietyTargetsUpsert,
)
from services import generator_config_service
from services.generator_config_service import (
    GeneratorConfigService,
    culinary_rule_from_row,
    settings_from_row,
    variety_targets_from_row,
)


@pytest.fixture
def repo(monkeypatch):
    instance = Mock()
    instance.get_settings.return_value = make_generator_settings_row()
    instance.get_variety_targets.return_value = make_variety_targets_row()
    instance.list_active_culinary_rules.return_value = []
    instance.get_exact_settings.return_value = None
    instance.get_exact_variety_targets.return_value = None
    monkeypatch.setattr(generator_config_service, "GeneratorConfigRepository", lambda db: instance)
    return instance


def smoothie_plan(ingredients):
    return MealPlan.model_validate(
        plan_payload([("2026-03-02", [("Ochtendshake", "smoothie", ingredients)])])
    )


# =============================================================================
# ROW MAPPING
# =============================================================================


def test_null_columns_fall_back_to_defaults():
    settings = settings_from_row(make_generator_settings_row(recency_window_days=30))
    targets = variety_targets_from_row(make_variety_targets_row(unique_veg_min=8))

    assert settings.recency_window_days == 30
    assert settings.min_history_reuse_ratio == 0.2
    assert targets.unique_veg_min == 8
    assert targets.max_repeat_same_recipe_within_days == 7


def test_unknown_culinary_mode_and_action_fall_back():
    rule = culinary_rule_from_row(make_culinary_rule_row(match_mode="glob", action="maybe"))

    assert rule.match_mode == CulinaryMatchMode.TERM
    assert rule.action == CulinaryAction.BLOCK

    warn = culinary_rule_from_row(make_culinary_rule_row(match_mode="regex", action="warn"))
    assert warn.match_mode == CulinaryMatchMode.REGEX
    assert warn.action == CulinaryAction.WARN


# =============================================================================
# LOADING
# =============================================================================


def test_load_config_trims_diet_key(repo):
    repo.list_active_culinary_rules.return_value = [make_culinary_rule_row()]

    config = GeneratorConfigService.load_generator_config(mock_db(), "  keto ")

    repo.get_settings.assert_called_once_with("keto")
    assert config.diet_key == "keto"
    assert config.culinary_rules[0].rule_code == "no_meat_smoothie"


def test_blank_diet_key_means_global(repo):
    config = GeneratorConfigService.load_generator_config(mock_db(), "   ")

    repo.get_settings.assert_called_once_with(None)
    assert config.diet_key is None


@pytest.mark.parametrize("missing", ["settings", "variety_targets"])
def test_missing_config_rows_are_invalid_config(repo, missing):
    getattr(repo, f"get_{missing}").return_value = None

    with pytest.raises(ServiceValidationError) as exc:
        GeneratorConfigService.load_generator_config(mock_db(), "keto")

    assert exc.value.error_code == "MEAL_PLAN_CONFIG_INVALID"
    assert exc.value.details == {"diet_key": "keto", "missing": missing}


# =============================================================================
# UPSERTS
# =============================================================================


def test_upsert_settings_inserts_new_row_for_diet(repo):
    db = mock_db()

    row = GeneratorConfigService.upsert_settings(
        db, GeneratorSettingsUpsert(diet_key=" keto ", recency_window_days=14)
    )

    assert row.diet_key == "keto"
    assert row.recency_window_days == 14
    assert row.is_active is True
    db.add.assert_called_once_with(row)
    db.commit.assert_called_once()


def test_upsert_variety_targets_updates_existing_row(repo):
    existing = make_variety_targets_row(diet_key="keto", unique_veg_min=5)
    repo.get_exact_variety_targets.return_value = existing
    db = mock_db()

    row = GeneratorConfigService.upsert_variety_targets(
        db, VarietyTargetsUpsert(diet_key="keto", unique_veg_min=9)
    )

    assert row is existing
    assert existing.unique_veg_min == 9
    db.add.assert_not_called()


def test_upsert_failure_rolls_back(repo):
    db = mock_db()
    db.commit.side_effect = RuntimeError("db down")

    with pytest.raises(RuntimeError):
        GeneratorConfigService.upsert_settings(db, GeneratorSettingsUpsert())
    db.rollback.assert_called_once()


# =============================================================================
# PLAN CHECKS
# =============================================================================


def test_validate_plan_returns_scorecard_and_warnings(repo):
    repo.get_variety_targets.return_value = make_variety_targets_row(
        unique_veg_min=1, unique_fruit_min=1, protein_rotation_min_categories=1
    )
    repo.list_active_culinary_rules.return_value = [
        make_culinary_rule_row(rule_code="ice_warning", match_value="ijs", action="warn")
    ]

    result = GeneratorConfigService.validate_plan(
        mock_db(), smoothie_plan(["spinazie", "banaan", "tofu", "ijs"])
    )

    assert result.valid is True
    assert result.scorecard.status == ScorecardStatus.OK
    assert [w.rule_code for w in result.warnings] == ["ice_warning"]


def test_validate_plan_rejects_missed_variety_targets(repo):
    with pytest.raises(ServiceValidationError) as exc:
        GeneratorConfigService.validate_plan(mock_db(), smoothie_plan(["banaan"]))

    assert exc.value.error_code == "MEAL_PLAN_VARIETY_TARGETS_NOT_MET"


def test_validate_plan_rejects_culinary_violation(repo):
    repo.get_variety_targets.return_value = make_variety_targets_row(
        unique_veg_min=1, unique_fruit_min=1, protein_rotation_min_categories=1
    )
    repo.list_active_culinary_rules.return_value = [make_culinary_rule_row(match_value="kip")]

    with pytest.raises(ServiceValidationError) as exc:
        GeneratorConfigService.validate_plan(
            mock_db(), smoothie_plan(["spinazie", "banaan", "kip"])
        )

    assert exc.value.error_code == "MEAL_PLAN_CULINARY_VIOLATION"


# =============================================================================
# ROUTES
# =============================================================================


def test_scorecard_route_reports_without_rejecting(repo):
    payload = {
        "diet_key": None,
        "plan": plan_payload([("2026-03-02", [("Toast", "breakfast", ["brood"])])]),
    }

    with signed_in():
        r = client.post("/meal-plans/variety-scorecard", json=payload)

    assert r.status_code == 200
    data = r.json()["data"]
    assert data["status"] == "ok"
    assert data["meets_targets"]["meets_unique_veg_min"] is False


def test_validate_route_rejects_with_error_code(repo):
    payload = {"plan": plan_payload([("2026-03-02", [("Toast", "breakfast", ["brood"])])])}

    with signed_in():
        r = client.post("/meal-plans/validate", json=payload)

    assert r.status_code == 400
    assert r.json()["error"]["code"] == "MEAL_PLAN_VARIETY_TARGETS_NOT_MET"
    assert r.json()["error"]["details"]["unique_veg_count"] == 0


def test_missing_config_route_is_400(repo):
    repo.get_settings.return_value = None

    with signed_in(admin=True):
        r = client.get("/admin/meal-plan-generator/config", params={"diet_key": "keto"})

    assert r.status_code == 400
    assert r.json()["error"]["code"] == "MEAL_PLAN_CONFIG_INVALID"


def test_settings_route_validates_ratios():
    with signed_in(admin=True):
        r = client.put("/admin/meal-plan-generator/settings", json={"target_prefill_ratio": 1.5})

    assert r.status_code == 422


def test_settings_route_returns_saved_row(monkeypatch):
    row = make_generator_settings_row(diet_key="keto")
    monkeypatch.setattr(GeneratorConfigService, "upsert_settings", lambda db, data: row)

    with signed_in(admin=True):
        r = client.put("/admin/meal-plan-generator/settings", json={"diet_key": "keto"})

    assert r.status_code == 200
    assert r.json()["data"]["id"] == str(row.id)
    assert r.json()["data"]["diet_key"] == "keto"
