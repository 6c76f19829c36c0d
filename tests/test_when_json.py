"""
Tests for when_json condition evaluation on supplement rules.
"""

import pytest

from test_fixtures import make_supplement_rule
from domain.enums import WhenJsonStatus
from domain.schemas.therapeutic_schemas import RuleContext
from services.when_json import (
    MAX_MATCHED_CONDITIONS,
    decode_when_json_text,
    evaluate_when_json,
    filter_supplement_rules,
    when_json_status,
)


def ctx(**kwargs):
    return RuleContext(**kwargs)


def test_no_condition_always_applies():
    result = evaluate_when_json(None, ctx())

    assert result.applicable is True
    assert result.invalid is False
    assert result.matched == []


def test_all_requires_every_condition():
    when = {
        "all": [
            {"field": "sex", "op": "eq", "value": "female"},
            {"field": "ageYears", "op": "gte", "value": 18},
        ]
    }

    assert evaluate_when_json(when, ctx(sex="female", ageYears=30)).applicable is True
    assert evaluate_when_json(when, ctx(sex="female", ageYears=16)).applicable is False
    assert evaluate_when_json(when, ctx(sex="male", ageYears=30)).applicable is False


def test_all_reports_matched_conditions():
    when = {"all": [{"field": "weightKg", "op": "lte", "value": 80}]}

    result = evaluate_when_json(when, ctx(weightKg=72.5))

    assert result.matched[0].type == "field"
    assert result.matched[0].field == "weightKg"
    assert result.matched[0].actual == 72.5


def test_any_with_empty_list_never_applies():
    assert evaluate_when_json({"any": []}, ctx(sex="female")).applicable is False


def test_any_needs_one_match():
    when = {
        "any": [
            {"field": "dietKey", "op": "eq", "value": "keto"},
            {"field": "dietKey", "op": "in", "value": ["vegan", "vegetarian"]},
        ]
    }

    assert evaluate_when_json(when, ctx(dietKey="vegan")).applicable is True
    assert evaluate_when_json(when, ctx(dietKey="paleo")).applicable is False


def test_not_inverts_single_condition():
    when = {"not": {"field": "sex", "op": "eq", "value": "male"}}

    assert evaluate_when_json(when, ctx(sex="female")).applicable is True
    assert evaluate_when_json(when, ctx(sex="male")).applicable is False


def test_missing_context_value_is_false_not_invalid():
    when = {"all": [{"field": "ageYears", "op": "gte", "value": 50}]}

    result = evaluate_when_json(when, ctx())

    assert result.applicable is False
    assert result.invalid is False


def test_numeric_comparison_against_string_is_invalid():
    when = {"all": [{"field": "ageYears", "op": "gte", "value": "vijftig"}]}

    result = evaluate_when_json(when, ctx(ageYears=60))

    assert result.applicable is False
    assert result.invalid is True


def test_numbers_compare_across_int_and_float():
    when = {"all": [{"field": "heightCm", "op": "eq", "value": 180}]}

    assert evaluate_when_json(when, ctx(heightCm=180.0)).applicable is True


@pytest.mark.parametrize(
    "when,overrides,expected",
    [
        ({"all": [{"field": "override", "key": "pregnant", "op": "exists"}]}, {"pregnant": True}, True),
        ({"all": [{"field": "override", "key": "pregnant", "op": "exists"}]}, {"pregnant": None}, False),
        ({"all": [{"field": "override", "key": "pregnant", "op": "exists"}]}, {}, False),
        ({"all": [{"field": "override", "key": "egfr", "op": "lte", "value": 60}]}, {"egfr": 45}, True),
        ({"all": [{"field": "override", "key": "egfr", "op": "lte"}]}, {"egfr": 45}, False),
    ],
)
def test_override_conditions(when, overrides, expected):
    assert evaluate_when_json(when, ctx(overrides=overrides)).applicable is expected


@pytest.mark.parametrize(
    "raw",
    [
        {"all": [], "any": []},
        {},
        {"all": [{"field": "shoeSize", "op": "eq", "value": 42}]},
        {"all": [{"field": "sex", "op": "like", "value": "f"}]},
        "female",
    ],
)
def test_malformed_when_json_fails_closed(raw):
    result = evaluate_when_json(raw, ctx(sex="female"))

    assert result.applicable is False
    assert result.invalid is True
    assert when_json_status(raw) == WhenJsonStatus.INVALID


def test_matched_conditions_are_capped():
    when = {"all": [{"field": "sex", "op": "eq", "value": "female"}] * 10}

    result = evaluate_when_json(when, ctx(sex="female"))

    assert len(result.matched) == MAX_MATCHED_CONDITIONS


def test_decode_when_json_text():
    assert decode_when_json_text(None) is None
    assert decode_when_json_text("   ") is None
    assert decode_when_json_text('{"any": []}') == {"any": []}
    with pytest.raises(ValueError):
        decode_when_json_text("{not json")


def test_when_json_status():
    assert when_json_status(None) == WhenJsonStatus.NONE
    assert when_json_status({"any": []}) == WhenJsonStatus.OK


def test_filter_supplement_rules_counts():
    always = make_supplement_rule(rule_key="always")
    female = make_supplement_rule(
        rule_key="female_only", when_json={"all": [{"field": "sex", "op": "eq", "value": "female"}]}
    )
    male = make_supplement_rule(
        rule_key="male_only", when_json={"all": [{"field": "sex", "op": "eq", "value": "male"}]}
    )
    broken = make_supplement_rule(rule_key="broken", when_json={"bogus": True})
    inactive = make_supplement_rule(rule_key="inactive", is_active=False)

    result = filter_supplement_rules([always, female, male, broken, inactive], ctx(sex="female"))

    assert [r.rule_key for r in result.applicable_rules] == ["always", "female_only"]
    assert result.total == 4
    assert result.applicable == 2
    assert result.skipped == 1
    assert result.invalid_when_json == 1
    assert list(result.matched_by_rule_id) == [str(female.id)]
    assert result.applicable_rules[0].when_json_status == WhenJsonStatus.NONE
    assert result.applicable_rules[1].when_json_status == WhenJsonStatus.OK
