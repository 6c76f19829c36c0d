"""
Tests for the therapeutic protocol editor.

Covers targets (unit rules per value type), supplements, cloning, source
references and supplement rules with their when_json conditions.
"""

import uuid
from decimal import Decimal
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import IntegrityError

from test_fixtures import (
    client,
    make_protocol,
    make_supplement,
    make_supplement_rule,
    make_target,
    mock_db,
    signed_in,
)
from app.exceptions import ConflictError, NotFoundError, ServiceValidationError
from domain.enums import WhenJsonStatus
from domain.schemas.therapeutic_schemas import (
    CloneProtocolRequest,
    RuleContext,
    SourceRef,
    SupplementRuleFilterResult,
    SupplementRuleUpsert,
    SupplementUpsert,
    TargetUpsert,
)
from services import therapeutic_service
from services.therapeutic_service import TherapeuticService


@pytest.fixture
def protocol():
    return make_protocol()


@pytest.fixture
def repo(monkeypatch, protocol):
    instance = Mock()
    instance.get_by_id.side_effect = lambda pid: protocol if pid == protocol.id else None
    instance.get_by_key.return_value = None
    instance.list_targets.return_value = []
    instance.list_supplements.return_value = []
    instance.list_rules.return_value = []
    instance.list_snippets.return_value = []
    monkeypatch.setattr(therapeutic_service, "TherapeuticRepository", lambda db: instance)
    return instance


@pytest.fixture
def db():
    """Session mock whose refresh assigns an id, like a real INSERT would"""
    session = mock_db()

    def refresh(entity):
        if getattr(entity, "id", None) is None:
            entity.id = uuid.uuid4()

    session.refresh.side_effect = refresh
    session.flush.side_effect = lambda: None
    return session


def target_upsert(value_type, unit="mg", **kwargs):
    return TargetUpsert(
        period="daily",
        target_kind="micro",
        target_key=kwargs.pop("target_key", "kalium"),
        value_num=Decimal("2000"),
        unit=unit,
        value_type=value_type,
        **kwargs,
    )


def rule_upsert(when_json=None, **kwargs):
    values = {
        "supplement_key": "vitamin_d",
        "rule_key": "pregnancy_check",
        "kind": "warning",
        "severity": "warn",
        "when_json": when_json,
        "message_nl": "Overleg met je arts bij zwangerschap.",
    }
    values.update(kwargs)
    return SupplementRuleUpsert(**values)


# =============================================================================
# TARGETS
# =============================================================================


@pytest.mark.parametrize(
    "value_type,unit,expected",
    [
        ("adh_percent", "mg", "%_adh"),
        ("count", "stuks", None),
        ("absolute", " mg ", "mg"),
        ("absolute", "  ", None),
    ],
)
def test_target_unit_follows_value_type(repo, db, protocol, value_type, unit, expected):
    target = TherapeuticService.upsert_target(db, protocol.id, target_upsert(value_type, unit))

    assert target.unit == expected
    assert target.protocol_id == protocol.id
    db.commit.assert_called_once()


def test_target_unit_too_long(repo, db, protocol):
    with pytest.raises(ServiceValidationError, match="unit maximaal 50 tekens"):
        TherapeuticService.upsert_target(db, protocol.id, target_upsert("absolute", "x" * 51))


def test_target_update_must_belong_to_protocol(repo, db, protocol):
    repo.get_target.return_value = make_target(protocol_id=uuid.uuid4())

    with pytest.raises(NotFoundError):
        TherapeuticService.upsert_target(
            db, protocol.id, target_upsert("absolute", id=uuid.uuid4())
        )


def test_target_duplicate_is_conflict(repo, db, protocol):
    db.commit.side_effect = IntegrityError("insert", {}, Exception("unique"))

    with pytest.raises(ConflictError):
        TherapeuticService.upsert_target(db, protocol.id, target_upsert("absolute"))
    db.rollback.assert_called_once()


def test_target_on_unknown_protocol(repo, db):
    with pytest.raises(NotFoundError):
        TherapeuticService.upsert_target(db, uuid.uuid4(), target_upsert("absolute"))


def test_delete_target(repo, db):
    target = make_target()
    repo.get_target.return_value = target

    assert TherapeuticService.delete_target(db, target.id) is True
    db.delete.assert_called_once_with(target)

    repo.get_target.return_value = None
    with pytest.raises(NotFoundError):
        TherapeuticService.delete_target(db, uuid.uuid4())


# =============================================================================
# SUPPLEMENTS
# =============================================================================


def test_supplement_text_fields_are_trimmed(repo, db, protocol):
    supplement = TherapeuticService.upsert_supplement(
        db,
        protocol.id,
        SupplementUpsert(
            supplement_key=" vitamin_d ", label_nl=" Vitamine D ", dosage_text="  ", notes_nl=None
        ),
    )

    assert supplement.supplement_key == "vitamin_d"
    assert supplement.label_nl == "Vitamine D"
    assert supplement.dosage_text is None


def test_supplement_label_required(repo, db, protocol):
    with pytest.raises(ServiceValidationError):
        TherapeuticService.upsert_supplement(
            db, protocol.id, SupplementUpsert(supplement_key="vitamin_d", label_nl="  ")
        )


def test_toggle_supplement(repo, db):
    supplement = make_supplement(is_active=True)
    repo.get_supplement.return_value = supplement

    result = TherapeuticService.toggle_supplement(db, supplement.id, False)

    assert result.is_active is False


# =============================================================================
# CLONE AND SOURCE REFS
# =============================================================================


def test_clone_copies_targets_and_supplements(repo, db, protocol):
    repo.list_targets.return_value = [make_target(protocol_id=protocol.id)]
    repo.list_supplements.return_value = [make_supplement(protocol_id=protocol.id)]

    clone = TherapeuticService.clone_protocol(
        db, protocol.id, CloneProtocolRequest(protocol_key=" ckd-v2 ", name_nl="Nierdieet v2")
    )

    assert clone.protocol_key == "ckd-v2"
    assert clone.is_active is False
    assert clone.version == protocol.version
    added = [call[0][0] for call in db.add.call_args_list]
    assert len(added) == 3
    assert type(added[1]).__name__ == "TherapeuticProtocolTarget"
    assert type(added[2]).__name__ == "TherapeuticProtocolSupplement"
    db.commit.assert_called_once()


def test_clone_with_existing_key_is_conflict(repo, db, protocol):
    repo.get_by_key.return_value = make_protocol(protocol_key="ckd-v2")

    with pytest.raises(ConflictError, match="Protocol key already exists"):
        TherapeuticService.clone_protocol(
            db, protocol.id, CloneProtocolRequest(protocol_key="ckd-v2", name_nl="Kopie")
        )
    db.add.assert_not_called()


def test_source_refs_drop_blank_urls(repo, db, protocol):
    result = TherapeuticService.update_source_refs(
        db,
        protocol.id,
        [SourceRef(title=" Richtlijn ", url="  "), SourceRef(title="Artikel", url="https://x.test")],
    )

    assert result.source_refs == [
        {"title": "Richtlijn"},
        {"title": "Artikel", "url": "https://x.test"},
    ]


# =============================================================================
# SUPPLEMENT RULES
# =============================================================================


def test_rule_without_when_json_is_stored_as_null(repo, db, protocol):
    response = TherapeuticService.upsert_supplement_rule(db, protocol.id, rule_upsert("  "))

    assert response.when_json is None
    assert response.when_json_status == WhenJsonStatus.NONE


def test_rule_with_text_that_is_not_json_is_rejected(repo, db, protocol):
    with pytest.raises(ServiceValidationError, match="when_json is geen geldige JSON."):
        TherapeuticService.upsert_supplement_rule(db, protocol.id, rule_upsert("{all:"))
    db.commit.assert_not_called()


def test_rule_with_json_outside_the_dsl_is_stored_as_invalid(repo, db, protocol):
    response = TherapeuticService.upsert_supplement_rule(
        db, protocol.id, rule_upsert('{"when": "always"}')
    )

    assert response.when_json == {"when": "always"}
    assert response.when_json_status == WhenJsonStatus.INVALID


def test_rule_message_length(repo, db, protocol):
    with pytest.raises(ServiceValidationError):
        TherapeuticService.upsert_supplement_rule(db, protocol.id, rule_upsert(message_nl="kort"))


def test_duplicate_rule_key_is_conflict(repo, db, protocol):
    db.commit.side_effect = IntegrityError("insert", {}, Exception("unique"))

    with pytest.raises(ConflictError, match="Rule key bestaat al"):
        TherapeuticService.upsert_supplement_rule(db, protocol.id, rule_upsert())


def test_evaluate_rules_fills_protocol_key(repo, db, protocol):
    rule = make_supplement_rule(
        protocol_id=protocol.id,
        when_json={"all": [{"field": "protocolKey", "op": "eq", "value": protocol.protocol_key}]},
    )
    repo.list_rules.return_value = [rule]

    result = TherapeuticService.evaluate_rules(db, protocol.id, RuleContext())

    repo.list_rules.assert_called_once_with(protocol.id, active_only=True)
    assert result.applicable == 1
    assert result.matched_by_rule_id[str(rule.id)][0].actual == protocol.protocol_key


# =============================================================================
# ROUTES
# =============================================================================


def test_editor_route_returns_null_for_unknown_protocol(monkeypatch):
    monkeypatch.setattr(TherapeuticService, "get_editor", lambda db, pid: None)

    with signed_in(admin=True):
        r = client.get(f"/admin/therapeutic-protocols/{uuid.uuid4()}/editor")

    assert r.status_code == 200
    assert r.json()["data"] is None


def test_editor_route(repo, protocol):
    repo.list_targets.return_value = [make_target(protocol_id=protocol.id)]
    repo.list_rules.return_value = [make_supplement_rule(when_json={"any": []})]

    with signed_in(admin=True):
        r = client.get(f"/admin/therapeutic-protocols/{protocol.id}/editor")

    assert r.status_code == 200
    data = r.json()["data"]
    assert data["protocol"]["protocol_key"] == "ckd-stage-3"
    assert data["targets"][0]["target_key"] == "protein"
    assert data["rules"][0]["when_json_status"] == "ok"


def test_clone_route_conflict_is_409(monkeypatch):
    def conflict(db, pid, data):
        raise ConflictError("Protocol key already exists")

    monkeypatch.setattr(TherapeuticService, "clone_protocol", conflict)
    with signed_in(admin=True):
        r = client.post(
            f"/admin/therapeutic-protocols/{uuid.uuid4()}/clone",
            json={"protocol_key": "ckd-v2", "name_nl": "Kopie"},
        )

    assert r.status_code == 409
    assert r.json()["error"]["code"] == "CONFLICT"


def test_evaluate_route_accepts_camel_case_context(monkeypatch):
    seen = {}

    def evaluate(db, pid, context):
        seen["context"] = context
        return SupplementRuleFilterResult()

    monkeypatch.setattr(TherapeuticService, "evaluate_rules", evaluate)
    with signed_in(admin=True):
        r = client.post(
            f"/admin/therapeutic-protocols/{uuid.uuid4()}/rules/evaluate",
            json={"context": {"sex": "female", "ageYears": 34, "overrides": {"pregnant": True}}},
        )

    assert r.status_code == 200
    assert seen["context"].age_years == 34
    assert seen["context"].overrides == {"pregnant": True}
