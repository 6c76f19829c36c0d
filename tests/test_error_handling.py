"""
Error handling tests.

Covers the error envelope for every failure path:
- Request validation errors (422)
- Domain errors raised by services (400 / 401 / 403 / 404 / 409)
- Starlette HTTP errors
- Unexpected exceptions (500, no internals leaked)
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from test_fixtures import client, signed_in
from main import app
from api.middleware import make_serializable
from app.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    NutriCoachError,
    ServiceValidationError,
    UnauthorizedError,
)
from services.pantry_service import PantryService


# =============================================================================
# EXCEPTION CLASSES
# =============================================================================


@pytest.mark.parametrize(
    "exc_class,status,code",
    [
        (ServiceValidationError, 400, "SERVICE_VALIDATION_ERROR"),
        (UnauthorizedError, 401, "UNAUTHORIZED"),
        (ForbiddenError, 403, "FORBIDDEN"),
        (NotFoundError, 404, "NOT_FOUND"),
        (ConflictError, 409, "CONFLICT"),
    ],
)
def test_exception_defaults(exc_class, status, code):
    exc = exc_class()

    assert isinstance(exc, NutriCoachError)
    assert exc.http_status == status
    assert exc.error_code == code
    assert exc.to_dict() == {"code": code, "message": exc_class.default_message}


def test_custom_code_and_details():
    exc = ServiceValidationError(
        "Weekmenu haalt de variatiedoelen niet",
        details={"unique_veg_count": 2},
        code="MEAL_PLAN_VARIETY_TARGETS_NOT_MET",
    )

    assert str(exc) == "Weekmenu haalt de variatiedoelen niet"
    assert exc.to_dict() == {
        "code": "MEAL_PLAN_VARIETY_TARGETS_NOT_MET",
        "message": "Weekmenu haalt de variatiedoelen niet",
        "details": {"unique_veg_count": 2},
    }


def test_make_serializable():
    assert make_serializable(
        {"grams": Decimal("12.5"), "items": (1, ValueError("bad"))}
    ) == {"grams": 12.5, "items": [1, "bad"]}


# =============================================================================
# ENVELOPES
# =============================================================================


def test_success_envelope(monkeypatch):
    monkeypatch.setattr(PantryService, "delete_all", lambda db, uid: 3)

    with signed_in():
        r = client.delete("/pantry")

    body = r.json()
    assert r.status_code == 200
    assert body["success"] is True
    assert body["data"] == {"removed": 3}
    assert "timestamp" in body


def test_validation_error_envelope():
    with signed_in():
        r = client.put("/pantry", json={"nevo_code": "1234", "available_g": -5})

    assert r.status_code == 422
    body = r.json()
    assert body["success"] is False
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["error"]["message"] == "Request validation failed"
    assert body["error"]["details"][0]["loc"][-1] == "available_g"


@pytest.mark.parametrize(
    "exc,status,code",
    [
        (ServiceValidationError("Ongeldige invoer"), 400, "SERVICE_VALIDATION_ERROR"),
        (NotFoundError("Pantry item 1234 not found"), 404, "NOT_FOUND"),
        (ConflictError("Bestaat al"), 409, "CONFLICT"),
    ],
)
def test_service_errors_map_to_status(monkeypatch, exc, status, code):
    def fail(db, uid, nevo_code):
        raise exc

    monkeypatch.setattr(PantryService, "delete_item", fail)

    with signed_in():
        r = client.delete("/pantry/items/1234")

    assert r.status_code == status
    assert r.json()["error"] == {"code": code, "message": exc.message}


def test_error_details_are_serialized(monkeypatch):
    def fail(db, uid, nevo_code):
        raise ServiceValidationError("Te veel", details={"available_g": Decimal("1.5")})

    monkeypatch.setattr(PantryService, "delete_item", fail)

    with signed_in():
        r = client.delete("/pantry/items/1234")

    assert r.json()["error"]["details"] == {"available_g": 1.5}


def test_unexpected_error_is_500_without_internals(monkeypatch):
    def explode(db, uid):
        raise RuntimeError("connection string postgres://secret")

    monkeypatch.setattr(PantryService, "list_items", explode)
    safe_client = TestClient(app, raise_server_exceptions=False)

    with signed_in():
        r = safe_client.get("/pantry")

    assert r.status_code == 500
    body = r.json()
    assert body["success"] is False
    assert body["error"] == {
        "code": "INTERNAL_SERVER_ERROR",
        "message": "An unexpected error occurred",
    }
    assert "secret" not in r.text


def test_method_not_allowed_uses_error_envelope():
    r = client.patch("/health-check")

    assert r.status_code == 405
    assert r.json()["error"]["code"] == "HTTP_405"
