"""Test error handling functionality.

Verifies that custom exceptions carry the right status codes and details,
and that the handlers render them in the shared error envelope.
"""
import asyncio
import json
from datetime import date

import pytest
from starlette.requests import Request

from api.meal_plans import get_meal_plan
from api.allergens import get_exclusion_set
from core.error_handlers import app_exception_handler, generic_exception_handler
from core.exceptions import (
    CatalogDataError,
    DataInconsistencyWarning,
    GenerationCancelledError,
    NoCandidatesAtAllError,
    NoSafeCandidatesError,
    NotFoundError,
    ValidationError,
)


def make_request(headers=None):
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({
        "type": "http",
        "scheme": "http",
        "method": "POST",
        "path": "/api/meal-plans/generate",
        "query_string": b"",
        "headers": raw,
    })


def test_meal_plan_not_found_raises_404(db):
    """Calling the endpoint function directly raises NotFoundError."""
    with pytest.raises(NotFoundError) as exc_info:
        get_meal_plan(plan_id=99999, db=db)
    assert "MealPlan" in exc_info.value.message
    assert exc_info.value.status_code == 404


def test_exclusion_set_for_unknown_user(db):
    with pytest.raises(NotFoundError) as exc_info:
        get_exclusion_set(user_id=99999, db=db)
    assert exc_info.value.details == {"resource": "User", "id": 99999}


def test_exception_classes_have_proper_attributes():
    exc = ValidationError("end_date must be after start_date", field="date_range")
    assert exc.status_code == 400
    assert exc.details == {"field": "date_range"}

    exc = NoSafeCandidatesError(date(2026, 3, 2), "dinner", rejected=4)
    assert exc.status_code == 422
    assert exc.details == {"meal_date": "2026-03-02", "meal_type": "dinner", "rejected": 4}

    exc = NoCandidatesAtAllError([{"meal_date": "2026-03-02", "meal_type": "lunch"}])
    assert exc.details["unfilled_slots"][0]["meal_type"] == "lunch"

    assert GenerationCancelledError(3).details == {"slots_done": 3}
    assert CatalogDataError("bad row", recipe_id=7).details == {"recipe_id": 7}


def test_data_inconsistency_is_a_warning():
    warning = DataInconsistencyWarning(5, {2}, {3})
    assert isinstance(warning, UserWarning)
    assert "missing=[2]" in str(warning)
    assert "extra=[3]" in str(warning)


def test_app_exception_rendered_in_envelope():
    exc = NoCandidatesAtAllError([{"meal_date": "2026-03-02", "meal_type": "lunch", "reason": "no_candidates"}])
    response = asyncio.run(app_exception_handler(make_request({"X-Request-ID": "abc"}), exc))
    body = json.loads(response.body)
    assert response.status_code == 422
    assert body["error"]["message"] == exc.message
    assert body["error"]["request_id"] == "abc"
    assert body["error"]["details"]["unfilled_slots"][0]["reason"] == "no_candidates"


def test_unexpected_error_is_hidden():
    response = asyncio.run(generic_exception_handler(make_request(), RuntimeError("secret stack detail")))
    body = json.loads(response.body)
    assert response.status_code == 500
    assert "secret" not in body["error"]["message"]
    assert "request_id" not in body["error"]
