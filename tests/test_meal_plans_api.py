"""Endpoint tests for the meal plan, allergen and preference routers."""
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from database import models
from database.deps import get_db_read, get_db_write
from main import app


@pytest.fixture
def client(session_factory):
    def override():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db_read] = override
    app.dependency_overrides[get_db_write] = override
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def shrimp_user(db, user, allergen_ids):
    db.add(models.UserAllergy(user_id=user.id, allergen_id=allergen_ids["Shrimp"]))
    db.commit()
    return user.id


def payload(user_id, **overrides):
    body = {
        "user_id": user_id,
        "start_date": "2026-03-02",
        "end_date": "2026-03-04",
        "meal_types": ["breakfast", "dinner"],
    }
    body.update(overrides)
    return body


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy", "database": "connected"}


def test_generate_returns_plan_and_shopping_list(client, shrimp_user, allergen_ids):
    resp = client.post("/api/meal-plans/generate", json=payload(shrimp_user, servings=2))
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "success"
    assert len(body["entries"]) == 6
    assert allergen_ids["Crab"] in body["excluded_allergen_ids"]
    assert body["entries"][0]["meal_date"] == "2026-03-02"
    assert body["entries"][0]["meal_type"] == "breakfast"
    assert "total" in body["entries"][0]["score"]
    assert body["shopping_list"]

    plan = client.get(f"/api/meal-plans/{body['meal_plan_id']}").json()
    assert len(plan["entries"]) == 6
    assert all(e["notes"] == "Auto-generated" for e in plan["entries"])

    shopping = client.get(f"/api/meal-plans/{body['meal_plan_id']}/shopping-list").json()
    assert shopping["total_items"] == len(body["shopping_list"])
    assert sum(len(v) for v in shopping["by_category"].values()) == shopping["total_items"]


def test_partial_generation_lists_unfilled_slots(client, user):
    resp = client.post("/api/meal-plans/generate", json=payload(user.id, cuisine_types=["Mexican"],
                                                                meal_types=["breakfast", "lunch"]))
    body = resp.json()
    assert resp.status_code == 201
    assert body["status"] == "partial"
    assert {s["meal_type"] for s in body["unfilled_slots"]} == {"breakfast"}
    assert {s["reason"] for s in body["unfilled_slots"]} == {"no_candidates"}
    assert {e["recipe_name"] for e in body["entries"]} <= {"Black Bean Tacos"}


def test_regenerate_existing_plan(client, user):
    created = client.post("/api/meal-plans/generate", json=payload(user.id, meal_types=["dinner"])).json()
    resp = client.post(
        f"/api/meal-plans/{created['meal_plan_id']}/generate",
        json=payload(user.id, meal_types=["lunch", "dinner"]),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["kept_entries"] == 3
    assert {e["meal_type"] for e in body["entries"]} == {"lunch"}


def test_failed_generation_is_422_with_slot_detail(client, user):
    resp = client.post("/api/meal-plans/generate", json=payload(user.id, cuisine_types=["Martian"]))
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert len(error["details"]["unfilled_slots"]) == 6


def test_unknown_user_is_404(client):
    resp = client.post("/api/meal-plans/generate", json=payload(9999))
    assert resp.status_code == 404
    assert resp.json()["error"]["details"] == {"resource": "User", "id": 9999}


def test_inverted_dates_rejected(client, user):
    resp = client.post("/api/meal-plans/generate", json=payload(user.id, start_date="2026-03-05"))
    assert resp.status_code == 422
    assert resp.json()["error"]["message"] == "Validation error"


def test_single_day_range_rejected(client, user):
    resp = client.post("/api/meal-plans/generate", json=payload(user.id, end_date="2026-03-02"))
    assert resp.status_code == 422
    assert resp.json()["error"]["message"] == "Validation error"
    assert client.get("/api/meal-plans/1").status_code == 404


def test_unknown_meal_type_rejected(client, user):
    resp = client.post("/api/meal-plans/generate", json=payload(user.id, meal_types=["elevenses"]))
    assert resp.status_code == 422


def test_missing_plan_is_404(client):
    assert client.get("/api/meal-plans/777").status_code == 404
    assert client.get("/api/meal-plans/777/shopping-list").status_code == 404


def test_exclusion_set_endpoint(client, shrimp_user):
    resp = client.get(f"/api/users/{shrimp_user}/exclusion-set")
    assert resp.status_code == 200
    assert set(resp.json()["allergens"]) == {"Shrimp", "Crab", "Lobster", "Dust Mite", "Cockroach"}


def recipe_id(db, name):
    return db.query(models.Recipe).filter_by(name=name).one().id


def test_recommendations_default_to_dinner(client, user):
    resp = client.post("/api/meal-plans/recommendations", json={"user_id": user.id, "limit": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert body["meal_type"] == "dinner"
    assert len(body["recipes"]) == 2
    assert body["recipes"][0]["score"]["total"] >= body["recipes"][1]["score"]["total"]


def test_recommendations_leave_out_unsafe_recipes(client, shrimp_user):
    resp = client.post("/api/meal-plans/recommendations?meal_type=lunch", json={"user_id": shrimp_user})
    assert resp.status_code == 200
    body = resp.json()
    assert {r["recipe_name"] for r in body["recipes"]} == {"Chickpea Avocado Salad", "Black Bean Tacos"}
    assert body["rejected_unsafe"] == 2


def test_recommendations_unknown_meal_type_is_400(client, user):
    resp = client.post("/api/meal-plans/recommendations?meal_type=elevenses", json={"user_id": user.id})
    assert resp.status_code == 400
    assert resp.json()["error"]["details"] == {"field": "meal_type"}


def test_recommendations_limit_must_be_positive(client, user):
    resp = client.post("/api/meal-plans/recommendations", json={"user_id": user.id, "limit": 0})
    assert resp.status_code == 422


def test_bulk_fill_adds_lunches_to_plan(client, db, user):
    created = client.post("/api/meal-plans/generate", json=payload(user.id, meal_types=["dinner"])).json()
    plan_id = created["meal_plan_id"]
    chosen = [recipe_id(db, "Chickpea Avocado Salad"), recipe_id(db, "Black Bean Tacos")]

    resp = client.post(f"/api/meal-plans/{plan_id}/bulk-fill",
                       json={"user_id": user.id, "meal_type": "lunch", "recipe_ids": chosen})
    assert resp.status_code == 200
    body = resp.json()
    assert body["filled"] == 3
    assert body["replaced_entry_ids"] == []
    assert body["shopping_list"]

    entries = client.get(f"/api/meal-plans/{plan_id}").json()["entries"]
    lunches = [e for e in entries if e["meal_type"] == "lunch"]
    assert len(entries) == 6
    assert {e["recipe_id"] for e in lunches} == set(chosen)
    assert {e["notes"] for e in lunches} == {"Bulk filled"}


def test_bulk_fill_unknown_pattern_is_422(client, db, user):
    created = client.post("/api/meal-plans/generate", json=payload(user.id, meal_types=["dinner"])).json()
    resp = client.post(f"/api/meal-plans/{created['meal_plan_id']}/bulk-fill", json={
        "user_id": user.id, "meal_type": "lunch", "fill_pattern": "random",
        "recipe_ids": [recipe_id(db, "Black Bean Tacos")],
    })
    assert resp.status_code == 422


def test_bulk_fill_unsafe_recipe_is_400(client, db, shrimp_user):
    created = client.post("/api/meal-plans/generate", json=payload(shrimp_user, meal_types=["dinner"])).json()
    resp = client.post(f"/api/meal-plans/{created['meal_plan_id']}/bulk-fill", json={
        "user_id": shrimp_user, "meal_type": "lunch", "recipe_ids": [recipe_id(db, "Crab Cakes")],
    })
    assert resp.status_code == 400
    assert resp.json()["error"]["details"] == {"field": "recipe_ids"}


def test_bulk_fill_missing_plan_is_404(client, db, user):
    resp = client.post("/api/meal-plans/777/bulk-fill", json={
        "user_id": user.id, "meal_type": "lunch", "recipe_ids": [recipe_id(db, "Black Bean Tacos")],
    })
    assert resp.status_code == 404


@pytest.fixture
def recent_history(db, user):
    today = date.today()
    chilli, tacos = recipe_id(db, "Beef Chilli"), recipe_id(db, "Black Bean Tacos")
    plan = models.MealPlan(user_id=user.id, name="Recent", plan_type="manual",
                           start_date=today - timedelta(days=20), end_date=today)
    plan.entries = [
        models.MealPlanEntry(meal_date=today - timedelta(days=20), meal_type="lunch", recipe_id=tacos,
                             is_completed=False),
        models.MealPlanEntry(meal_date=today - timedelta(days=2), meal_type="dinner", recipe_id=chilli,
                             is_completed=True),
    ]
    db.add(plan)
    db.commit()
    return chilli, tacos


def test_cuisine_preferences_endpoint(client, user, recent_history):
    resp = client.get(f"/api/users/{user.id}/cuisine-preferences")
    assert resp.status_code == 200
    prefs = resp.json()["preferences"]
    assert [(p["cuisine_type"], p["usage_count"]) for p in prefs] == [("mexican", 2)]
    assert prefs[0]["completion_rate"] == 0.5


def test_recently_used_recipes_endpoint(client, user, recent_history):
    chilli, tacos = recent_history
    body = client.get(f"/api/users/{user.id}/recently-used-recipes").json()
    assert body["days_back"] == 14
    assert body["recipe_ids"] == [chilli]
    wider = client.get(f"/api/users/{user.id}/recently-used-recipes", params={"days_back": 30}).json()
    assert wider["recipe_ids"] == sorted([chilli, tacos])
    assert client.get(f"/api/users/{user.id}/recently-used-recipes", params={"days_back": -1}).status_code == 422


def test_recipe_completion_rates_endpoint(client, user, recent_history):
    chilli, tacos = recent_history
    body = client.get(f"/api/users/{user.id}/recipe-completion-rates").json()
    assert body["completion_rates"] == {str(chilli): 1.0, str(tacos): 0.0}


def test_preference_lookups_for_unknown_user_are_404(client):
    assert client.get("/api/users/9999/cuisine-preferences").status_code == 404
    assert client.get("/api/users/9999/recipe-completion-rates").status_code == 404
