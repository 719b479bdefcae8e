"""End-to-end generation against the seeded SQLite catalog."""
from datetime import date, datetime, timedelta

import pytest

from core.exceptions import DatabaseError, NoCandidatesAtAllError, NotFoundError, ValidationError
from database import models
from services.bulk_fill import ROTATE, BulkFillRequest, select_recipe_for_date
from services.meal_plan_assembler import PARTIAL, SUCCESS, GenerationRequest, RecommendationRequest
from services.meal_plan_service import MealPlanService

START = date(2026, 3, 2)

SHELLFISH_RECIPES = {"Shrimp Fried Rice", "Crab Cakes", "Thai Green Chicken Curry"}


def request(user_id, days=3, slots=("breakfast", "lunch", "dinner"), **kwargs):
    return GenerationRequest(
        user_id=user_id,
        start_date=START,
        end_date=START + timedelta(days=days - 1),
        requested_slots=slots,
        **kwargs
    )


@pytest.fixture
def shrimp_allergic(db, user, allergen_ids):
    db.add(models.UserAllergy(user_id=user.id, allergen_id=allergen_ids["Shrimp"], severity="severe"))
    db.commit()
    return user


def test_generated_plan_is_allergen_safe_and_persisted(db, shrimp_allergic, allergen_ids):
    outcome = MealPlanService(db).generate(request(shrimp_allergic.id), plan_name="Safe week")

    assert outcome.result.status == SUCCESS
    assert {allergen_ids["Crab"], allergen_ids["Dust Mite"]} <= outcome.result.exclusion_set
    plan = outcome.meal_plan
    assert plan.name == "Safe week"
    assert (plan.start_date, plan.end_date) == (START, START + timedelta(days=2))
    assert len(plan.entries) == 9
    assert not {e.recipe.name for e in plan.entries} & SHELLFISH_RECIPES
    assert sorted(e.id for e in plan.entries) == sorted(outcome.entry_ids)
    assert len(plan.shopping_items) == len(outcome.result.shopping_list) > 0


def test_no_lunch_or_dinner_repeats_on_the_same_day(db, user):
    outcome = MealPlanService(db).generate(request(user.id, days=2))
    by_day = {}
    for e in outcome.meal_plan.entries:
        by_day.setdefault(e.meal_date, []).append(e.recipe_id)
    for ids in by_day.values():
        assert len(ids) == len(set(ids))


def test_regeneration_fills_gaps_without_touching_existing(db, user):
    service = MealPlanService(db)
    first = service.generate(request(user.id, slots=("dinner",)))
    dinner_ids = {e.id for e in first.meal_plan.entries}

    second = service.generate(request(user.id, slots=("lunch", "dinner"), meal_plan_id=first.meal_plan.id))
    assert second.result.kept_entries == 3
    entries = second.meal_plan.entries
    assert len(entries) == 6
    assert dinner_ids <= {e.id for e in entries}
    assert sorted(e.meal_type for e in entries) == ["dinner"] * 3 + ["lunch"] * 3

    # the stored list still covers the kept dinners
    dinner_items = {i.ingredient_name for i in first.shopping_list}
    stored = {i.ingredient_name for i in second.meal_plan.shopping_items}
    assert dinner_items <= stored
    assert stored == {i.ingredient_name for i in second.shopping_list}


def test_regeneration_replaces_targeted_slot(db, user):
    service = MealPlanService(db)
    plan = service.generate(request(user.id, slots=("dinner",))).meal_plan
    target = START + timedelta(days=1)
    before = {e.meal_date: e.id for e in plan.entries}

    outcome = service.generate(request(user.id, slots=("dinner",), meal_plan_id=plan.id,
                                       target_dates=(target,), replace_existing=True))
    after = {e.meal_date: e.id for e in outcome.meal_plan.entries}
    assert after[START] == before[START]
    assert after[START + timedelta(days=2)] == before[START + timedelta(days=2)]
    assert after[target] != before[target]
    assert len(after) == 3


def test_unknown_user(db):
    with pytest.raises(NotFoundError):
        MealPlanService(db).generate(request(424242))


def test_plan_of_another_user_is_not_found(db, user):
    plan = MealPlanService(db).generate(request(user.id, slots=("dinner",))).meal_plan
    other = models.User(name="Someone Else")
    db.add(other)
    db.commit()
    with pytest.raises(NotFoundError):
        MealPlanService(db).generate(request(other.id, meal_plan_id=plan.id))


def test_dates_outside_existing_plan(db, user):
    plan = MealPlanService(db).generate(request(user.id, days=2, slots=("dinner",))).meal_plan
    with pytest.raises(ValidationError):
        MealPlanService(db).generate(request(user.id, days=5, meal_plan_id=plan.id))


def test_nothing_to_assign_raises_and_creates_no_plan(db, user):
    with pytest.raises(NoCandidatesAtAllError) as exc_info:
        MealPlanService(db).generate(request(user.id, cuisine_types=("Martian",)))
    assert len(exc_info.value.details["unfilled_slots"]) == 9
    assert db.query(models.MealPlan).count() == 0


def test_exclusion_set(db, shrimp_allergic, allergen_ids):
    excluded = MealPlanService(db).exclusion_set(shrimp_allergic.id)
    assert excluded == {allergen_ids[n] for n in ("Shrimp", "Crab", "Lobster", "Dust Mite", "Cockroach")}


def recipe_ids(db, *names):
    by_name = {r.name: r.id for r in db.query(models.Recipe).all()}
    return tuple(by_name[n] for n in names)


def test_kept_dinners_with_unfillable_breakfasts_is_partial(db, user):
    service = MealPlanService(db)
    plan = service.generate(request(user.id, slots=("dinner",))).meal_plan

    outcome = service.generate(request(user.id, slots=("breakfast", "dinner"), meal_plan_id=plan.id,
                                       cuisine_types=("Martian",)))
    assert outcome.result.status == PARTIAL
    assert outcome.result.kept_entries == 3
    assert {u.meal_type for u in outcome.result.unfilled} == {"breakfast"}
    assert len(outcome.meal_plan.entries) == 3


def test_failed_write_leaves_no_new_plan(db, user, monkeypatch):
    service = MealPlanService(db)

    def fail(meal_plan_id, diff):
        raise DatabaseError("Failed to apply meal plan changes", operation="apply_plan_diff")

    monkeypatch.setattr(service.writer, "apply", fail)
    with pytest.raises(DatabaseError):
        service.generate(request(user.id, slots=("dinner",)))
    assert db.query(models.MealPlan).count() == 0
    assert db.query(models.MealPlanEntry).count() == 0


def test_recommendations_skip_unsafe_lunches(db, shrimp_allergic):
    result = MealPlanService(db).recommend(RecommendationRequest(user_id=shrimp_allergic.id, meal_type="lunch",
                                                                 as_of=START))
    assert {c.recipe.name for c in result.candidates} == {"Chickpea Avocado Salad", "Black Bean Tacos"}
    assert result.rejected_unsafe == 2


def test_recommendations_for_unknown_user(db):
    with pytest.raises(NotFoundError):
        MealPlanService(db).recommend(RecommendationRequest(user_id=424242, meal_type="dinner"))


def test_bulk_fill_rotates_lunches_across_the_plan(db, user):
    service = MealPlanService(db)
    first = service.generate(request(user.id, slots=("dinner",)))
    chosen = recipe_ids(db, "Chickpea Avocado Salad", "Black Bean Tacos")

    outcome = service.bulk_fill(BulkFillRequest(user_id=user.id, meal_plan_id=first.meal_plan.id,
                                                meal_type="lunch", recipe_ids=chosen))
    lunches = sorted((e for e in outcome.meal_plan.entries if e.meal_type == "lunch"), key=lambda e: e.meal_date)
    assert [e.meal_date for e in lunches] == [START + timedelta(days=i) for i in range(3)]
    assert [e.recipe_id for e in lunches] == [select_recipe_for_date(chosen, ROTATE, e.meal_date) for e in lunches]
    assert {e.recipe_id for e in lunches} == set(chosen)
    assert len(outcome.meal_plan.entries) == 6
    assert outcome.replaced_entry_ids == []

    stored = {i.ingredient_name for i in outcome.meal_plan.shopping_items}
    assert stored == {i.ingredient_name for i in outcome.shopping_list}
    assert {i.ingredient_name for i in first.shopping_list} <= stored


def test_bulk_fill_same_replaces_existing_dinners(db, user):
    service = MealPlanService(db)
    plan = service.generate(request(user.id, slots=("dinner",))).meal_plan
    old_ids = {e.id for e in plan.entries}
    chilli, = recipe_ids(db, "Beef Chilli")

    outcome = service.bulk_fill(BulkFillRequest(user_id=user.id, meal_plan_id=plan.id, meal_type="Supper",
                                                recipe_ids=(chilli,), fill_pattern="same", servings=2))
    entries = outcome.meal_plan.entries
    assert len(entries) == 3
    assert {e.recipe_id for e in entries} == {chilli}
    assert set(outcome.replaced_entry_ids) == old_ids
    assert all(e.servings == 2 and e.notes == "Bulk filled" for e in entries)


def test_bulk_fill_targets_selected_dates(db, user):
    service = MealPlanService(db)
    plan = service.generate(request(user.id, slots=("dinner",))).meal_plan
    target = START + timedelta(days=1)

    outcome = service.bulk_fill(BulkFillRequest(user_id=user.id, meal_plan_id=plan.id, meal_type="snack",
                                                recipe_ids=recipe_ids(db, "Hummus"), target_dates=(target,)))
    snacks = [e for e in outcome.meal_plan.entries if e.meal_type == "snack"]
    assert [e.meal_date for e in snacks] == [target]


def test_bulk_fill_dates_outside_plan(db, user):
    service = MealPlanService(db)
    plan = service.generate(request(user.id, slots=("dinner",))).meal_plan
    with pytest.raises(ValidationError) as exc_info:
        service.bulk_fill(BulkFillRequest(user_id=user.id, meal_plan_id=plan.id, meal_type="snack",
                                          recipe_ids=recipe_ids(db, "Hummus"),
                                          target_dates=(START + timedelta(days=10),)))
    assert exc_info.value.details["field"] == "target_dates"


def test_bulk_fill_rejects_unsafe_recipes(db, shrimp_allergic):
    service = MealPlanService(db)
    plan = service.generate(request(shrimp_allergic.id, slots=("dinner",))).meal_plan
    chosen = recipe_ids(db, "Black Bean Tacos", "Shrimp Fried Rice")

    with pytest.raises(ValidationError) as exc_info:
        service.bulk_fill(BulkFillRequest(user_id=shrimp_allergic.id, meal_plan_id=plan.id, meal_type="lunch",
                                          recipe_ids=chosen))
    assert exc_info.value.details["field"] == "recipe_ids"
    assert db.query(models.MealPlanEntry).filter_by(meal_type="lunch").count() == 0


def test_bulk_fill_unknown_recipe(db, user):
    service = MealPlanService(db)
    plan = service.generate(request(user.id, slots=("dinner",))).meal_plan
    with pytest.raises(NotFoundError):
        service.bulk_fill(BulkFillRequest(user_id=user.id, meal_plan_id=plan.id, meal_type="lunch",
                                          recipe_ids=(9999,)))


def test_bulk_fill_plan_of_another_user(db, user):
    plan = MealPlanService(db).generate(request(user.id, slots=("dinner",))).meal_plan
    other = models.User(name="Someone Else")
    db.add(other)
    db.commit()
    with pytest.raises(NotFoundError):
        MealPlanService(db).bulk_fill(BulkFillRequest(user_id=other.id, meal_plan_id=plan.id, meal_type="lunch",
                                                      recipe_ids=recipe_ids(db, "Black Bean Tacos")))


@pytest.fixture
def history(db, user):
    chilli, tacos, pomodoro = recipe_ids(db, "Beef Chilli", "Black Bean Tacos", "Spaghetti Pomodoro")
    plan = models.MealPlan(user_id=user.id, name="February", plan_type="manual", created_at=datetime(2026, 1, 31),
                           start_date=date(2026, 2, 1), end_date=date(2026, 2, 20))
    plan.entries = [
        models.MealPlanEntry(meal_date=date(2026, 2, 1), meal_type="dinner", recipe_id=chilli, is_completed=True),
        models.MealPlanEntry(meal_date=date(2026, 2, 2), meal_type="lunch", recipe_id=tacos, is_completed=False),
        models.MealPlanEntry(meal_date=date(2026, 2, 18), meal_type="dinner", recipe_id=pomodoro, is_completed=True),
        models.MealPlanEntry(meal_date=date(2026, 2, 19), meal_type="dinner", recipe_id=chilli, is_completed=True),
    ]
    db.add(plan)
    db.commit()
    return {"chilli": chilli, "tacos": tacos, "pomodoro": pomodoro}


AS_OF = date(2026, 2, 20)


def test_cuisine_preferences(db, user, history):
    prefs = MealPlanService(db).cuisine_preferences(user.id, as_of=AS_OF)
    assert [(p.cuisine_type, p.usage_count) for p in prefs] == [("mexican", 3), ("italian", 1)]
    assert prefs[0].affinity == 1.0
    assert prefs[0].completion_rate == pytest.approx(2 / 3)
    assert prefs[1].affinity == pytest.approx(1 / 3)


def test_recently_used_recipes(db, user, history):
    service = MealPlanService(db)
    assert service.recently_used_recipes(user.id, days_back=14, as_of=AS_OF) == sorted(
        [history["chilli"], history["pomodoro"]]
    )
    assert service.recently_used_recipes(user.id, days_back=30, as_of=AS_OF) == sorted(history.values())
    with pytest.raises(ValidationError):
        service.recently_used_recipes(user.id, days_back=-1, as_of=AS_OF)


def test_recipe_completion_rates(db, user, history):
    rates = MealPlanService(db).recipe_completion_rates(user.id, as_of=AS_OF)
    assert rates == {history["chilli"]: 1.0, history["tacos"]: 0.0, history["pomodoro"]: 1.0}


def test_preference_lookups_for_unknown_user(db):
    with pytest.raises(NotFoundError):
        MealPlanService(db).cuisine_preferences(424242)
