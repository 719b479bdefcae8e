"""Shared fixtures: in-memory collaborators and a seeded SQLite database."""

from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import Settings
from database import init_db, models
from services.allergen_graph import AllergenGraph, reset_allergen_graph
from services.domain import (
    CONTAINS,
    MAY_CONTAIN,
    AllergenGroup,
    IngredientRecord,
    IngredientTag,
    RecipeLine,
    RecipeRecord,
    UserAllergyRecord,
    normalize_name,
)
from services.meal_plan_assembler import MealPlanAssembler

SHRIMP, CRAB, DUST_MITE, PEANUT, WHEAT, MILK = 1, 2, 3, 4, 5, 6

TROPOMYOSIN = AllergenGroup(id=1, name="Tropomyosin", allergen_ids=frozenset({SHRIMP, CRAB, DUST_MITE}))


class InMemoryCatalog:
    def __init__(self, recipes=(), ingredients=(), groups=()):
        self.recipes = list(recipes)
        self.ingredients = {normalize_name(i.name): i for i in ingredients}
        self.groups = list(groups)
        self.recipe_reads = 0
        self.group_reads = 0

    def get_recipes(self, recipe_filter):
        self.recipe_reads += 1
        return [
            r for r in self.recipes
            if not recipe_filter.meal_types or r.meal_type in recipe_filter.meal_types
        ]

    def get_ingredient_allergens(self, ingredient_names):
        wanted = {normalize_name(n) for n in ingredient_names}
        return {k: v for k, v in self.ingredients.items() if k in wanted}

    def get_allergen_groups(self):
        self.group_reads += 1
        return list(self.groups)


class InMemoryHistory:
    def __init__(self, allergies=(), history=(), plan_entries=()):
        self.allergies = list(allergies)
        self.history = list(history)
        self.plan_entries = list(plan_entries)

    def get_user_allergies(self, user_id):
        return [a for a in self.allergies if a.user_id == user_id]

    def get_user_meal_history(self, user_id, window):
        return [h for h in self.history if window.contains(h.meal_date)]

    def get_plan_entries(self, meal_plan_id):
        return [e for e in self.plan_entries if e.meal_plan_id == meal_plan_id]


def make_ingredient(id, name, category="Pantry", contains=(), may_contain=()):
    tags = tuple(IngredientTag(a, CONTAINS) for a in contains) + tuple(IngredientTag(a, MAY_CONTAIN) for a in may_contain)
    return IngredientRecord(id=id, name=name, category=category, tags=tags)


def make_recipe(id, name, meal_type="dinner", cuisine="Italian", lines=(), allergens=(), may_contain=(), **kwargs):
    return RecipeRecord(
        id=id,
        name=name,
        meal_type=meal_type,
        cuisine_type=cuisine,
        ingredients=tuple(RecipeLine(n, q, u) for n, q, u in lines),
        allergen_ids=frozenset(allergens) | frozenset(may_contain),
        may_contain_ids=frozenset(may_contain),
        **kwargs
    )


INGREDIENTS = [
    make_ingredient(1, "Shrimp", "Seafood", contains=[SHRIMP]),
    make_ingredient(2, "Crab Meat", "Seafood", contains=[CRAB]),
    make_ingredient(3, "Flour", "Baking", contains=[WHEAT]),
    make_ingredient(4, "Rice", "Pantry"),
    make_ingredient(5, "Tomato", "Produce"),
    make_ingredient(6, "Peanut Butter", "Pantry", contains=[PEANUT]),
    make_ingredient(7, "Curry Paste", "Condiments", may_contain=[SHRIMP]),
    make_ingredient(8, "Milk", "Dairy", contains=[MILK]),
]


@pytest.fixture(autouse=True)
def fresh_allergen_graph():
    """Keep the process-wide graph cache from leaking between tests."""
    reset_allergen_graph()
    yield
    reset_allergen_graph()


@pytest.fixture
def ingredients():
    return {normalize_name(i.name): i for i in INGREDIENTS}


@pytest.fixture
def graph():
    return AllergenGraph([TROPOMYOSIN])


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def build_assembler(graph, settings):
    """Return a factory for assemblers over in-memory collaborators."""

    def _build(recipes, allergies=(), history=(), plan_entries=(), ingredients=INGREDIENTS, settings=settings):
        catalog = InMemoryCatalog(recipes, ingredients, [TROPOMYOSIN])
        reader = InMemoryHistory(allergies, history, plan_entries)
        return MealPlanAssembler(catalog, reader, graph=graph, settings=settings)

    return _build


@pytest.fixture
def shrimp_allergy():
    return [UserAllergyRecord(user_id=1, allergen_id=SHRIMP, severity="severe")]


@pytest.fixture
def session_factory():
    """In-memory SQLite database seeded with the demo catalog."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    factory = sessionmaker(bind=engine)
    init_db(engine=engine, session_factory=factory)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def allergen_ids(db):
    return {a.name: a.id for a in db.query(models.Allergen).all()}


@pytest.fixture
def user(db):
    u = models.User(name="Test User")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def week():
    return date(2026, 3, 2), date(2026, 3, 8)
