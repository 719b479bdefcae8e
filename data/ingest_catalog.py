"""Utilities to load the recipe catalog into the application's database.

This module provides:
- seed_catalog(session, ...): idempotently seeds allergens, cross-reactivity
  groups, ingredients and recipes from in-memory definitions
- parse_recipes_csv(csv_path): reads a recipe CSV (one row per ingredient
  line) into recipe dictionaries
- seed_recipes_from_csv(csv_path, session): idempotently adds CSV recipes

Recipes reference ingredients by name. The denormalized recipe allergen list
is derived from the ingredient tags at load time.
"""
from __future__ import annotations

from typing import List, Dict, Optional
import logging
import math
import pandas as pd

from database import models

logger = logging.getLogger("data.ingest_catalog")

REQUIRED_COLUMNS = ("recipe_name", "meal_type", "ingredient_name")


def _normalize(name: str) -> str:
    return (name or "").strip().lower()


def _blank(val) -> bool:
    return val is None or (isinstance(val, float) and math.isnan(val)) or str(val).strip() == ""


def _opt_int(val) -> Optional[int]:
    return None if _blank(val) else int(float(val))


def _opt_float(val) -> Optional[float]:
    return None if _blank(val) else float(val)


def _seed_allergens(session, allergens: List[Dict]) -> Dict[str, models.Allergen]:
    existing = {a.name: a for a in session.query(models.Allergen).all()}
    for item in allergens:
        if item["name"] in existing:
            continue
        allergen = models.Allergen(
            name=item["name"],
            category=item.get("category"),
            scientific_name=item.get("scientific_name"),
            description=item.get("description"),
            is_fda_major=bool(item.get("is_fda_major", False)),
            is_eu_major=bool(item.get("is_eu_major", False)),
        )
        session.add(allergen)
        existing[allergen.name] = allergen
    session.flush()
    return existing


def _seed_groups(session, groups: List[Dict], allergens: Dict[str, models.Allergen]) -> int:
    existing = {g.name for g in session.query(models.CrossReactivityGroup).all()}
    added = 0
    for item in groups:
        if item["name"] in existing:
            continue
        group = models.CrossReactivityGroup(name=item["name"], description=item.get("description"))
        for member in item.get("members", []):
            allergen = allergens.get(member)
            if allergen is None:
                logger.warning("Group %s references unknown allergen %s", item["name"], member)
                continue
            group.members.append(models.AllergenCrossReactivity(allergen=allergen))
        session.add(group)
        added += 1
    session.flush()
    return added


def _seed_ingredients(session, ingredients: List[Dict], allergens: Dict[str, models.Allergen]) -> Dict[str, models.Ingredient]:
    existing = {_normalize(i.name): i for i in session.query(models.Ingredient).all()}
    for item in ingredients:
        key = _normalize(item["name"])
        if key in existing:
            continue
        ingredient = models.Ingredient(name=item["name"], category=item.get("category"))
        for allergen_name, allergen_type in item.get("allergens", []):
            allergen = allergens.get(allergen_name)
            if allergen is None:
                logger.warning("Ingredient %s references unknown allergen %s", item["name"], allergen_name)
                continue
            ingredient.allergen_tags.append(
                models.IngredientAllergen(allergen_id=allergen.id, allergen_type=allergen_type)
            )
        session.add(ingredient)
        existing[key] = ingredient
    session.flush()
    return existing


def _add_recipe(session, item: Dict, ingredients: Dict[str, models.Ingredient]) -> models.Recipe:
    recipe = models.Recipe(
        name=item["name"],
        description=item.get("description"),
        cuisine_type=item.get("cuisine_type"),
        meal_type=item["meal_type"],
        prep_time_minutes=item.get("prep_time_minutes"),
        cook_time_minutes=item.get("cook_time_minutes"),
        servings=item.get("servings"),
        difficulty_level=item.get("difficulty_level"),
        calories=item.get("calories"),
    )
    derived = {}
    for order, (name, quantity, unit) in enumerate(item.get("ingredients", [])):
        recipe.ingredients.append(
            models.RecipeIngredient(ingredient_name=name, quantity=quantity, unit=unit, order_in_recipe=order)
        )
        ingredient = ingredients.get(_normalize(name))
        if ingredient is None:
            logger.warning("Recipe %s uses ingredient %s with no catalog record", item["name"], name)
            continue
        for tag in ingredient.allergen_tags:
            # "contains" wins over "may_contain" for the same allergen
            if derived.get(tag.allergen_id) != "contains":
                derived[tag.allergen_id] = tag.allergen_type
    for allergen_id, allergen_type in sorted(derived.items()):
        recipe.recipe_allergens.append(models.RecipeAllergen(allergen_id=allergen_id, allergen_type=allergen_type))
    session.add(recipe)
    return recipe


def seed_catalog(session, allergens: List[Dict], groups: List[Dict], ingredients: List[Dict], recipes: List[Dict]) -> int:
    """Idempotently seed the reference catalog.

    Rows are matched by name and skipped when already present.

    Returns:
        Number of recipes added.
    """
    allergen_map = _seed_allergens(session, allergens)
    _seed_groups(session, groups, allergen_map)
    ingredient_map = _seed_ingredients(session, ingredients, allergen_map)

    existing = {r.name for r in session.query(models.Recipe).all()}
    added = 0
    for item in recipes:
        if item["name"] in existing:
            continue
        _add_recipe(session, item, ingredient_map)
        added += 1
    session.commit()
    logger.info("Seeded catalog: %s new recipes", added)
    return added


def parse_recipes_csv(csv_path: str) -> List[Dict]:
    """Parse a recipe CSV into recipe dictionaries.

    Each row is one ingredient line; rows sharing `recipe_name` form one
    recipe and recipe-level columns are taken from the first row.

    Args:
        csv_path: Path to the recipes CSV file.

    Returns:
        List of recipe dictionaries in the shape accepted by `seed_catalog`.
    """
    logger.info("Parsing recipes CSV: %s", csv_path)
    df = pd.read_csv(csv_path, encoding="utf-8")
    df = df.rename(columns=lambda s: s.strip().lower())
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Recipe CSV is missing columns: {', '.join(missing)}")

    recipes = []
    for name, rows in df.groupby("recipe_name", sort=False):
        if _blank(name):
            continue
        first = rows.iloc[0]
        lines = []
        for _, row in rows.iterrows():
            if _blank(row.get("ingredient_name")):
                continue
            lines.append((str(row["ingredient_name"]).strip(), _opt_float(row.get("quantity")),
                          None if _blank(row.get("unit")) else str(row.get("unit")).strip()))
        recipes.append({
            "name": str(name).strip(),
            "cuisine_type": None if _blank(first.get("cuisine_type")) else str(first.get("cuisine_type")).strip(),
            "meal_type": str(first["meal_type"]).strip().lower(),
            "prep_time_minutes": _opt_int(first.get("prep_time_minutes")),
            "cook_time_minutes": _opt_int(first.get("cook_time_minutes")),
            "servings": _opt_int(first.get("servings")),
            "difficulty_level": None if _blank(first.get("difficulty_level")) else str(first.get("difficulty_level")),
            "calories": _opt_float(first.get("calories")),
            "ingredients": lines,
        })

    logger.info("Parsed %s recipes from CSV", len(recipes))
    return recipes


def seed_recipes_from_csv(csv_path: str, session=None) -> int:
    """Idempotently add the recipes of a CSV file to the catalog.

    Ingredients must already exist for allergen derivation; unknown names are
    stored on the recipe but logged.
    """
    close_session = False
    if session is None:
        from database.database import WriteSessionLocal

        session = WriteSessionLocal()
        close_session = True
    try:
        return seed_catalog(session, [], [], [], parse_recipes_csv(csv_path))
    finally:
        if close_session:
            session.close()


if __name__ == "__main__":
    import argparse

    p = argparse.ArgumentParser("Seed recipes from CSV into the DB")
    p.add_argument("csv_path", nargs="?", default="data/fixtures/recipes.csv")
    args = p.parse_args()
    added = seed_recipes_from_csv(args.csv_path)
    print(f"Done ({added} recipes added)")
