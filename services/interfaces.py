"""Collaborator interfaces consumed by the meal plan engine.

The SQLAlchemy implementations live in `core.repository`; tests pass plain
in-memory stand-ins.
"""

from typing import Dict, Iterable, List, Protocol

from services.domain import (
    AllergenGroup,
    HistoryEntry,
    HistoryWindow,
    IngredientRecord,
    PlanDiff,
    RecipeFilter,
    RecipeRecord,
    UserAllergyRecord,
)


class CatalogReader(Protocol):
    def get_recipes(self, recipe_filter: RecipeFilter) -> List[RecipeRecord]:
        ...

    def get_ingredient_allergens(self, ingredient_names: Iterable[str]) -> Dict[str, IngredientRecord]:
        """Ingredient records keyed by normalized name; unknown names are absent."""
        ...

    def get_allergen_groups(self) -> List[AllergenGroup]:
        ...


class HistoryReader(Protocol):
    def get_user_allergies(self, user_id: int) -> List[UserAllergyRecord]:
        ...

    def get_user_meal_history(self, user_id: int, window: HistoryWindow) -> List[HistoryEntry]:
        ...

    def get_plan_entries(self, meal_plan_id: int) -> List[HistoryEntry]:
        ...


class PlanWriter(Protocol):
    def apply(self, meal_plan_id: int, diff: PlanDiff) -> List[int]:
        """Persist `diff` in one transaction and return the new entry ids."""
        ...
