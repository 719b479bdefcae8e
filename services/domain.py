"""Engine value types.

Immutable records the generation engine works on. The data-access layer
converts ORM rows into these once per run, so a run only ever sees a
consistent snapshot of the catalog and the user's history.
"""

from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional, Tuple

BREAKFAST = "breakfast"
LUNCH = "lunch"
DINNER = "dinner"
SNACK = "snack"

# Slot priority within a day
MEAL_TYPES = (BREAKFAST, LUNCH, DINNER, SNACK)

# Numeric values are what mobile clients send
MEAL_TYPE_ALIASES = {
    "1": BREAKFAST,
    "2": LUNCH,
    "3": DINNER,
    "4": SNACK,
    "snacks": SNACK,
    "supper": DINNER,
    "brunch": BREAKFAST,
}

CONTAINS = "contains"
MAY_CONTAIN = "may_contain"


def normalize_name(name: Optional[str]) -> str:
    """Lookup key for ingredient names: trimmed and case-folded."""
    return (name or "").strip().lower()


def normalize_meal_type(value: Optional[str]) -> Optional[str]:
    """Map free-form meal type input to one of `MEAL_TYPES`, or None."""
    key = normalize_name(value)
    if key in MEAL_TYPES:
        return key
    return MEAL_TYPE_ALIASES.get(key)


def normalize_allergen_type(value: Optional[str]) -> str:
    key = normalize_name(value).replace(" ", "_").replace("-", "_")
    return MAY_CONTAIN if key == MAY_CONTAIN else CONTAINS


@dataclass(frozen=True)
class AllergenGroup:
    """A cross-reactivity group and the allergen ids in it."""

    id: int
    name: str
    allergen_ids: FrozenSet[int] = frozenset()


@dataclass(frozen=True)
class IngredientTag:
    allergen_id: int
    allergen_type: str = CONTAINS


@dataclass(frozen=True)
class IngredientRecord:
    id: int
    name: str
    category: Optional[str] = None
    tags: Tuple[IngredientTag, ...] = ()

    def allergen_ids(self, include_may_contain: bool = True) -> FrozenSet[int]:
        return frozenset(
            t.allergen_id for t in self.tags
            if include_may_contain or t.allergen_type != MAY_CONTAIN
        )


@dataclass(frozen=True)
class RecipeLine:
    """One ingredient line of a recipe, referencing the ingredient by name."""

    ingredient_name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    is_optional: bool = False


@dataclass(frozen=True)
class RecipeRecord:
    id: int
    name: str
    meal_type: str
    cuisine_type: Optional[str] = None
    prep_time_minutes: Optional[int] = None
    cook_time_minutes: Optional[int] = None
    servings: Optional[int] = None
    difficulty_level: Optional[str] = None
    calories: Optional[float] = None
    ingredients: Tuple[RecipeLine, ...] = ()
    # denormalized allergen ids, precomputed from the ingredients
    allergen_ids: FrozenSet[int] = frozenset()
    # subset of allergen_ids tagged only as "may contain"
    may_contain_ids: FrozenSet[int] = frozenset()


@dataclass(frozen=True)
class UserAllergyRecord:
    user_id: int
    allergen_id: int
    severity: Optional[str] = None
    outgrown: bool = False


@dataclass(frozen=True)
class HistoryEntry:
    """A past or planned meal plan entry as seen by the preference model."""

    meal_date: date
    meal_type: str
    recipe_id: Optional[int] = None
    cuisine_type: Optional[str] = None
    is_completed: bool = False
    entry_id: Optional[int] = None
    meal_plan_id: Optional[int] = None
    servings: Optional[float] = None


@dataclass(frozen=True)
class HistoryWindow:
    start: date
    end: Optional[date] = None

    def contains(self, day: date) -> bool:
        return day >= self.start and (self.end is None or day <= self.end)


@dataclass(frozen=True)
class RecipeFilter:
    """Bulk-read filter for the catalog reader; empty sets mean no filter."""

    meal_types: FrozenSet[str] = frozenset()
    cuisine_types: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class ProposedEntry:
    meal_plan_id: Optional[int]
    meal_date: date
    meal_type: str
    recipe_id: int
    servings: Optional[float] = None
    notes: str = "Auto-generated"
    replaces_entry_ids: Tuple[int, ...] = ()


@dataclass(frozen=True)
class UnfilledSlot:
    meal_date: date
    meal_type: str
    reason: str
    message: str = ""

    def as_dict(self) -> dict:
        return {
            "meal_date": self.meal_date.isoformat(),
            "meal_type": self.meal_type,
            "reason": self.reason,
            "message": self.message,
        }


@dataclass(frozen=True)
class ShoppingItem:
    ingredient_name: str
    quantity: Optional[float]
    unit: Optional[str]
    category: str


@dataclass(frozen=True)
class PlanDiff:
    """Changes a run proposes for one meal plan; applied atomically by the writer."""

    additions: Tuple[ProposedEntry, ...] = ()
    replaced_entry_ids: Tuple[int, ...] = ()
    shopping_items: Tuple[ShoppingItem, ...] = ()


@dataclass(frozen=True)
class CatalogSnapshot:
    """Everything one generation run reads, loaded in a single bulk read."""

    recipes: Tuple[RecipeRecord, ...]
    ingredients: Mapping[str, IngredientRecord] = field(default_factory=lambda: MappingProxyType({}))
    active_allergen_ids: FrozenSet[int] = frozenset()
    history: Tuple[HistoryEntry, ...] = ()
    plan_entries: Tuple[HistoryEntry, ...] = ()
