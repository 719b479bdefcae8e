"""Bulk fill of one meal slot across a plan's dates.

The user picks the recipes; a fill pattern decides which one lands on each
date. Patterns are deterministic so the same request always yields the same
plan.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.exceptions import ValidationError
from core.logger import get_logger
from services.domain import HistoryEntry, ProposedEntry, RecipeRecord, normalize_meal_type, normalize_name

logger = get_logger("services.bulk_fill")

ROTATE = "rotate"
SAME = "same"
FILL_PATTERNS = (ROTATE, SAME)


@dataclass(frozen=True)
class BulkFillRequest:
    user_id: int
    meal_plan_id: int
    meal_type: str
    recipe_ids: Tuple[int, ...]
    fill_pattern: str = ROTATE
    target_dates: Tuple[date, ...] = ()
    servings: Optional[float] = None


def validate_bulk_fill(request: BulkFillRequest) -> str:
    """Check the request and return its normalized meal slot.

    Raises:
        ValidationError: Unknown slot or pattern, no recipes, or
            non-positive servings.
    """
    slot = normalize_meal_type(request.meal_type)
    if slot is None:
        raise ValidationError(f"Unknown meal slot '{request.meal_type}'", field="meal_type")
    if not request.recipe_ids:
        raise ValidationError("At least one recipe id is required", field="recipe_ids")
    if normalize_name(request.fill_pattern) not in FILL_PATTERNS:
        raise ValidationError(
            f"Unknown fill pattern '{request.fill_pattern}', expected one of {', '.join(FILL_PATTERNS)}",
            field="fill_pattern",
        )
    if request.servings is not None and request.servings <= 0:
        raise ValidationError("servings must be positive", field="servings")
    return slot


def select_recipe_for_date(recipe_ids: Sequence[int], pattern: str, day: date) -> int:
    """Pick the recipe for `day`.

    `rotate` cycles through the ids by absolute day number, so a given date
    always maps to the same recipe whichever dates are targeted. `same`
    always takes the first id.
    """
    if normalize_name(pattern) == ROTATE:
        # days since 0001-01-01
        return recipe_ids[(day.toordinal() - 1) % len(recipe_ids)]
    return recipe_ids[0]


def plan_bulk_fill(request: BulkFillRequest, slot: str, dates: Iterable[date],
                   recipes: Mapping[int, RecipeRecord], existing: Iterable[HistoryEntry]) -> List[ProposedEntry]:
    """Proposed entries for every date, replacing whatever the slot holds."""
    in_slot: Dict[date, List[int]] = defaultdict(list)
    for entry in existing:
        if normalize_meal_type(entry.meal_type) == slot and entry.entry_id is not None:
            in_slot[entry.meal_date].append(entry.entry_id)

    proposals = []
    for day in dates:
        recipe = recipes[select_recipe_for_date(request.recipe_ids, request.fill_pattern, day)]
        proposals.append(ProposedEntry(
            meal_plan_id=request.meal_plan_id,
            meal_date=day,
            meal_type=slot,
            recipe_id=recipe.id,
            servings=request.servings if request.servings is not None else recipe.servings,
            notes="Bulk filled",
            replaces_entry_ids=tuple(in_slot.get(day, ())),
        ))
    logger.debug("Bulk fill %s %s: %s entries", request.meal_plan_id, slot, len(proposals))
    return proposals
