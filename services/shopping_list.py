"""Shopping list aggregation for generated meal plans."""

from collections import OrderedDict
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from core.logger import get_logger
from services.domain import IngredientRecord, RecipeRecord, ShoppingItem, normalize_name

logger = get_logger("services.shopping_list")

UNCATEGORIZED = "Other"


def _scale(recipe: RecipeRecord, servings: Optional[float]) -> float:
    if servings and recipe.servings:
        return float(servings) / float(recipe.servings)
    return 1.0


def aggregate_shopping_list(
    selections: Iterable[Tuple[RecipeRecord, Optional[float]]],
    ingredients: Mapping[str, IngredientRecord],
) -> List[ShoppingItem]:
    """Merge the ingredient lines of the selected recipes.

    Lines with the same ingredient name and unit (trimmed, case-insensitive)
    are summed into one item. Quantities are scaled by planned servings over
    recipe servings when both are known.

    Args:
        selections: (recipe, planned servings) pairs, one per filled slot.
        ingredients: Ingredient records keyed by normalized name, used for
            the category of each item.

    Returns:
        Items ordered by category, then ingredient name.
    """
    totals: "OrderedDict[Tuple[str, str], dict]" = OrderedDict()
    for recipe, servings in selections:
        factor = _scale(recipe, servings)
        for line in recipe.ingredients:
            key = (normalize_name(line.ingredient_name), normalize_name(line.unit))
            bucket = totals.get(key)
            if bucket is None:
                record = ingredients.get(key[0])
                bucket = totals[key] = {
                    "name": line.ingredient_name.strip(),
                    "unit": line.unit.strip() if line.unit else None,
                    "category": (record.category if record and record.category else UNCATEGORIZED),
                    "quantity": None,
                }
            if line.quantity is not None:
                bucket["quantity"] = (bucket["quantity"] or 0.0) + float(line.quantity) * factor

    items = [
        ShoppingItem(
            ingredient_name=b["name"],
            quantity=round(b["quantity"], 2) if b["quantity"] is not None else None,
            unit=b["unit"],
            category=b["category"],
        )
        for b in totals.values()
    ]
    items.sort(key=lambda i: (i.category.lower(), i.ingredient_name.lower(), i.unit or ""))
    logger.debug("Shopping list: %s items", len(items))
    return items


def group_by_category(items: Iterable[ShoppingItem]) -> Dict[str, List[ShoppingItem]]:
    grouped: Dict[str, List[ShoppingItem]] = OrderedDict()
    for item in items:
        grouped.setdefault(item.category, []).append(item)
    return grouped
