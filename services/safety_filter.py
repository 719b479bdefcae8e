"""Allergen safety filter.

A recipe is rejected when either signal flags it:

1. its denormalized allergen list intersects the exclusion set, or
2. any ingredient line resolves (by trimmed, case-insensitive name) to an
   ingredient whose allergen tags intersect the exclusion set.

Ingredient lines that resolve to no ingredient record make the recipe
unsafe whenever there is something to exclude. Over-exclusion is the
accepted failure mode.
"""

from dataclasses import dataclass
from typing import Iterable, List, Mapping, FrozenSet, Tuple, Set

from core.exceptions import CatalogDataError, DataInconsistencyWarning
from core.logger import get_logger
from services.domain import IngredientRecord, RecipeRecord, MAY_CONTAIN, normalize_name

logger = get_logger("services.safety_filter")


@dataclass(frozen=True)
class SafetyVerdict:
    recipe_id: int
    safe: bool
    denormalized_hits: FrozenSet[int] = frozenset()
    ingredient_hits: FrozenSet[int] = frozenset()
    unresolved_ingredients: Tuple[str, ...] = ()
    # "may contain" hits that were only advisory
    advisory_hits: FrozenSet[int] = frozenset()

    @property
    def offending_allergens(self) -> FrozenSet[int]:
        return self.denormalized_hits | self.ingredient_hits


class SafetyFilter:
    """Classifies recipes as safe or unsafe for an exclusion set.

    Args:
        ingredients: Ingredient records keyed by name; keys are normalized here.
        treat_may_contain_as_contains: When False, "may contain" tags no
            longer reject a recipe and are reported as advisories instead.
    """

    def __init__(self, ingredients: Mapping[str, IngredientRecord], treat_may_contain_as_contains: bool = True):
        self._ingredients = {normalize_name(k): v for k, v in ingredients.items()}
        self.treat_may_contain_as_contains = treat_may_contain_as_contains
        self.warnings: List[DataInconsistencyWarning] = []
        self._checked_consistency: Set[int] = set()

    def _tag_ids(self, ingredient: IngredientRecord) -> Tuple[FrozenSet[int], FrozenSet[int]]:
        """Return (blocking, advisory) allergen ids for an ingredient."""
        blocking = set()
        advisory = set()
        for tag in ingredient.tags:
            if tag.allergen_type == MAY_CONTAIN and not self.treat_may_contain_as_contains:
                advisory.add(tag.allergen_id)
            else:
                blocking.add(tag.allergen_id)
        return frozenset(blocking), frozenset(advisory)

    def _record_inconsistency(self, recipe: RecipeRecord, derived: Set[int], complete: bool) -> None:
        if recipe.id in self._checked_consistency:
            return
        self._checked_consistency.add(recipe.id)
        missing = derived - recipe.allergen_ids
        # unresolved lines make the derived set partial
        extra = recipe.allergen_ids - derived if complete else set()
        if missing or extra:
            warning = DataInconsistencyWarning(recipe.id, missing, extra)
            self.warnings.append(warning)
            logger.warning("%s", warning)

    def check(self, recipe: RecipeRecord, exclusion_set: Iterable[int]) -> SafetyVerdict:
        """Return the full safety verdict for `recipe`.

        Raises:
            CatalogDataError: If the recipe or one of its lines is malformed.
        """
        if recipe.id is None:
            raise CatalogDataError(f"Recipe '{recipe.name}' has no id")
        excluded = frozenset(exclusion_set)

        denormalized = recipe.allergen_ids
        if not self.treat_may_contain_as_contains:
            denormalized = denormalized - recipe.may_contain_ids
        denormalized_hits = denormalized & excluded

        derived: Set[int] = set()
        ingredient_hits: Set[int] = set()
        advisory_hits: Set[int] = set()
        unresolved = []
        for line in recipe.ingredients:
            key = normalize_name(line.ingredient_name)
            if not key:
                raise CatalogDataError(f"Recipe {recipe.id} has an ingredient line without a name", recipe.id)
            ingredient = self._ingredients.get(key)
            if ingredient is None:
                unresolved.append(line.ingredient_name)
                continue
            blocking, advisory = self._tag_ids(ingredient)
            derived |= blocking | advisory
            ingredient_hits |= blocking & excluded
            advisory_hits |= advisory & excluded

        # an unresolved ingredient cannot be proven free of anything
        unknown_unsafe = bool(unresolved) and bool(excluded)
        safe = not denormalized_hits and not ingredient_hits and not unknown_unsafe

        if unresolved:
            logger.debug("Recipe %s has unresolved ingredients: %s", recipe.id, unresolved)
        if recipe.ingredients:
            self._record_inconsistency(recipe, derived, complete=not unresolved)
        if advisory_hits and safe:
            logger.info("Recipe %s may contain excluded allergens %s", recipe.id, sorted(advisory_hits))

        return SafetyVerdict(
            recipe_id=recipe.id,
            safe=safe,
            denormalized_hits=frozenset(denormalized_hits),
            ingredient_hits=frozenset(ingredient_hits),
            unresolved_ingredients=tuple(unresolved),
            advisory_hits=frozenset(advisory_hits),
        )

    def is_safe(self, recipe: RecipeRecord, exclusion_set: Iterable[int]) -> bool:
        return self.check(recipe, exclusion_set).safe

    def filter_safe(self, recipes: Iterable[RecipeRecord], exclusion_set: Iterable[int]) -> List[RecipeRecord]:
        """Return the recipes that pass `is_safe`, preserving order."""
        excluded = frozenset(exclusion_set)
        recipes = list(recipes)
        safe = [r for r in recipes if self.is_safe(r, excluded)]
        logger.debug("Safety filter: %s -> %s recipes", len(recipes), len(safe))
        return safe
