"""Recipe scoring and selection.

Each candidate goes through a hard filter (allergen safety and slot
constraints) and, if it survives, a soft score:

    total = w_affinity * cuisine_affinity
          + w_completion * completion_rate
          - w_variety * variety_penalty
          + w_nutrition * nutrition_fit

Variety carries the largest default weight so a recently used recipe loses
to a fresh one even when its affinity and completion are high. Selection is
deterministic: scores within `tie_epsilon` of the best are ordered by
servings deviation, then by lowest recipe id.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from core.exceptions import CatalogDataError
from core.logger import get_logger
from services.domain import (
    BREAKFAST,
    DINNER,
    LUNCH,
    SNACK,
    RecipeRecord,
    normalize_meal_type,
    normalize_name,
)
from services.preference_model import NEUTRAL
from services.safety_filter import SafetyFilter

logger = get_logger("services.recipe_scorer")

# Share of the daily calorie target each slot should cover
MEAL_CALORIE_SHARE = {
    BREAKFAST: 0.25,
    LUNCH: 0.35,
    DINNER: 0.40,
    SNACK: 0.10,
}


def slot_calorie_target(meal_type: str, daily_calories: Optional[float]) -> Optional[float]:
    if not daily_calories:
        return None
    return daily_calories * MEAL_CALORIE_SHARE.get(meal_type, 0.30)


@dataclass(frozen=True)
class ScoringWeights:
    affinity: float = 0.4
    completion: float = 0.4
    variety: float = 0.6
    nutrition: float = 0.0

    @classmethod
    def from_settings(cls, settings) -> "ScoringWeights":
        return cls(
            affinity=settings.w_affinity,
            completion=settings.w_completion,
            variety=settings.w_variety,
            nutrition=settings.w_nutrition,
        )


@dataclass(frozen=True)
class SlotConstraints:
    """Per-slot hard constraints plus soft servings/calorie targets."""

    meal_type: Optional[str] = None
    max_prep_time: Optional[int] = None
    max_cook_time: Optional[int] = None
    # lower-cased; empty means any cuisine
    cuisine_types: FrozenSet[str] = frozenset()
    target_servings: Optional[float] = None
    target_calories: Optional[float] = None


@dataclass(frozen=True)
class ScoringContext:
    """Request-scoped inputs for scoring one slot.

    The assembler derives a new context per selection with `with_used`, so
    in-run variety tracking never leaks between requests.
    """

    exclusion_set: FrozenSet[int] = frozenset()
    cuisine_affinity: Mapping[str, float] = field(default_factory=dict)
    completion_rate: Mapping[int, float] = field(default_factory=dict)
    recently_used: FrozenSet[int] = frozenset()
    constraints: SlotConstraints = SlotConstraints()
    user_id: Optional[int] = None

    def with_used(self, recipe_id: int) -> "ScoringContext":
        return replace(self, recently_used=self.recently_used | {recipe_id})

    def for_slot(self, constraints: SlotConstraints) -> "ScoringContext":
        return replace(self, constraints=constraints)


@dataclass(frozen=True)
class RecipeScore:
    recipe_id: int
    safe: bool
    cuisine_affinity: float
    completion_rate: float
    variety_penalty: float
    nutrition_fit: float
    servings_deviation: float
    total: float

    def breakdown(self) -> str:
        return (
            f"Affinity:{self.cuisine_affinity:.2f}, Completion:{self.completion_rate:.2f}, "
            f"Variety:-{self.variety_penalty:.2f}, Nutrition:{self.nutrition_fit:.2f}, "
            f"Servings dev:{self.servings_deviation:.2f}, Total:{self.total:.3f}"
        )

    def as_dict(self) -> Dict[str, float]:
        return {
            "recipe_id": self.recipe_id,
            "safe": self.safe,
            "cuisine_affinity": round(self.cuisine_affinity, 4),
            "completion_rate": round(self.completion_rate, 4),
            "variety_penalty": round(self.variety_penalty, 4),
            "nutrition_fit": round(self.nutrition_fit, 4),
            "servings_deviation": round(self.servings_deviation, 4),
            "total": round(self.total, 4),
        }


@dataclass(frozen=True)
class ScoredCandidate:
    recipe: RecipeRecord
    score: RecipeScore


class RecipeScorer:
    """Scores recipes against a `ScoringContext` and picks the best one."""

    def __init__(self, safety_filter: SafetyFilter, weights: Optional[ScoringWeights] = None, tie_epsilon: float = 0.01):
        self.safety_filter = safety_filter
        self.weights = weights or ScoringWeights()
        self.tie_epsilon = tie_epsilon
        self._safety_cache: Dict[Tuple[int, FrozenSet[int]], bool] = {}

    def is_safe(self, recipe: RecipeRecord, exclusion_set: Iterable[int]) -> bool:
        """Memoized safety verdict; malformed recipes are never safe."""
        exclusion_set = frozenset(exclusion_set)
        key = (recipe.id, exclusion_set)
        if key not in self._safety_cache:
            try:
                self._safety_cache[key] = self.safety_filter.is_safe(recipe, exclusion_set)
            except CatalogDataError as exc:
                logger.warning("Excluding malformed recipe %s: %s", recipe.id, exc.message)
                self._safety_cache[key] = False
        return self._safety_cache[key]

    @staticmethod
    def constraint_failures(recipe: RecipeRecord, constraints: SlotConstraints) -> List[str]:
        """Return the slot constraints `recipe` violates (empty when compliant).

        Missing prep/cook times are treated as compliant.
        """
        failures = []
        if constraints.meal_type and normalize_meal_type(recipe.meal_type) != constraints.meal_type:
            failures.append("meal_type")
        if constraints.max_prep_time is not None and recipe.prep_time_minutes is not None \
                and recipe.prep_time_minutes > constraints.max_prep_time:
            failures.append("prep_time")
        if constraints.max_cook_time is not None and recipe.cook_time_minutes is not None \
                and recipe.cook_time_minutes > constraints.max_cook_time:
            failures.append("cook_time")
        if constraints.cuisine_types and normalize_name(recipe.cuisine_type) not in constraints.cuisine_types:
            failures.append("cuisine_type")
        return failures

    def passes_hard_filter(self, recipe: RecipeRecord, context: ScoringContext) -> bool:
        return self.is_safe(recipe, context.exclusion_set) and not self.constraint_failures(recipe, context.constraints)

    def score(self, recipe: RecipeRecord, context: ScoringContext) -> Optional[RecipeScore]:
        """Score one candidate, or return None when it fails the hard filter."""
        if not self.passes_hard_filter(recipe, context):
            return None

        constraints = context.constraints
        affinity = context.cuisine_affinity.get(normalize_name(recipe.cuisine_type), NEUTRAL)
        completion = context.completion_rate.get(recipe.id, NEUTRAL)
        variety_penalty = 1.0 if recipe.id in context.recently_used else 0.0

        nutrition_fit = NEUTRAL
        if constraints.target_calories and recipe.calories is not None:
            gap = abs(recipe.calories - constraints.target_calories) / constraints.target_calories
            nutrition_fit = max(0.0, 1.0 - gap)

        servings_deviation = 0.0
        if constraints.target_servings is not None and recipe.servings is not None:
            servings_deviation = abs(recipe.servings - constraints.target_servings)

        w = self.weights
        total = (
            w.affinity * affinity
            + w.completion * completion
            - w.variety * variety_penalty
            + w.nutrition * nutrition_fit
        )
        result = RecipeScore(
            recipe_id=recipe.id,
            safe=True,
            cuisine_affinity=affinity,
            completion_rate=completion,
            variety_penalty=variety_penalty,
            nutrition_fit=nutrition_fit,
            servings_deviation=servings_deviation,
            total=total,
        )
        logger.debug("Score recipe %s: %s", recipe.id, result.breakdown())
        return result

    def rank(self, pool: Iterable[RecipeRecord], context: ScoringContext) -> List[ScoredCandidate]:
        """Score the pool and return survivors ordered by total, best first."""
        scored = []
        for recipe in pool:
            s = self.score(recipe, context)
            if s is not None:
                scored.append(ScoredCandidate(recipe, s))
        scored.sort(key=lambda c: (-c.score.total, c.score.servings_deviation, c.recipe.id))
        return scored

    def select_best(self, pool: Iterable[RecipeRecord], context: ScoringContext) -> Optional[ScoredCandidate]:
        """Return the highest-scoring candidate, or None if nothing survives.

        Candidates within `tie_epsilon` of the best total are tied; the tie
        goes to the smallest servings deviation, then the lowest recipe id.
        """
        ranked = self.rank(pool, context)
        if not ranked:
            logger.warning("No candidate survived hard filtering for %s", context.constraints.meal_type)
            return None
        best_total = ranked[0].score.total
        tied = [c for c in ranked if best_total - c.score.total <= self.tie_epsilon]
        chosen = min(tied, key=lambda c: (c.score.servings_deviation, c.recipe.id))
        logger.info(
            "Smart selection: recipe %s '%s' scored %.3f for user %s (%s tied)",
            chosen.recipe.id, chosen.recipe.name, chosen.score.total, context.user_id, len(tied),
        )
        return chosen
