"""Allergen-safe meal plan assembly.

The assembler walks every (date, meal slot) pair of a request in
chronological, slot-priority order and fills each slot with the best safe
recipe. All reads happen up front in one bulk snapshot. From then on the run
is pure in-memory work, and its only output is a `GenerationResult` whose
`to_diff()` the caller persists atomically.
"""

from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from core.config import Settings, get_settings
from core.exceptions import (
    AppException,
    GenerationCancelledError,
    NoSafeCandidatesError,
    ValidationError,
)
from core.logger import get_logger
from services.allergen_graph import AllergenGraph, load_allergen_graph
from services.interfaces import CatalogReader, HistoryReader
from services.domain import (
    MEAL_TYPES,
    CatalogSnapshot,
    HistoryEntry,
    HistoryWindow,
    PlanDiff,
    ProposedEntry,
    RecipeFilter,
    RecipeRecord,
    ShoppingItem,
    UnfilledSlot,
    normalize_meal_type,
    normalize_name,
)
from services.preference_model import PreferenceModel
from services.recipe_scorer import (
    RecipeScore,
    RecipeScorer,
    ScoredCandidate,
    ScoringContext,
    ScoringWeights,
    SlotConstraints,
    slot_calorie_target,
)
from services.safety_filter import SafetyFilter
from services.shopping_list import aggregate_shopping_list

logger = get_logger("services.meal_plan_assembler")

SUCCESS = "success"
PARTIAL = "partial"
FAILED = "failed"

# Unfilled slot reasons
NO_CANDIDATES = "no_candidates"
NO_SAFE_CANDIDATES = "no_safe_candidates"
NO_MATCHING_CANDIDATES = "no_matching_candidates"
SLOT_ERROR = "error"


@dataclass(frozen=True)
class GenerationRequest:
    """One generate call. Dates are inclusive; slots use `MEAL_TYPES` names."""

    user_id: int
    start_date: date
    end_date: date
    requested_slots: Tuple[str, ...]
    meal_plan_id: Optional[int] = None
    cuisine_types: Tuple[str, ...] = ()
    max_prep_time: Optional[int] = None
    max_cook_time: Optional[int] = None
    servings: Optional[float] = None
    exclude_allergens: FrozenSet[int] = frozenset()
    target_dates: Tuple[date, ...] = ()
    replace_existing: bool = False
    daily_calories: Optional[float] = None


@dataclass(frozen=True)
class SlotAssignment:
    meal_date: date
    meal_type: str
    recipe: RecipeRecord
    score: RecipeScore
    servings: Optional[float] = None
    replaces_entry_ids: Tuple[int, ...] = ()


@dataclass
class GenerationResult:
    status: str
    assignments: List[SlotAssignment] = field(default_factory=list)
    unfilled: List[UnfilledSlot] = field(default_factory=list)
    shopping_list: List[ShoppingItem] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    exclusion_set: FrozenSet[int] = frozenset()
    kept_entries: int = 0

    @property
    def filled_count(self) -> int:
        return len(self.assignments)

    def to_diff(self, meal_plan_id: Optional[int]) -> PlanDiff:
        additions = tuple(
            ProposedEntry(
                meal_plan_id=meal_plan_id,
                meal_date=a.meal_date,
                meal_type=a.meal_type,
                recipe_id=a.recipe.id,
                servings=a.servings,
                replaces_entry_ids=a.replaces_entry_ids,
            )
            for a in self.assignments
        )
        replaced = tuple(entry_id for a in self.assignments for entry_id in a.replaces_entry_ids)
        return PlanDiff(additions=additions, replaced_entry_ids=replaced, shopping_items=tuple(self.shopping_list))


@dataclass(frozen=True)
class RecommendationRequest:
    """Ranked safe recipes for one meal type, outside any plan."""

    user_id: int
    meal_type: str
    cuisine_types: Tuple[str, ...] = ()
    max_prep_time: Optional[int] = None
    max_cook_time: Optional[int] = None
    servings: Optional[float] = None
    exclude_allergens: FrozenSet[int] = frozenset()
    daily_calories: Optional[float] = None
    limit: int = 10
    as_of: Optional[date] = None


@dataclass
class RecommendationResult:
    meal_type: str
    candidates: List[ScoredCandidate] = field(default_factory=list)
    exclusion_set: FrozenSet[int] = frozenset()
    rejected_unsafe: int = 0
    warnings: List[str] = field(default_factory=list)


def date_range(start: date, end: date) -> List[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def validate_request(request: GenerationRequest) -> List[str]:
    """Reject malformed requests and return the slots in priority order.

    Raises:
        ValidationError: Bad date range, empty or unknown slots, target dates
            outside the range, or negative limits.
    """
    if request.start_date is None or request.end_date is None:
        raise ValidationError("start_date and end_date are required", field="date_range")
    if request.end_date <= request.start_date:
        raise ValidationError("end_date must be after start_date", field="date_range")
    if not request.requested_slots:
        raise ValidationError("At least one meal slot must be requested", field="requested_slots")

    slots = set()
    for raw in request.requested_slots:
        slot = normalize_meal_type(raw)
        if slot is None:
            raise ValidationError(f"Unknown meal slot '{raw}'", field="requested_slots")
        slots.add(slot)

    for day in request.target_dates:
        if not request.start_date <= day <= request.end_date:
            raise ValidationError(f"Target date {day} is outside the requested range", field="target_dates")
    _reject_negative_limits(request)
    return [m for m in MEAL_TYPES if m in slots]


def _reject_negative_limits(request) -> None:
    for name in ("max_prep_time", "max_cook_time", "servings", "daily_calories"):
        value = getattr(request, name)
        if value is not None and value < 0:
            raise ValidationError(f"{name} must not be negative", field=name)


class MealPlanAssembler:
    """Builds allergen-safe meal plans from a catalog and a user's history.

    Args:
        catalog: `CatalogReader` implementation.
        history: `HistoryReader` implementation.
        graph: Prebuilt allergen graph; the process-wide cached graph is
            used when omitted.
        settings: Scoring weights and lookback windows.
    """

    def __init__(self, catalog: CatalogReader, history: HistoryReader, graph: Optional[AllergenGraph] = None,
                 settings: Optional[Settings] = None):
        self.catalog = catalog
        self.history = history
        self.settings = settings or get_settings()
        self._graph = graph

    @property
    def graph(self) -> AllergenGraph:
        if self._graph is None:
            self._graph = load_allergen_graph(self.catalog)
        return self._graph

    def load_snapshot(self, request: GenerationRequest, slots: Iterable[str]) -> CatalogSnapshot:
        """Read everything the run needs in one pass."""
        return self._load_snapshot(request.user_id, slots, request.cuisine_types, request.start_date,
                                   meal_plan_id=request.meal_plan_id)

    def _load_snapshot(self, user_id: int, slots: Iterable[str], cuisine_types: Iterable[str], as_of: date,
                       meal_plan_id: Optional[int] = None) -> CatalogSnapshot:
        recipe_filter = RecipeFilter(
            meal_types=frozenset(slots),
            cuisine_types=frozenset(normalize_name(c) for c in cuisine_types if normalize_name(c)),
        )
        recipes = tuple(self.catalog.get_recipes(recipe_filter))
        names = {line.ingredient_name for r in recipes for line in r.ingredients if line.ingredient_name}
        ingredients = self.catalog.get_ingredient_allergens(names) if names else {}

        allergies = self.history.get_user_allergies(user_id)
        active = frozenset(a.allergen_id for a in allergies if not a.outgrown)

        window = HistoryWindow(start=as_of - timedelta(days=self.settings.history_lookback_days))
        history = tuple(self.history.get_user_meal_history(user_id, window))
        plan_entries = tuple(self.history.get_plan_entries(meal_plan_id)) if meal_plan_id else ()

        logger.info(
            "Snapshot for user %s: %s recipes, %s ingredients, %s active allergies, %s history entries",
            user_id, len(recipes), len(ingredients), len(active), len(history),
        )
        return CatalogSnapshot(
            recipes=recipes,
            ingredients={normalize_name(k): v for k, v in ingredients.items()},
            active_allergen_ids=active,
            history=history,
            plan_entries=plan_entries,
        )

    def _scoring_setup(self, user_id: int, snapshot: CatalogSnapshot, extra_exclusions: Iterable[int],
                       as_of: date) -> Tuple[SafetyFilter, RecipeScorer, ScoringContext]:
        """Safety filter, scorer and base context shared by generation and recommendations."""
        exclusion = frozenset(self.graph.resolve_exclusion_set(
            snapshot.active_allergen_ids | frozenset(extra_exclusions)
        ))
        logger.info("User %s exclusion set: %s allergens", user_id, len(exclusion))

        safety = SafetyFilter(snapshot.ingredients, self.settings.treat_may_contain_as_contains)
        scorer = RecipeScorer(safety, ScoringWeights.from_settings(self.settings), self.settings.tie_epsilon)
        preferences = PreferenceModel.for_user(user_id, snapshot.history, as_of=as_of)
        context = ScoringContext(
            exclusion_set=exclusion,
            cuisine_affinity=preferences.cuisine_affinity(user_id),
            completion_rate=preferences.completion_rate(user_id),
            recently_used=frozenset(preferences.recently_used(user_id, self.settings.variety_lookback_days)),
            user_id=user_id,
        )
        return safety, scorer, context

    def resolve_exclusion_set(self, user_id: int, extra: Iterable[int] = ()) -> FrozenSet[int]:
        """Exclusion set for a user's active allergies plus `extra` ids."""
        allergies = self.history.get_user_allergies(user_id)
        direct = {a.allergen_id for a in allergies if not a.outgrown} | set(extra)
        return frozenset(self.graph.resolve_exclusion_set(direct))

    def _constraints(self, request: Union[GenerationRequest, RecommendationRequest], slot: str) -> SlotConstraints:
        return SlotConstraints(
            meal_type=slot,
            max_prep_time=request.max_prep_time,
            max_cook_time=request.max_cook_time,
            cuisine_types=frozenset(normalize_name(c) for c in request.cuisine_types if normalize_name(c)),
            target_servings=request.servings,
            target_calories=slot_calorie_target(slot, request.daily_calories),
        )

    def _fill_slot(self, day: date, slot: str, pool: List[RecipeRecord], scorer: RecipeScorer,
                   context: ScoringContext, request: GenerationRequest):
        """Return a `SlotAssignment`, or an `UnfilledSlot` when nothing fits.

        Raises:
            NoSafeCandidatesError: The meal type has recipes but none is safe.
        """
        if not pool:
            return UnfilledSlot(day, slot, NO_CANDIDATES, f"No {slot} recipes in the catalog")
        safe_pool = [r for r in pool if scorer.is_safe(r, context.exclusion_set)]
        if not safe_pool:
            raise NoSafeCandidatesError(day, slot, rejected=len(pool))

        chosen = scorer.select_best(safe_pool, context.for_slot(self._constraints(request, slot)))
        if chosen is None:
            return UnfilledSlot(day, slot, NO_MATCHING_CANDIDATES,
                                f"No safe {slot} recipe matches the time or cuisine limits")
        servings = request.servings if request.servings is not None else chosen.recipe.servings
        return SlotAssignment(day, slot, chosen.recipe, chosen.score, servings=servings)

    def generate(self, request: GenerationRequest, cancel_token=None) -> GenerationResult:
        """Assemble a plan for `request`.

        Args:
            request: The generation request.
            cancel_token: Optional object with `is_set()`, checked between
                slots.

        Returns:
            A `GenerationResult` with status success, partial or failed.

        Raises:
            ValidationError: The request is malformed.
            GenerationCancelledError: `cancel_token` was set mid-run.
        """
        slots = validate_request(request)
        snapshot = self.load_snapshot(request, slots)
        safety, scorer, context = self._scoring_setup(
            request.user_id, snapshot, request.exclude_allergens, request.start_date
        )
        exclusion = context.exclusion_set

        pools: Dict[str, List[RecipeRecord]] = defaultdict(list)
        for recipe in snapshot.recipes:
            pools[normalize_meal_type(recipe.meal_type)].append(recipe)

        existing: Dict[Tuple[date, str], List[HistoryEntry]] = defaultdict(list)
        for entry in snapshot.plan_entries:
            existing[(entry.meal_date, normalize_meal_type(entry.meal_type))].append(entry)

        days = sorted(set(request.target_dates)) if request.target_dates else date_range(request.start_date, request.end_date)
        result = GenerationResult(status=FAILED, exclusion_set=exclusion)
        slots_done = 0

        for day in days:
            for slot in slots:
                if cancel_token is not None and cancel_token.is_set():
                    logger.info("Generation for user %s cancelled after %s slots", request.user_id, slots_done)
                    raise GenerationCancelledError(slots_done)
                slots_done += 1

                current = existing.get((day, slot), [])
                if current and not request.replace_existing:
                    result.kept_entries += len(current)
                    continue

                try:
                    outcome = self._fill_slot(day, slot, pools.get(slot, []), scorer, context, request)
                except NoSafeCandidatesError as exc:
                    outcome = UnfilledSlot(day, slot, NO_SAFE_CANDIDATES, exc.message)
                except AppException as exc:
                    logger.warning("Slot %s %s failed: %s", day, slot, exc.message)
                    outcome = UnfilledSlot(day, slot, SLOT_ERROR, exc.message)
                except Exception as exc:
                    # one bad catalog row must only cost its slot
                    logger.exception("Unexpected error filling %s on %s", slot, day)
                    outcome = UnfilledSlot(day, slot, SLOT_ERROR, str(exc))

                if isinstance(outcome, UnfilledSlot):
                    logger.warning("Unfilled slot %s %s: %s", day, slot, outcome.reason)
                    result.unfilled.append(outcome)
                    continue

                if current:
                    outcome = replace(outcome, replaces_entry_ids=tuple(e.entry_id for e in current))
                result.assignments.append(outcome)
                context = context.with_used(outcome.recipe.id)

        result.shopping_list = aggregate_shopping_list(
            ((a.recipe, a.servings) for a in result.assignments), snapshot.ingredients
        )
        result.warnings.extend(str(w) for w in safety.warnings)

        filled = bool(result.assignments) or result.kept_entries > 0
        if filled and result.unfilled:
            result.status = PARTIAL
            result.warnings.append(
                "Unfilled slots: " + ", ".join(f"{u.meal_date} {u.meal_type}" for u in result.unfilled)
            )
        elif filled:
            result.status = SUCCESS
        else:
            result.status = FAILED

        logger.info(
            "Generated plan for user %s: status=%s filled=%s unfilled=%s kept=%s",
            request.user_id, result.status, result.filled_count, len(result.unfilled), result.kept_entries,
        )
        return result

    def recommend(self, request: RecommendationRequest) -> RecommendationResult:
        """Rank the safe recipes of one meal type for a user, best first.

        Uses the same exclusion set, hard filter and soft score as plan
        generation, with history read up to `request.as_of` (today by
        default). At most `request.limit` candidates are returned.

        Raises:
            ValidationError: Unknown meal type, non-positive limit or
                negative constraints.
        """
        slot = normalize_meal_type(request.meal_type)
        if slot is None:
            raise ValidationError(f"Unknown meal slot '{request.meal_type}'", field="meal_type")
        if request.limit < 1:
            raise ValidationError("limit must be at least 1", field="limit")
        _reject_negative_limits(request)

        as_of = request.as_of or date.today()
        snapshot = self._load_snapshot(request.user_id, [slot], request.cuisine_types, as_of)
        safety, scorer, context = self._scoring_setup(request.user_id, snapshot, request.exclude_allergens, as_of)

        pool = [r for r in snapshot.recipes if normalize_meal_type(r.meal_type) == slot]
        safe_pool = [r for r in pool if scorer.is_safe(r, context.exclusion_set)]
        ranked = scorer.rank(safe_pool, context.for_slot(self._constraints(request, slot)))

        logger.info(
            "Recommendations for user %s (%s): %s ranked, %s unsafe",
            request.user_id, slot, len(ranked), len(pool) - len(safe_pool),
        )
        return RecommendationResult(
            meal_type=slot,
            candidates=ranked[:request.limit],
            exclusion_set=context.exclusion_set,
            rejected_unsafe=len(pool) - len(safe_pool),
            warnings=[str(w) for w in safety.warnings],
        )
