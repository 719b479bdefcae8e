"""Meal plan generation service.

Glue between the API layer and the engine: loads or creates the meal plan,
runs the assembler over the bulk snapshot and applies the resulting diff
through the plan writer in one transaction. Also serves the recipe
recommendations, bulk fill and preference lookups built on the same engine.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from core.config import Settings, get_settings
from core.exceptions import AppException, NoCandidatesAtAllError, NotFoundError, ValidationError
from core.logger import get_logger
from core.repository import BaseRepository, SqlCatalogReader, SqlHistoryReader, SqlPlanWriter
from database import models
from services.bulk_fill import BulkFillRequest, plan_bulk_fill, validate_bulk_fill
from services.domain import HistoryWindow, PlanDiff, RecipeFilter, RecipeRecord, ShoppingItem
from services.interfaces import PlanWriter
from services.meal_plan_assembler import (
    FAILED,
    GenerationRequest,
    GenerationResult,
    MealPlanAssembler,
    RecommendationRequest,
    RecommendationResult,
    date_range,
)
from services.preference_model import DEFAULT_LOOKBACK_DAYS, PreferenceModel, UserCuisinePreference
from services.recipe_scorer import RecipeScorer
from services.safety_filter import SafetyFilter
from services.shopping_list import aggregate_shopping_list

logger = get_logger("services.meal_plan_service")


@dataclass
class GenerationOutcome:
    meal_plan: models.MealPlan
    result: GenerationResult
    entry_ids: list
    # covers every entry of the plan, not only this run's additions
    shopping_list: List[ShoppingItem]


@dataclass
class BulkFillOutcome:
    meal_plan: models.MealPlan
    entry_ids: List[int]
    replaced_entry_ids: List[int]
    shopping_list: List[ShoppingItem]


class MealPlanService:
    """Generates and persists meal plans for one database session.

    Args:
        session: Write-capable SQLAlchemy session.
        settings: Engine settings; loaded from the environment when omitted.
        graph: Optional prebuilt allergen graph (tests pass their own).
    """

    def __init__(self, session: Session, settings: Optional[Settings] = None, graph=None):
        self.session = session
        self.settings = settings or get_settings()
        self.catalog = SqlCatalogReader(session)
        self.history = SqlHistoryReader(session)
        self.writer: PlanWriter = SqlPlanWriter(session)
        self.assembler = MealPlanAssembler(self.catalog, self.history, graph=graph, settings=self.settings)

    def _ensure_user(self, user_id: int) -> models.User:
        return BaseRepository(models.User, self.session).get_or_404(user_id)

    def _owned_plan(self, meal_plan_id: int, user_id: int) -> models.MealPlan:
        plan = BaseRepository(models.MealPlan, self.session).get_or_404(meal_plan_id)
        if plan.user_id != user_id:
            raise NotFoundError("MealPlan", meal_plan_id)
        return plan

    def _create_plan(self, request: GenerationRequest, name: Optional[str]) -> models.MealPlan:
        """Add the plan row to the open transaction; the plan writer commits it."""
        plan = models.MealPlan(
            user_id=request.user_id,
            name=name or f"Meal plan {request.start_date.isoformat()} to {request.end_date.isoformat()}",
            plan_type="generated",
            start_date=request.start_date,
            end_date=request.end_date,
            created_at=datetime.utcnow(),
        )
        plan = BaseRepository(models.MealPlan, self.session).add(plan)
        logger.info("Created meal plan %s for user %s", plan.id, request.user_id)
        return plan

    def _apply(self, plan: models.MealPlan, diff: PlanDiff, created: bool) -> List[int]:
        user_id = plan.user_id
        try:
            return self.writer.apply(plan.id, diff)
        except AppException:
            if created:
                # the new plan row was only flushed; drop it with the failed diff
                self.session.rollback()
                logger.warning("Discarded new meal plan after failed write for user %s", user_id)
            raise

    def generate(self, request: GenerationRequest, plan_name: Optional[str] = None, cancel_token=None) -> GenerationOutcome:
        """Generate entries for a new or existing meal plan.

        When `request.meal_plan_id` is set, the plan must belong to the user
        and cover the requested dates. Otherwise a plan spanning the
        requested range is created, but only once the run found something
        to assign, and it is committed together with its entries.

        Raises:
            NotFoundError: Unknown user or meal plan.
            ValidationError: Malformed request or dates outside the plan.
            NoCandidatesAtAllError: No requested slot could be filled.
            GenerationCancelledError: Cancelled mid-run; nothing is written.
            DatabaseError: Persisting the diff failed; a new plan is not kept.
        """
        self._ensure_user(request.user_id)

        plan = None
        if request.meal_plan_id is not None:
            plan = self._owned_plan(request.meal_plan_id, request.user_id)
            if request.start_date < plan.start_date or request.end_date > plan.end_date:
                raise ValidationError(
                    f"Requested dates fall outside meal plan {plan.id} "
                    f"({plan.start_date.isoformat()} to {plan.end_date.isoformat()})",
                    field="date_range",
                )

        result = self.assembler.generate(request, cancel_token=cancel_token)
        if result.status == FAILED and result.unfilled:
            logger.warning("Generation failed for user %s: every requested slot unfilled", request.user_id)
            raise NoCandidatesAtAllError([u.as_dict() for u in result.unfilled])

        created = plan is None
        if created:
            plan = self._create_plan(request, plan_name)
            shopping_list = result.shopping_list
        else:
            replaced = {entry_id for a in result.assignments for entry_id in a.replaces_entry_ids}
            shopping_list = self._plan_shopping_list(
                plan.id, [(a.recipe, a.servings) for a in result.assignments], replaced
            )

        diff = replace(result.to_diff(plan.id), shopping_items=tuple(shopping_list))
        entry_ids = self._apply(plan, diff, created)
        self.session.refresh(plan)
        return GenerationOutcome(meal_plan=plan, result=result, entry_ids=entry_ids, shopping_list=shopping_list)

    def _plan_shopping_list(self, meal_plan_id: int, selections: List[Tuple[RecipeRecord, Optional[float]]],
                            replaced: Iterable[int]) -> List[ShoppingItem]:
        """Shopping list for the plan once `selections` are added and `replaced` removed."""
        replaced = set(replaced)
        kept = [
            e for e in self.history.get_plan_entries(meal_plan_id)
            if e.entry_id not in replaced and e.recipe_id is not None
        ]
        selections = list(selections)
        if kept:
            recipes = {r.id: r for r in self.catalog.get_recipes(RecipeFilter())}
            selections += [(recipes[e.recipe_id], e.servings) for e in kept if e.recipe_id in recipes]
        names = {line.ingredient_name for recipe, _ in selections for line in recipe.ingredients}
        ingredients = self.catalog.get_ingredient_allergens(names) if names else {}
        return aggregate_shopping_list(selections, ingredients)

    def exclusion_set(self, user_id: int):
        """Resolved exclusion set (reported allergies plus cross-reactive ones)."""
        self._ensure_user(user_id)
        return self.assembler.resolve_exclusion_set(user_id)

    def recommend(self, request: RecommendationRequest) -> RecommendationResult:
        """Ranked safe recipes for one meal type.

        Raises:
            NotFoundError: Unknown user.
            ValidationError: Unknown meal type or bad limits.
        """
        self._ensure_user(request.user_id)
        return self.assembler.recommend(request)

    def bulk_fill(self, request: BulkFillRequest) -> BulkFillOutcome:
        """Fill one meal slot across the plan's dates with the chosen recipes.

        Entries already in the slot on a filled date are replaced. Every
        chosen recipe must be safe for the user's exclusion set.

        Raises:
            NotFoundError: Unknown user, meal plan (or a plan of another
                user) or recipe.
            ValidationError: Bad slot, pattern or servings, dates outside the
                plan, or a chosen recipe that is unsafe for the user.
            DatabaseError: Persisting the entries failed.
        """
        slot = validate_bulk_fill(request)
        self._ensure_user(request.user_id)
        plan = self._owned_plan(request.meal_plan_id, request.user_id)

        dates = sorted(set(request.target_dates)) if request.target_dates else date_range(plan.start_date, plan.end_date)
        outside = [d for d in dates if not plan.start_date <= d <= plan.end_date]
        if outside:
            raise ValidationError(f"Target date {outside[0]} is outside meal plan {plan.id}", field="target_dates")

        recipes = {r.id: r for r in self.catalog.get_recipes(RecipeFilter())}
        for recipe_id in request.recipe_ids:
            if recipe_id not in recipes:
                raise NotFoundError("Recipe", recipe_id)

        chosen = [recipes[i] for i in dict.fromkeys(request.recipe_ids)]
        names = {line.ingredient_name for r in chosen for line in r.ingredients if line.ingredient_name}
        ingredients = self.catalog.get_ingredient_allergens(names) if names else {}
        scorer = RecipeScorer(SafetyFilter(ingredients, self.settings.treat_may_contain_as_contains))
        exclusion = self.assembler.resolve_exclusion_set(request.user_id)
        unsafe = [r.id for r in chosen if not scorer.is_safe(r, exclusion)]
        if unsafe:
            logger.warning("Bulk fill for user %s rejected unsafe recipes %s", request.user_id, unsafe)
            raise ValidationError(
                f"Recipes {unsafe} contain allergens excluded for user {request.user_id}",
                field="recipe_ids",
            )

        proposals = plan_bulk_fill(request, slot, dates, recipes, self.history.get_plan_entries(plan.id))
        replaced = tuple(entry_id for p in proposals for entry_id in p.replaces_entry_ids)
        shopping_list = self._plan_shopping_list(
            plan.id, [(recipes[p.recipe_id], p.servings) for p in proposals], replaced
        )
        diff = PlanDiff(additions=tuple(proposals), replaced_entry_ids=replaced, shopping_items=tuple(shopping_list))
        entry_ids = self._apply(plan, diff, created=False)
        self.session.refresh(plan)
        logger.info("Bulk filled %s %s slots in meal plan %s", len(entry_ids), slot, plan.id)
        return BulkFillOutcome(
            meal_plan=plan, entry_ids=entry_ids, replaced_entry_ids=list(replaced), shopping_list=shopping_list,
        )

    def _preferences(self, user_id: int, as_of: Optional[date], lookback_days: int = 0) -> PreferenceModel:
        self._ensure_user(user_id)
        as_of = as_of or date.today()
        days = max(self.settings.history_lookback_days, lookback_days)
        entries = self.history.get_user_meal_history(user_id, HistoryWindow(start=as_of - timedelta(days=days)))
        return PreferenceModel.for_user(user_id, entries, as_of=as_of)

    def cuisine_preferences(self, user_id: int, as_of: Optional[date] = None) -> List[UserCuisinePreference]:
        return self._preferences(user_id, as_of).cuisine_preferences(user_id)

    def recently_used_recipes(self, user_id: int, days_back: int = DEFAULT_LOOKBACK_DAYS,
                              as_of: Optional[date] = None) -> List[int]:
        """Recipe ids used (or already planned) within `days_back` days of `as_of`."""
        if days_back < 0:
            raise ValidationError("days_back must not be negative", field="days_back")
        model = self._preferences(user_id, as_of, lookback_days=days_back)
        return sorted(model.recently_used(user_id, days_back))

    def recipe_completion_rates(self, user_id: int, as_of: Optional[date] = None) -> Dict[int, float]:
        return self._preferences(user_id, as_of).completion_rate(user_id)
