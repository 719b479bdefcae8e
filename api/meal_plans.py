"""Meal plan API router.

Endpoints to generate allergen-safe meal plans (new or existing), bulk fill
a meal slot with chosen recipes, rank safe recipes for a meal type, read a
plan back and fetch its persisted shopping list. Writes run on a write
session; reads use the read session.
"""

from dataclasses import asdict
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from database.deps import get_db_read, get_db_write
from database import models
from core.logger import get_logger
from core.repository import BaseRepository, shopping_items_by_plan
from schemas import (
    BulkFillMealsRequest,
    BulkFillMealsResponse,
    GenerateMealPlanRequest,
    GenerateMealPlanResponse,
    MealPlanResponse,
    RecommendationsRequest,
    RecommendationsResponse,
    ShoppingListResponse,
)
from schemas.meal_plan_schema import (
    GeneratedEntrySchema,
    MealPlanEntrySchema,
    RecommendedRecipeSchema,
    ScoreBreakdown,
    ShoppingItemSchema,
    UnfilledSlotSchema,
)
from services.bulk_fill import BulkFillRequest
from services.meal_plan_assembler import GenerationRequest, RecommendationRequest
from services.recipe_scorer import RecipeScore
from services.meal_plan_service import GenerationOutcome, MealPlanService
from services.shopping_list import group_by_category

logger = get_logger("api.meal_plans")
router = APIRouter(prefix="/api/meal-plans", tags=["meal-plans"])


def to_generation_request(payload: GenerateMealPlanRequest, meal_plan_id: Optional[int] = None) -> GenerationRequest:
    return GenerationRequest(
        user_id=payload.user_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        requested_slots=tuple(payload.meal_types),
        meal_plan_id=meal_plan_id,
        cuisine_types=tuple(payload.cuisine_types),
        max_prep_time=payload.max_prep_time,
        max_cook_time=payload.max_cook_time,
        servings=payload.servings,
        exclude_allergens=frozenset(payload.exclude_allergens),
        target_dates=tuple(payload.target_dates),
        replace_existing=payload.replace_existing,
        daily_calories=payload.daily_calories,
    )


def _score_breakdown(score: RecipeScore) -> ScoreBreakdown:
    return ScoreBreakdown(**{k: v for k, v in score.as_dict().items() if k not in ("recipe_id", "safe")})


def _generation_response(outcome: GenerationOutcome) -> GenerateMealPlanResponse:
    result = outcome.result
    entries = []
    for a in result.assignments:
        entries.append(GeneratedEntrySchema(
            meal_date=a.meal_date,
            meal_type=a.meal_type,
            recipe_id=a.recipe.id,
            recipe_name=a.recipe.name,
            cuisine_type=a.recipe.cuisine_type,
            servings=a.servings,
            replaced_entry_ids=list(a.replaces_entry_ids),
            score=_score_breakdown(a.score),
        ))
    return GenerateMealPlanResponse(
        meal_plan_id=outcome.meal_plan.id,
        status=result.status,
        entries=entries,
        unfilled_slots=[UnfilledSlotSchema(**asdict(u)) for u in result.unfilled],
        kept_entries=result.kept_entries,
        shopping_list=[ShoppingItemSchema(**asdict(i)) for i in outcome.shopping_list],
        warnings=result.warnings,
        excluded_allergen_ids=sorted(result.exclusion_set),
    )


@router.post("/generate", response_model=GenerateMealPlanResponse, status_code=201)
def generate_meal_plan(payload: GenerateMealPlanRequest, db: Session = Depends(get_db_write)):
    """Create a meal plan over the requested range and fill its slots.

    Args:
        payload: `GenerateMealPlanRequest` with user, dates, slots and limits.
        db: SQLAlchemy session (write) injected by dependency.

    Returns:
        `GenerateMealPlanResponse` with the chosen recipes, unfilled slots
        and the aggregated shopping list.

    Raises:
        NotFoundError: If the user does not exist.
        NoCandidatesAtAllError: If no slot could be filled.
    """
    logger.info(
        "Generating meal plan for user %s: %s to %s, slots=%s",
        payload.user_id, payload.start_date, payload.end_date, payload.meal_types,
    )
    outcome = MealPlanService(db).generate(to_generation_request(payload), plan_name=payload.name)
    return _generation_response(outcome)


@router.post("/{plan_id}/generate", response_model=GenerateMealPlanResponse)
def regenerate_meal_plan(plan_id: int, payload: GenerateMealPlanRequest, db: Session = Depends(get_db_write)):
    """Fill empty slots of an existing plan, or replace them with `replace_existing`.

    Raises:
        NotFoundError: If the user or plan does not exist, or the plan
            belongs to another user.
        ValidationError: If the dates fall outside the plan.
    """
    logger.info("Regenerating meal plan %s for user %s", plan_id, payload.user_id)
    outcome = MealPlanService(db).generate(to_generation_request(payload, meal_plan_id=plan_id))
    return _generation_response(outcome)


@router.post("/recommendations", response_model=RecommendationsResponse)
def recommend_recipes(payload: RecommendationsRequest, meal_type: str = Query("dinner"),
                      db: Session = Depends(get_db_read)):
    """Rank the recipes of one meal type that are safe for the user.

    Raises:
        NotFoundError: If the user does not exist.
        ValidationError: If the meal type is unknown.
    """
    request = RecommendationRequest(
        user_id=payload.user_id,
        meal_type=meal_type,
        cuisine_types=tuple(payload.cuisine_types),
        max_prep_time=payload.max_prep_time,
        max_cook_time=payload.max_cook_time,
        servings=payload.servings,
        exclude_allergens=frozenset(payload.exclude_allergens),
        daily_calories=payload.daily_calories,
        limit=payload.limit,
    )
    result = MealPlanService(db).recommend(request)
    return RecommendationsResponse(
        user_id=payload.user_id,
        meal_type=result.meal_type,
        recipes=[
            RecommendedRecipeSchema(
                recipe_id=c.recipe.id,
                recipe_name=c.recipe.name,
                cuisine_type=c.recipe.cuisine_type,
                prep_time_minutes=c.recipe.prep_time_minutes,
                cook_time_minutes=c.recipe.cook_time_minutes,
                calories=c.recipe.calories,
                score=_score_breakdown(c.score),
            )
            for c in result.candidates
        ],
        excluded_allergen_ids=sorted(result.exclusion_set),
        rejected_unsafe=result.rejected_unsafe,
        warnings=result.warnings,
    )


@router.post("/{plan_id}/bulk-fill", response_model=BulkFillMealsResponse)
def bulk_fill_meals(plan_id: int, payload: BulkFillMealsRequest, db: Session = Depends(get_db_write)):
    """Fill one meal slot on every (or every targeted) date of a plan.

    Raises:
        NotFoundError: If the user, plan or a recipe does not exist.
        ValidationError: If a recipe is unsafe for the user or a date is
            outside the plan.
    """
    logger.info("Bulk filling %s for meal plan %s (%s)", payload.meal_type, plan_id, payload.fill_pattern)
    outcome = MealPlanService(db).bulk_fill(BulkFillRequest(
        user_id=payload.user_id,
        meal_plan_id=plan_id,
        meal_type=payload.meal_type,
        recipe_ids=tuple(payload.recipe_ids),
        fill_pattern=payload.fill_pattern,
        target_dates=tuple(payload.target_dates),
        servings=payload.servings,
    ))
    return BulkFillMealsResponse(
        meal_plan_id=plan_id,
        meal_type=payload.meal_type,
        filled=len(outcome.entry_ids),
        entry_ids=outcome.entry_ids,
        replaced_entry_ids=outcome.replaced_entry_ids,
        shopping_list=[ShoppingItemSchema(**asdict(i)) for i in outcome.shopping_list],
    )


@router.get("/{plan_id}", response_model=MealPlanResponse)
def get_meal_plan(plan_id: int, db: Session = Depends(get_db_read)):
    """Return a meal plan with its entries ordered by date and slot.

    Raises:
        NotFoundError: If the plan does not exist.
    """
    plan = BaseRepository(models.MealPlan, db).get_or_404(plan_id)
    entries = []
    for e in sorted(plan.entries, key=lambda x: (x.meal_date, x.id)):
        entries.append(MealPlanEntrySchema(
            id=e.id,
            meal_date=e.meal_date,
            meal_type=e.meal_type,
            recipe_id=e.recipe_id,
            recipe_name=e.recipe.name if e.recipe else e.custom_meal_name,
            cuisine_type=e.recipe.cuisine_type if e.recipe else None,
            servings=e.servings,
            notes=e.notes,
            is_completed=bool(e.is_completed),
        ))
    return MealPlanResponse(
        id=plan.id,
        user_id=plan.user_id,
        name=plan.name,
        plan_type=plan.plan_type,
        start_date=plan.start_date,
        end_date=plan.end_date,
        entries=entries,
        created_at=plan.created_at.isoformat() if plan.created_at else None,
    )


@router.get("/{plan_id}/shopping-list", response_model=ShoppingListResponse)
def get_shopping_list(plan_id: int, db: Session = Depends(get_db_read)):
    """Return the shopping list stored by the last generation run.

    Raises:
        NotFoundError: If the plan does not exist.
    """
    BaseRepository(models.MealPlan, db).get_or_404(plan_id)
    items = [
        ShoppingItemSchema(
            ingredient_name=i.ingredient_name,
            quantity=i.quantity,
            unit=i.unit,
            category=i.category or "Other",
            is_purchased=bool(i.is_purchased),
        )
        for i in shopping_items_by_plan(db, plan_id)
    ]
    return ShoppingListResponse(
        meal_plan_id=plan_id,
        total_items=len(items),
        items=items,
        by_category=group_by_category(items),
    )
