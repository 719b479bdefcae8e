"""User preference lookups derived from meal plan history."""

from dataclasses import asdict
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database.deps import get_db_read
from core.logger import get_logger
from schemas import CompletionRatesResponse, CuisinePreferencesResponse, RecentlyUsedRecipesResponse
from schemas.meal_plan_schema import CuisinePreferenceSchema
from services.meal_plan_service import MealPlanService
from services.preference_model import DEFAULT_LOOKBACK_DAYS

logger = get_logger("api.preferences")
router = APIRouter(prefix="/api/users", tags=["preferences"])


@router.get("/{user_id}/cuisine-preferences", response_model=CuisinePreferencesResponse)
def get_cuisine_preferences(user_id: int, db: Session = Depends(get_db_read)):
    """Cuisine usage statistics from the user's history, most used first.

    Raises:
        NotFoundError: If the user does not exist.
    """
    preferences = MealPlanService(db).cuisine_preferences(user_id)
    logger.info("Cuisine preferences for user %s: %s cuisines", user_id, len(preferences))
    return CuisinePreferencesResponse(
        user_id=user_id,
        preferences=[CuisinePreferenceSchema(**asdict(p)) for p in preferences],
    )


@router.get("/{user_id}/recently-used-recipes", response_model=RecentlyUsedRecipesResponse)
def get_recently_used_recipes(user_id: int, days_back: int = Query(DEFAULT_LOOKBACK_DAYS, ge=0),
                              db: Session = Depends(get_db_read)):
    """Recipe ids used or planned in the last `days_back` days."""
    recipe_ids = MealPlanService(db).recently_used_recipes(user_id, days_back=days_back)
    return RecentlyUsedRecipesResponse(user_id=user_id, days_back=days_back, recipe_ids=recipe_ids)


@router.get("/{user_id}/recipe-completion-rates", response_model=CompletionRatesResponse)
def get_recipe_completion_rates(user_id: int, db: Session = Depends(get_db_read)):
    return CompletionRatesResponse(
        user_id=user_id,
        completion_rates=MealPlanService(db).recipe_completion_rates(user_id),
    )
