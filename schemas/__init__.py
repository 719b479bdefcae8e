"""Pydantic schema package for request and response models."""

from .meal_plan_schema import (
    GenerateMealPlanRequest,
    GenerateMealPlanResponse,
    MealPlanResponse,
    ShoppingListResponse,
    ExclusionSetResponse,
    RecommendationsRequest,
    RecommendationsResponse,
    BulkFillMealsRequest,
    BulkFillMealsResponse,
    CuisinePreferencesResponse,
    RecentlyUsedRecipesResponse,
    CompletionRatesResponse,
)

__all__ = [
    "GenerateMealPlanRequest",
    "GenerateMealPlanResponse",
    "MealPlanResponse",
    "ShoppingListResponse",
    "ExclusionSetResponse",
    "RecommendationsRequest",
    "RecommendationsResponse",
    "BulkFillMealsRequest",
    "BulkFillMealsResponse",
    "CuisinePreferencesResponse",
    "RecentlyUsedRecipesResponse",
    "CompletionRatesResponse",
]
