"""Schemas for meal plan generation requests and responses."""

from datetime import date
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Dict, List, Optional

from services.bulk_fill import FILL_PATTERNS
from services.domain import MEAL_TYPES, normalize_meal_type


class GenerateMealPlanRequest(BaseModel):
    """Payload for generating meal plan entries."""

    user_id: int = Field(..., examples=[1], description="ID of the user the plan is for")
    start_date: date = Field(..., examples=["2026-03-02"], description="First day of the plan (inclusive)")
    end_date: date = Field(..., examples=["2026-03-08"], description="Last day of the plan (inclusive)")
    meal_types: List[str] = Field(
        default_factory=lambda: ["breakfast", "lunch", "dinner"],
        examples=[["breakfast", "lunch", "dinner"]],
        description="Slots to fill each day: breakfast, lunch, dinner, snack",
    )
    name: Optional[str] = Field(None, examples=["Week 10"], description="Name for a newly created plan")
    cuisine_types: List[str] = Field(default_factory=list, examples=[["Italian", "Mexican"]], description="Allowed cuisines (empty means any)")
    max_prep_time: Optional[int] = Field(None, ge=0, examples=[20], description="Maximum prep time in minutes")
    max_cook_time: Optional[int] = Field(None, ge=0, examples=[40], description="Maximum cook time in minutes")
    servings: Optional[float] = Field(None, gt=0, examples=[2], description="Servings to plan per meal")
    daily_calories: Optional[float] = Field(None, gt=0, examples=[2000], description="Daily calorie target used for nutrition fit")
    exclude_allergens: List[int] = Field(default_factory=list, examples=[[3]], description="Extra allergen ids to exclude for this request")
    target_dates: List[date] = Field(default_factory=list, description="Only fill these dates (must be inside the range)")
    replace_existing: bool = Field(False, description="Replace entries already present in the targeted slots")

    @field_validator("meal_types")
    @classmethod
    def check_meal_types(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("at least one meal type is required")
        normalized = []
        for item in v:
            slot = normalize_meal_type(item)
            if slot is None:
                raise ValueError(f"unknown meal type '{item}', expected one of {', '.join(MEAL_TYPES)}")
            if slot not in normalized:
                normalized.append(slot)
        return normalized

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        for day in self.target_dates:
            if not self.start_date <= day <= self.end_date:
                raise ValueError(f"target date {day} is outside the requested range")
        return self


class ScoreBreakdown(BaseModel):
    cuisine_affinity: float
    completion_rate: float
    variety_penalty: float
    nutrition_fit: float
    servings_deviation: float
    total: float


class MealPlanEntrySchema(BaseModel):
    """A persisted meal plan entry."""

    id: int
    meal_date: date
    meal_type: str
    recipe_id: Optional[int] = None
    recipe_name: Optional[str] = None
    cuisine_type: Optional[str] = None
    servings: Optional[float] = None
    notes: Optional[str] = None
    is_completed: bool = False


class GeneratedEntrySchema(BaseModel):
    """An entry produced by a generation run, with its score."""

    meal_date: date
    meal_type: str
    recipe_id: int
    recipe_name: str
    cuisine_type: Optional[str] = None
    servings: Optional[float] = None
    replaced_entry_ids: List[int] = []
    score: ScoreBreakdown


class UnfilledSlotSchema(BaseModel):
    meal_date: date
    meal_type: str
    reason: str
    message: str = ""


class ShoppingItemSchema(BaseModel):
    ingredient_name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    category: str
    is_purchased: bool = False


class GenerateMealPlanResponse(BaseModel):
    """Result of a generation run."""

    meal_plan_id: int
    status: str = Field(..., examples=["partial"], description="success, partial or failed")
    entries: List[GeneratedEntrySchema]
    unfilled_slots: List[UnfilledSlotSchema] = []
    kept_entries: int = 0
    shopping_list: List[ShoppingItemSchema] = []
    warnings: List[str] = []
    excluded_allergen_ids: List[int] = []


class MealPlanResponse(BaseModel):
    """A meal plan with its entries."""

    id: int
    user_id: int
    name: Optional[str] = None
    plan_type: Optional[str] = None
    start_date: date
    end_date: date
    entries: List[MealPlanEntrySchema]
    created_at: Optional[str] = None


class ShoppingListResponse(BaseModel):
    meal_plan_id: int
    total_items: int
    items: List[ShoppingItemSchema]
    by_category: Dict[str, List[ShoppingItemSchema]] = {}


class ExclusionSetResponse(BaseModel):
    """A user's resolved allergen exclusion set."""

    user_id: int
    allergen_ids: List[int]
    allergens: List[str] = []


class RecommendationsRequest(BaseModel):
    """Filters for ranked recipe recommendations; the meal type is a query parameter."""

    user_id: int = Field(..., examples=[1])
    cuisine_types: List[str] = Field(default_factory=list, examples=[["Italian"]])
    max_prep_time: Optional[int] = Field(None, ge=0, examples=[20])
    max_cook_time: Optional[int] = Field(None, ge=0, examples=[40])
    servings: Optional[float] = Field(None, gt=0, examples=[2])
    daily_calories: Optional[float] = Field(None, gt=0, examples=[2000])
    exclude_allergens: List[int] = Field(default_factory=list)
    limit: int = Field(10, ge=1, le=100, description="Maximum number of recipes returned")


class RecommendedRecipeSchema(BaseModel):
    recipe_id: int
    recipe_name: str
    cuisine_type: Optional[str] = None
    prep_time_minutes: Optional[int] = None
    cook_time_minutes: Optional[int] = None
    calories: Optional[float] = None
    score: ScoreBreakdown


class RecommendationsResponse(BaseModel):
    """Safe recipes for one meal type, best first."""

    user_id: int
    meal_type: str
    recipes: List[RecommendedRecipeSchema]
    excluded_allergen_ids: List[int] = []
    rejected_unsafe: int = 0
    warnings: List[str] = []


class BulkFillMealsRequest(BaseModel):
    """Fill one meal slot across a plan's dates with chosen recipes."""

    user_id: int = Field(..., examples=[1])
    meal_type: str = Field(..., examples=["dinner"])
    fill_pattern: str = Field("rotate", examples=["rotate"], description="rotate or same")
    recipe_ids: List[int] = Field(..., min_length=1, examples=[[9, 10]])
    target_dates: List[date] = Field(default_factory=list, description="Dates to fill (empty means the whole plan)")
    servings: Optional[float] = Field(None, gt=0, examples=[2])

    @field_validator("meal_type")
    @classmethod
    def check_meal_type(cls, v: str) -> str:
        slot = normalize_meal_type(v)
        if slot is None:
            raise ValueError(f"unknown meal type '{v}', expected one of {', '.join(MEAL_TYPES)}")
        return slot

    @field_validator("fill_pattern")
    @classmethod
    def check_fill_pattern(cls, v: str) -> str:
        pattern = v.strip().lower()
        if pattern not in FILL_PATTERNS:
            raise ValueError(f"unknown fill pattern '{v}', expected one of {', '.join(FILL_PATTERNS)}")
        return pattern


class BulkFillMealsResponse(BaseModel):
    meal_plan_id: int
    meal_type: str
    filled: int
    entry_ids: List[int]
    replaced_entry_ids: List[int] = []
    shopping_list: List[ShoppingItemSchema] = []


class CuisinePreferenceSchema(BaseModel):
    cuisine_type: str
    usage_count: int
    affinity: float
    completion_rate: float


class CuisinePreferencesResponse(BaseModel):
    user_id: int
    preferences: List[CuisinePreferenceSchema]


class RecentlyUsedRecipesResponse(BaseModel):
    user_id: int
    days_back: int
    recipe_ids: List[int]


class CompletionRatesResponse(BaseModel):
    """Completed / planned per recipe; recipes never served are absent."""

    user_id: int
    completion_rates: Dict[int, float]
