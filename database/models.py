"""SQLAlchemy ORM models for the allergen-safe meal planner.

Reference data (allergens, cross-reactivity groups, ingredients, recipes) is
shared and read-only from the generation engine's point of view. Meal plans
own their entries and shopping items and delete them with the plan. Models
stay behavior-free; all business logic lives in `services`.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

Base = declarative_base()


class Allergen(Base):
    """A single allergen, e.g. 'Shrimp' in category 'Shellfish'."""

    __tablename__ = "allergens"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    category = Column(String, nullable=True)
    scientific_name = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    is_fda_major = Column(Boolean, default=False)
    is_eu_major = Column(Boolean, default=False)

    cross_reactivities = relationship("AllergenCrossReactivity", back_populates="allergen")


class CrossReactivityGroup(Base):
    """A family of allergens that provoke responses in the same individuals."""

    __tablename__ = "cross_reactivity_groups"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    members = relationship("AllergenCrossReactivity", back_populates="group", cascade="all, delete-orphan")


class AllergenCrossReactivity(Base):
    """Join row placing an allergen in a cross-reactivity group."""

    __tablename__ = "allergen_cross_reactivities"
    id = Column(Integer, primary_key=True, index=True)
    allergen_id = Column(Integer, ForeignKey("allergens.id"), nullable=False)
    group_id = Column(Integer, ForeignKey("cross_reactivity_groups.id"), nullable=False)

    allergen = relationship("Allergen", back_populates="cross_reactivities")
    group = relationship("CrossReactivityGroup", back_populates="members")


class Ingredient(Base):
    __tablename__ = "ingredients"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    category = Column(String, nullable=True)
    description = Column(Text, nullable=True)

    allergen_tags = relationship("IngredientAllergen", back_populates="ingredient", cascade="all, delete-orphan")


class IngredientAllergen(Base):
    """Allergen tag on an ingredient; allergen_type is 'contains' or 'may_contain'."""

    __tablename__ = "ingredient_allergens"
    id = Column(Integer, primary_key=True, index=True)
    ingredient_id = Column(Integer, ForeignKey("ingredients.id"), nullable=False)
    allergen_id = Column(Integer, ForeignKey("allergens.id"), nullable=False)
    allergen_type = Column(String, nullable=False, default="contains")

    ingredient = relationship("Ingredient", back_populates="allergen_tags")


class Recipe(Base):
    """ORM model for a catalog recipe.

    `recipe_allergens` is a denormalized copy of the allergens derived from
    the ingredient list, kept for fast filtering.
    """

    __tablename__ = "recipes"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    cuisine_type = Column(String, nullable=True)
    meal_type = Column(String, nullable=False)
    prep_time_minutes = Column(Integer, nullable=True)
    cook_time_minutes = Column(Integer, nullable=True)
    servings = Column(Integer, nullable=True)
    difficulty_level = Column(String, nullable=True)
    calories = Column(Float, nullable=True)
    rating_average = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    ingredients = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        order_by="RecipeIngredient.order_in_recipe",
        cascade="all, delete-orphan",
    )
    recipe_allergens = relationship("RecipeAllergen", back_populates="recipe", cascade="all, delete-orphan")


class RecipeIngredient(Base):
    __tablename__ = "recipe_ingredients"
    id = Column(Integer, primary_key=True, index=True)
    recipe_id = Column(Integer, ForeignKey("recipes.id"), nullable=False)
    ingredient_name = Column(String, nullable=False)
    quantity = Column(Float, nullable=True)
    unit = Column(String, nullable=True)
    preparation_notes = Column(String, nullable=True)
    is_optional = Column(Boolean, default=False)
    order_in_recipe = Column(Integer, default=0)

    recipe = relationship("Recipe", back_populates="ingredients")


class RecipeAllergen(Base):
    __tablename__ = "recipe_allergens"
    id = Column(Integer, primary_key=True, index=True)
    recipe_id = Column(Integer, ForeignKey("recipes.id"), nullable=False)
    allergen_id = Column(Integer, ForeignKey("allergens.id"), nullable=False)
    allergen_type = Column(String, nullable=False, default="contains")

    recipe = relationship("Recipe", back_populates="recipe_allergens")


class User(Base):
    """Minimal user record; identity and authentication live elsewhere."""

    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class UserAllergy(Base):
    """A user's reported allergy. Outgrown allergies are not excluded."""

    __tablename__ = "user_allergies"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    allergen_id = Column(Integer, ForeignKey("allergens.id"), nullable=False)
    severity = Column(String, nullable=True)
    outgrown = Column(Boolean, default=False)


class MealPlan(Base):
    """A user's meal plan covering the inclusive range [start_date, end_date]."""

    __tablename__ = "meal_plans"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=True)
    plan_type = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    entries = relationship(
        "MealPlanEntry",
        back_populates="meal_plan",
        order_by="MealPlanEntry.meal_date",
        cascade="all, delete-orphan",
    )
    shopping_items = relationship("MealPlanShoppingItem", back_populates="meal_plan", cascade="all, delete-orphan")


class MealPlanEntry(Base):
    """One slot assignment: exactly one of recipe, product or custom name."""

    __tablename__ = "meal_plan_entries"
    id = Column(Integer, primary_key=True, index=True)
    meal_plan_id = Column(Integer, ForeignKey("meal_plans.id"), nullable=False, index=True)
    meal_date = Column(Date, nullable=False)
    meal_type = Column(String, nullable=False)
    recipe_id = Column(Integer, ForeignKey("recipes.id"), nullable=True)
    product_id = Column(Integer, nullable=True)
    custom_meal_name = Column(String, nullable=True)
    servings = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    is_completed = Column(Boolean, default=False)

    meal_plan = relationship("MealPlan", back_populates="entries")
    recipe = relationship("Recipe")


class MealPlanShoppingItem(Base):
    __tablename__ = "meal_plan_shopping_items"
    id = Column(Integer, primary_key=True, index=True)
    meal_plan_id = Column(Integer, ForeignKey("meal_plans.id"), nullable=False, index=True)
    ingredient_name = Column(String, nullable=False)
    quantity = Column(Float, nullable=True)
    unit = Column(String, nullable=True)
    category = Column(String, nullable=True)
    is_purchased = Column(Boolean, default=False)

    meal_plan = relationship("MealPlan", back_populates="shopping_items")
