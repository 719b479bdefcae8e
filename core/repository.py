"""Repository layer for database operations.

Provides the generic `BaseRepository` plus the SQLAlchemy implementations of
the engine's collaborators: `SqlCatalogReader`, `SqlHistoryReader` and
`SqlPlanWriter`. Readers convert ORM rows into the immutable records in
`services.domain`, so nothing above this layer touches a session.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from typing import TypeVar, Generic, Type, Optional, List, Any, Dict, Iterable

from core.exceptions import DatabaseError, NotFoundError, ValidationError
from core.logger import get_logger
from database import models
from database.models import Base
from services.domain import (
    MAY_CONTAIN,
    AllergenGroup,
    HistoryEntry,
    HistoryWindow,
    IngredientRecord,
    IngredientTag,
    PlanDiff,
    RecipeFilter,
    RecipeLine,
    RecipeRecord,
    UserAllergyRecord,
    normalize_allergen_type,
    normalize_meal_type,
    normalize_name,
)

logger = get_logger("core.repository")

T = TypeVar('T', bound=Base)


class BaseRepository(Generic[T]):
    """Generic repository for common database operations.

    Attributes:
        model: SQLAlchemy model class to operate on.
        session: Database session for executing queries.
    """

    def __init__(self, model: Type[T], session: Session):
        self.model = model
        self.session = session

    def add(self, obj: T) -> T:
        """Add and flush a new object without committing.

        The row gets its primary key but stays in the open transaction, so
        a later rollback removes it together with anything written after it.
        """
        self.session.add(obj)
        self.session.flush()
        return obj

    def get_by_id(self, id: Any) -> Optional[T]:
        return self.session.get(self.model, id)

    def get_or_404(self, id: Any) -> T:
        """Retrieve an object by primary key.

        Raises:
            NotFoundError: If no row has that key.
        """
        obj = self.get_by_id(id)
        if obj is None:
            raise NotFoundError(self.model.__name__, id)
        return obj


def to_recipe_record(recipe: models.Recipe) -> RecipeRecord:
    """Convert a `Recipe` row (with ingredients and allergens loaded)."""
    lines = tuple(
        RecipeLine(
            ingredient_name=line.ingredient_name,
            quantity=line.quantity,
            unit=line.unit,
            is_optional=bool(line.is_optional),
        )
        for line in recipe.ingredients
    )
    allergen_ids = frozenset(a.allergen_id for a in recipe.recipe_allergens)
    contains_ids = frozenset(
        a.allergen_id for a in recipe.recipe_allergens
        if normalize_allergen_type(a.allergen_type) != MAY_CONTAIN
    )
    return RecipeRecord(
        id=recipe.id,
        name=recipe.name,
        meal_type=normalize_meal_type(recipe.meal_type) or normalize_name(recipe.meal_type),
        cuisine_type=recipe.cuisine_type,
        prep_time_minutes=recipe.prep_time_minutes,
        cook_time_minutes=recipe.cook_time_minutes,
        servings=recipe.servings,
        difficulty_level=recipe.difficulty_level,
        calories=recipe.calories,
        ingredients=lines,
        allergen_ids=allergen_ids,
        may_contain_ids=allergen_ids - contains_ids,
    )


def to_ingredient_record(ingredient: models.Ingredient) -> IngredientRecord:
    return IngredientRecord(
        id=ingredient.id,
        name=ingredient.name,
        category=ingredient.category,
        tags=tuple(
            IngredientTag(allergen_id=t.allergen_id, allergen_type=normalize_allergen_type(t.allergen_type))
            for t in ingredient.allergen_tags
        ),
    )


class SqlCatalogReader:
    """Catalog reads for one generation run, backed by a read session."""

    def __init__(self, session: Session):
        self.session = session

    def get_recipes(self, recipe_filter: RecipeFilter) -> List[RecipeRecord]:
        """Bulk-load recipes with their ingredient lines and allergen rows.

        Meal types are matched after alias normalization, so rows stored as
        'Supper' or '3' still land in the dinner pool.
        """
        query = self.session.query(models.Recipe).options(
            selectinload(models.Recipe.ingredients),
            selectinload(models.Recipe.recipe_allergens),
        ).order_by(models.Recipe.id)
        records = []
        for recipe in query.all():
            record = to_recipe_record(recipe)
            if recipe_filter.meal_types and record.meal_type not in recipe_filter.meal_types:
                continue
            if recipe_filter.cuisine_types and normalize_name(record.cuisine_type) not in recipe_filter.cuisine_types:
                continue
            records.append(record)
        logger.debug("Loaded %s recipes for filter %s", len(records), recipe_filter)
        return records

    def get_ingredient_allergens(self, ingredient_names: Iterable[str]) -> Dict[str, IngredientRecord]:
        wanted = {normalize_name(n) for n in ingredient_names if normalize_name(n)}
        if not wanted:
            return {}
        rows = self.session.query(models.Ingredient).options(selectinload(models.Ingredient.allergen_tags)).all()
        return {
            normalize_name(row.name): to_ingredient_record(row)
            for row in rows
            if normalize_name(row.name) in wanted
        }

    def get_allergen_groups(self) -> List[AllergenGroup]:
        groups = self.session.query(models.CrossReactivityGroup).options(
            selectinload(models.CrossReactivityGroup.members)
        ).order_by(models.CrossReactivityGroup.id).all()
        return [
            AllergenGroup(id=g.id, name=g.name, allergen_ids=frozenset(m.allergen_id for m in g.members))
            for g in groups
        ]


def _history_entry(entry: models.MealPlanEntry, cuisine_type: Optional[str]) -> HistoryEntry:
    return HistoryEntry(
        meal_date=entry.meal_date,
        meal_type=normalize_meal_type(entry.meal_type) or normalize_name(entry.meal_type),
        recipe_id=entry.recipe_id,
        cuisine_type=cuisine_type,
        is_completed=bool(entry.is_completed),
        entry_id=entry.id,
        meal_plan_id=entry.meal_plan_id,
        servings=entry.servings,
    )


class SqlHistoryReader:
    """User allergy and meal plan history reads."""

    def __init__(self, session: Session):
        self.session = session

    def get_user_allergies(self, user_id: int) -> List[UserAllergyRecord]:
        rows = self.session.query(models.UserAllergy).filter(models.UserAllergy.user_id == user_id).all()
        return [
            UserAllergyRecord(user_id=r.user_id, allergen_id=r.allergen_id, severity=r.severity, outgrown=bool(r.outgrown))
            for r in rows
        ]

    def _entries_query(self):
        return self.session.query(models.MealPlanEntry, models.Recipe.cuisine_type).outerjoin(
            models.Recipe, models.MealPlanEntry.recipe_id == models.Recipe.id
        )

    def get_user_meal_history(self, user_id: int, window: HistoryWindow) -> List[HistoryEntry]:
        """Entries from all of the user's plans dated inside `window`."""
        query = self._entries_query().join(
            models.MealPlan, models.MealPlanEntry.meal_plan_id == models.MealPlan.id
        ).filter(
            models.MealPlan.user_id == user_id,
            models.MealPlanEntry.meal_date >= window.start,
        )
        if window.end is not None:
            query = query.filter(models.MealPlanEntry.meal_date <= window.end)
        rows = query.order_by(models.MealPlanEntry.meal_date, models.MealPlanEntry.id).all()
        return [_history_entry(entry, cuisine) for entry, cuisine in rows]

    def get_plan_entries(self, meal_plan_id: int) -> List[HistoryEntry]:
        rows = self._entries_query().filter(
            models.MealPlanEntry.meal_plan_id == meal_plan_id
        ).order_by(models.MealPlanEntry.meal_date, models.MealPlanEntry.id).all()
        return [_history_entry(entry, cuisine) for entry, cuisine in rows]


class SqlPlanWriter:
    """Applies a `PlanDiff` to a meal plan in one transaction."""

    def __init__(self, session: Session):
        self.session = session

    def apply(self, meal_plan_id: int, diff: PlanDiff) -> List[int]:
        """Persist `diff` and return the new entry ids.

        Replaced entries are deleted, new entries inserted and the plan's
        shopping list replaced, all under a single commit. Nothing is written
        if any entry falls outside the plan's date range.

        Raises:
            NotFoundError: Unknown meal plan.
            ValidationError: An entry date is outside the plan range.
            DatabaseError: The commit failed; the transaction is rolled back.
        """
        plan = self.session.get(models.MealPlan, meal_plan_id)
        if plan is None:
            raise NotFoundError("MealPlan", meal_plan_id)
        for proposed in diff.additions:
            if not plan.start_date <= proposed.meal_date <= plan.end_date:
                raise ValidationError(
                    f"Entry date {proposed.meal_date} is outside meal plan {meal_plan_id}",
                    field="meal_date",
                )

        try:
            if diff.replaced_entry_ids:
                self.session.query(models.MealPlanEntry).filter(
                    models.MealPlanEntry.meal_plan_id == meal_plan_id,
                    models.MealPlanEntry.id.in_(diff.replaced_entry_ids),
                ).delete(synchronize_session=False)

            new_entries = [
                models.MealPlanEntry(
                    meal_plan_id=meal_plan_id,
                    meal_date=p.meal_date,
                    meal_type=p.meal_type,
                    recipe_id=p.recipe_id,
                    servings=p.servings,
                    notes=p.notes,
                    is_completed=False,
                )
                for p in diff.additions
            ]
            self.session.add_all(new_entries)

            self.session.query(models.MealPlanShoppingItem).filter(
                models.MealPlanShoppingItem.meal_plan_id == meal_plan_id
            ).delete(synchronize_session=False)
            self.session.add_all(
                models.MealPlanShoppingItem(
                    meal_plan_id=meal_plan_id,
                    ingredient_name=item.ingredient_name,
                    quantity=item.quantity,
                    unit=item.unit,
                    category=item.category,
                )
                for item in diff.shopping_items
            )
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Failed to apply plan diff to meal plan %s: %s", meal_plan_id, exc, exc_info=True)
            raise DatabaseError("Failed to save generated meal plan", operation="apply_plan_diff") from exc

        self.session.expire_all()
        ids = [e.id for e in new_entries]
        logger.info(
            "Meal plan %s: %s entries added, %s replaced, %s shopping items",
            meal_plan_id, len(ids), len(diff.replaced_entry_ids), len(diff.shopping_items),
        )
        return ids


def shopping_items_by_plan(session: Session, meal_plan_id: int) -> List[models.MealPlanShoppingItem]:
    return session.query(models.MealPlanShoppingItem).filter(
        models.MealPlanShoppingItem.meal_plan_id == meal_plan_id
    ).order_by(models.MealPlanShoppingItem.category, models.MealPlanShoppingItem.ingredient_name).all()

