"""Allergen lookup endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database.deps import get_db_read
from database import models
from core.logger import get_logger
from schemas import ExclusionSetResponse
from services.meal_plan_service import MealPlanService

logger = get_logger("api.allergens")
router = APIRouter(prefix="/api", tags=["allergens"])


@router.get("/users/{user_id}/exclusion-set", response_model=ExclusionSetResponse)
def get_exclusion_set(user_id: int, db: Session = Depends(get_db_read)):
    """Return the user's active allergies expanded over cross-reactivity groups.

    Raises:
        NotFoundError: If the user does not exist.
    """
    allergen_ids = sorted(MealPlanService(db).exclusion_set(user_id))
    names = {}
    if allergen_ids:
        rows = db.query(models.Allergen).filter(models.Allergen.id.in_(allergen_ids)).all()
        names = {a.id: a.name for a in rows}
    logger.info("Exclusion set for user %s: %s allergens", user_id, len(allergen_ids))
    return ExclusionSetResponse(
        user_id=user_id,
        allergen_ids=allergen_ids,
        allergens=[names[i] for i in allergen_ids if i in names],
    )
