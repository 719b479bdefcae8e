"""Custom exception classes for the meal planner.

Every error the service reports to callers derives from `AppException`, which
carries the HTTP status code and a details dictionary rendered by the
exception handlers. `DataInconsistencyWarning` is a warning category, not an
error: it is logged and collected but never aborts a run.
"""

from typing import Optional, Any, Dict, List


class AppException(Exception):
    """Base exception class for all application exceptions.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional additional error details.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: Any):
        """Initialize not found error.

        Args:
            resource: Type of resource (e.g., 'MealPlan', 'User').
            identifier: ID or identifier that was not found.
        """
        message = f"{resource} with id '{identifier}' not found"
        super().__init__(message, status_code=404, details={"resource": resource, "id": identifier})


class ValidationError(AppException):
    """Raised when a request is rejected before any computation."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, status_code=400, details=details)


class DatabaseError(AppException):
    """Raised when database operations fail."""

    def __init__(self, message: str, operation: Optional[str] = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message, status_code=500, details=details)


class CatalogDataError(AppException):
    """Raised when a catalog row is malformed (missing ids, bad quantities).

    The assembler catches it per slot, so one bad row only costs the slot it
    was scored for.
    """

    def __init__(self, message: str, recipe_id: Optional[int] = None):
        details = {"recipe_id": recipe_id} if recipe_id is not None else {}
        super().__init__(message, status_code=500, details=details)


class NoSafeCandidatesError(AppException):
    """A slot had recipes of its meal type but none passed the safety filter.

    Recorded per slot; never aborts the run.
    """

    def __init__(self, meal_date: Any, meal_type: str, rejected: int = 0):
        message = f"No allergen-safe recipe for {meal_type} on {meal_date}"
        super().__init__(
            message,
            status_code=422,
            details={"meal_date": str(meal_date), "meal_type": meal_type, "rejected": rejected},
        )


class NoCandidatesAtAllError(AppException):
    """Every requested slot of a run is unfilled."""

    def __init__(self, unfilled_slots: List[Dict[str, Any]]):
        super().__init__(
            "No recipe could be assigned to any requested slot",
            status_code=422,
            details={"unfilled_slots": unfilled_slots},
        )


class GenerationCancelledError(AppException):
    """Raised when the caller cancels a run between slots."""

    def __init__(self, slots_done: int):
        super().__init__(
            "Meal plan generation was cancelled",
            status_code=499,
            details={"slots_done": slots_done},
        )


class DataInconsistencyWarning(UserWarning):
    """A recipe's denormalized allergen list disagrees with its ingredients."""

    def __init__(self, recipe_id: int, missing: set, extra: set = frozenset()):
        self.recipe_id = recipe_id
        self.missing = set(missing)
        self.extra = set(extra)
        super().__init__(
            f"Recipe {recipe_id} allergen list is stale: "
            f"missing={sorted(self.missing)} extra={sorted(self.extra)}"
        )
