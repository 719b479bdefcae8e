"""User preference model derived from meal plan history.

Turns a user's past (and already planned) meal plan entries into numeric
weights for the scorer: cuisine affinity, per-recipe completion rate and the
set of recently used recipes.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from core.logger import get_logger
from services.domain import HistoryEntry, normalize_name

logger = get_logger("services.preference_model")

NEUTRAL = 0.5
DEFAULT_LOOKBACK_DAYS = 14


@dataclass(frozen=True)
class UserCuisinePreference:
    cuisine_type: str
    usage_count: int
    affinity: float
    completion_rate: float


class PreferenceModel:
    """Preference weights for the users present in a history snapshot.

    Args:
        history_by_user: History entries per user id.
        as_of: Reference day for the recently-used window (defaults to today).
    """

    def __init__(self, history_by_user: Mapping[int, Iterable[HistoryEntry]], as_of: Optional[date] = None):
        self._history: Dict[int, Tuple[HistoryEntry, ...]] = {
            user_id: tuple(entries) for user_id, entries in history_by_user.items()
        }
        self.as_of = as_of or date.today()

    @classmethod
    def for_user(cls, user_id: int, entries: Iterable[HistoryEntry], as_of: Optional[date] = None) -> "PreferenceModel":
        return cls({user_id: entries}, as_of=as_of)

    def _entries(self, user_id: int) -> Tuple[HistoryEntry, ...]:
        return self._history.get(user_id, ())

    def cuisine_affinity(self, user_id: int) -> Dict[str, float]:
        """Return cuisine -> affinity in [0, 1], keyed by lower-cased cuisine.

        The most frequent cuisine scores 1.0 and the others scale linearly
        with their frequency. Cuisines absent from the result are neutral
        (see `affinity_for`).
        """
        counts = Counter(
            normalize_name(e.cuisine_type)
            for e in self._entries(user_id)
            if e.recipe_id is not None and normalize_name(e.cuisine_type)
        )
        if not counts:
            return {}
        top = max(counts.values())
        return {cuisine: count / top for cuisine, count in counts.items()}

    def affinity_for(self, user_id: int, cuisine_type: Optional[str]) -> float:
        return self.cuisine_affinity(user_id).get(normalize_name(cuisine_type), NEUTRAL)

    def completion_rate(self, user_id: int) -> Dict[int, float]:
        """Return recipe id -> completed / planned over the user's history.

        Recipes the user was never served are absent.
        """
        planned: Counter = Counter()
        completed: Counter = Counter()
        for entry in self._entries(user_id):
            if entry.recipe_id is None:
                continue
            planned[entry.recipe_id] += 1
            if entry.is_completed:
                completed[entry.recipe_id] += 1
        return {recipe_id: completed[recipe_id] / total for recipe_id, total in planned.items()}

    def recently_used(self, user_id: int, lookback_days: int = DEFAULT_LOOKBACK_DAYS) -> Set[int]:
        """Recipe ids in entries dated on or after `as_of - lookback_days`.

        Entries already planned for later dates count as used too.
        """
        cutoff = self.as_of - timedelta(days=lookback_days)
        return {
            e.recipe_id for e in self._entries(user_id)
            if e.recipe_id is not None and e.meal_date >= cutoff
        }

    def cuisine_preferences(self, user_id: int) -> List[UserCuisinePreference]:
        """Per-cuisine usage statistics, most used first."""
        usage: Dict[str, List[HistoryEntry]] = defaultdict(list)
        for entry in self._entries(user_id):
            key = normalize_name(entry.cuisine_type)
            if entry.recipe_id is not None and key:
                usage[key].append(entry)
        affinity = self.cuisine_affinity(user_id)
        prefs = [
            UserCuisinePreference(
                cuisine_type=cuisine,
                usage_count=len(entries),
                affinity=affinity[cuisine],
                completion_rate=sum(1 for e in entries if e.is_completed) / len(entries),
            )
            for cuisine, entries in usage.items()
        ]
        prefs.sort(key=lambda p: (-p.usage_count, p.cuisine_type))
        logger.debug("Cuisine preferences for user %s: %s", user_id, prefs)
        return prefs
