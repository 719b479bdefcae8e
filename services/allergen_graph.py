"""Allergen cross-reactivity graph.

Nodes are allergen ids; an undirected edge joins every two allergens that
share a cross-reactivity group. A user's exclusion set is the closure of
their reported allergens over these edges.
"""

import threading
from collections import deque
from typing import Dict, Iterable, List, Optional, Set, FrozenSet

from core.logger import get_logger
from services.domain import AllergenGroup

logger = get_logger("services.allergen_graph")


class AllergenGraph:
    """Adjacency map of allergen id -> co-group allergen ids."""

    def __init__(self, groups: Iterable[AllergenGroup] = ()):
        self._adjacency: Dict[int, Set[int]] = {}
        self._groups_of: Dict[int, Set[int]] = {}
        self.group_count = 0
        for group in groups:
            self.add_group(group)

    def add_group(self, group: AllergenGroup) -> None:
        """Connect every pair of allergens in `group`."""
        members = set(group.allergen_ids)
        for allergen_id in members:
            self._adjacency.setdefault(allergen_id, set()).update(members - {allergen_id})
            self._groups_of.setdefault(allergen_id, set()).add(group.id)
        self.group_count += 1

    def neighbours(self, allergen_id: int) -> FrozenSet[int]:
        return frozenset(self._adjacency.get(allergen_id, ()))

    def groups_of(self, allergen_id: int) -> FrozenSet[int]:
        return frozenset(self._groups_of.get(allergen_id, ()))

    @property
    def edge_count(self) -> int:
        return sum(len(n) for n in self._adjacency.values()) // 2

    def resolve_exclusion_set(self, user_allergies: Iterable[int]) -> Set[int]:
        """Return the reported allergens plus everything cross-reactive with them.

        Multi-source breadth-first traversal seeded with all reported
        allergens at once. Allergens with no group resolve to themselves.

        Args:
            user_allergies: Directly reported allergen ids.

        Returns:
            The transitive exclusion set (a new set; empty for empty input).
        """
        seen: Set[int] = set(user_allergies)
        queue = deque(seen)
        while queue:
            current = queue.popleft()
            for neighbour in self._adjacency.get(current, ()):
                if neighbour not in seen:
                    seen.add(neighbour)
                    queue.append(neighbour)
        return seen


_graph_lock = threading.Lock()
_cached_graph: Optional[AllergenGraph] = None


def load_allergen_graph(reader, refresh: bool = False) -> AllergenGraph:
    """Return the process-wide graph, building it from `reader` on first use.

    The graph is read-only after construction and shared by all requests.
    Pass `refresh=True` after the cross-reactivity groups change.
    """
    global _cached_graph
    with _graph_lock:
        if _cached_graph is None or refresh:
            groups: List[AllergenGroup] = reader.get_allergen_groups()
            _cached_graph = AllergenGraph(groups)
            logger.info(
                "Allergen graph built: %s groups, %s edges",
                _cached_graph.group_count,
                _cached_graph.edge_count,
            )
        return _cached_graph


def reset_allergen_graph() -> None:
    """Drop the cached graph so the next load rebuilds it."""
    global _cached_graph
    with _graph_lock:
        _cached_graph = None
