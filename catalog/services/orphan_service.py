"""Family orphan detection.

A family's games form a directed graph through their relations: a relation
``{source, target, type}`` reads "source is a *type* of target", so *target*
is the parent and *source* the child.  Starting from the family's base game,
every game reachable along parent -> child edges is connected; the rest are
*orphans* and need an admin to link them.

The module-level functions are pure and hold no state between calls;
:class:`OrphanService` feeds them snapshots loaded from the repositories.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Dict, List, Optional, Set

from ..errors import FamilyNotFoundError
from ..repositories import FamilyRepository, GameRepository, RelationRepository

logger = logging.getLogger('famtree.orphans')


def root_sort_key(game: Dict[str, Any]):
    """Ordering used to guess a family's base game.

    Oldest first (games without ``year_published`` last), then the shortest
    name, since a base title is usually a prefix of its expansions' titles.
    """
    year = game.get('year_published')
    return (year is None, year if year is not None else 0, len(game.get('name') or ''))


def select_root_game(games: List[Dict[str, Any]],
                     base_game_id: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the game traversal starts from, or ``None`` for an empty family.

    An explicit *base_game_id* wins when it names one of *games*; otherwise
    the first game by :func:`root_sort_key` is chosen.
    """
    if not games:
        return None
    if base_game_id:
        games_by_id = {g.get('id'): g for g in games}
        if base_game_id in games_by_id:
            return games_by_id[base_game_id]
    return min(games, key=root_sort_key)


def build_children_map(games_by_id: Dict[str, Dict[str, Any]],
                       relations: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    """Build the parent -> children adjacency map for one family.

    Relations with an endpoint outside *games_by_id* are skipped.  Child
    lists keep relation order and may contain duplicates.
    """
    children: Dict[str, List[str]] = {}
    for rel in relations:
        source_id = rel.get('source_game_id')
        target_id = rel.get('target_game_id')
        if source_id not in games_by_id or target_id not in games_by_id:
            continue
        children.setdefault(target_id, []).append(source_id)
    return children


def collect_reachable(children: Dict[str, List[str]], root_id: str) -> Set[str]:
    """Breadth-first walk from *root_id*; returns every reachable game id."""
    visited: Set[str] = set()
    queue = deque([root_id])
    while queue:
        game_id = queue.popleft()
        if game_id in visited:
            continue
        visited.add(game_id)
        for child_id in children.get(game_id, []):
            if child_id not in visited:
                queue.append(child_id)
    return visited


def calculate_orphan_games(games: List[Dict[str, Any]],
                           relations: List[Dict[str, Any]],
                           base_game_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Return the games of a family not reachable from its base game.

    Args:
        games:        The family's games (``id``, ``name``, ``year_published``).
        relations:    Relation records; those leaving the family are ignored.
        base_game_id: Explicit base game, or ``None`` to infer one.

    Returns:
        Orphaned games in the order they appear in *games*.
    """
    root = select_root_game(games, base_game_id)
    if root is None:
        return []
    # Later duplicates overwrite earlier ones.
    games_by_id = {g.get('id'): g for g in games}
    children = build_children_map(games_by_id, relations)
    reachable = collect_reachable(children, root.get('id'))
    return [g for g in games if g.get('id') not in reachable]


def calculate_orphan_count(games: List[Dict[str, Any]],
                           relations: List[Dict[str, Any]],
                           base_game_id: Optional[str] = None) -> int:
    """Number of orphans; 0 without traversal for families of 0 or 1 games."""
    if len(games) <= 1:
        return 0
    return len(calculate_orphan_games(games, relations, base_game_id))


class OrphanService:
    """Runs orphan detection against the stored family snapshots."""

    def __init__(self, families: FamilyRepository, games: GameRepository,
                 relations: RelationRepository) -> None:
        self._families = families
        self._games = games
        self._relations = relations

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def snapshot(self, family_id: str) -> Dict[str, Any]:
        """Return ``{'family', 'games', 'relations'}`` for *family_id*.

        Raises:
            FamilyNotFoundError: No family has that id.
        """
        family = self._families.find(family_id)
        if family is None:
            raise FamilyNotFoundError(family_id)
        return {
            'family': family,
            'games': self._games.in_family(family_id),
            'relations': self._relations.all(),
        }

    def orphans(self, family_id: str) -> List[Dict[str, Any]]:
        snap = self.snapshot(family_id)
        result = calculate_orphan_games(snap['games'], snap['relations'],
                                        snap['family'].get('base_game_id'))
        logger.debug("Family %s: %d of %d games orphaned", family_id,
                     len(result), len(snap['games']))
        return result

    def orphan_count(self, family_id: str) -> int:
        snap = self.snapshot(family_id)
        return calculate_orphan_count(snap['games'], snap['relations'],
                                      snap['family'].get('base_game_id'))

    def all_orphans(self) -> Dict[str, List[Dict[str, Any]]]:
        """Return ``{family_id: [orphan, ...]}`` for families that have orphans."""
        result: Dict[str, List[Dict[str, Any]]] = {}
        relations = self._relations.all()
        for family in self._families.all():
            games = self._games.in_family(family['id'])
            if len(games) <= 1:
                continue
            found = calculate_orphan_games(games, relations, family.get('base_game_id'))
            if found:
                result[family['id']] = found
        return result
