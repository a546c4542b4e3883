"""Nested family tree built from flat relation records."""
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Tuple

from .orphan_service import OrphanService, select_root_game


def _compare_children(a: Dict[str, Any], b: Dict[str, Any]) -> int:
    # Expansions first, then by year when both are known.
    a_exp = a['relation_type'] == 'expansion_of'
    b_exp = b['relation_type'] == 'expansion_of'
    if a_exp and not b_exp:
        return -1
    if b_exp and not a_exp:
        return 1
    year_a = a['game'].get('year_published')
    year_b = b['game'].get('year_published')
    if year_a and year_b:
        return year_a - year_b
    return 0


def build_family_tree(games: List[Dict[str, Any]],
                      relations: List[Dict[str, Any]],
                      base_game_id: Optional[str] = None
                      ) -> Tuple[Optional[Dict[str, Any]], List[Dict[str, Any]]]:
    """Arrange a family's games into a tree rooted at its base game.

    Each node is ``{'game': <game>, 'relation_type': <str or None>,
    'children': [<node>, ...]}``; the root has ``relation_type`` ``None``.
    A game is placed at most once, under the first parent that reaches it.

    Returns:
        ``(tree, orphans)`` where *orphans* are the games left out of the
        tree, in input order.  An empty family gives ``(None, [])``.
    """
    root = select_root_game(games, base_game_id)
    if root is None:
        return None, []

    games_by_id = {g.get('id'): g for g in games}
    children_of: Dict[str, List[Dict[str, Any]]] = {}
    for rel in relations:
        source = games_by_id.get(rel.get('source_game_id'))
        target = games_by_id.get(rel.get('target_game_id'))
        if source is None or target is None:
            continue
        children_of.setdefault(target['id'], []).append({
            'game': source,
            'relation_type': rel.get('relation_type'),
        })

    visited = {root['id']}
    tree = {'game': root, 'relation_type': None, 'children': []}

    def ordered_children(game_id: str):
        return iter(sorted(children_of.get(game_id, []), key=cmp_to_key(_compare_children)))

    # Depth-first, pre-order: each child subtree is finished before its next
    # sibling is considered, so a game lands under the first parent to reach it.
    stack = [(tree, ordered_children(root['id']))]
    while stack:
        node, pending = stack[-1]
        child = next(pending, None)
        if child is None:
            stack.pop()
            continue
        child_id = child['game']['id']
        if child_id in visited:
            continue
        visited.add(child_id)
        child_node = {'game': child['game'], 'relation_type': child['relation_type'],
                      'children': []}
        node['children'].append(child_node)
        stack.append((child_node, ordered_children(child_id)))

    orphans = [g for g in games if g.get('id') not in visited]
    return tree, orphans


def tree_depth(node: Optional[Dict[str, Any]]) -> int:
    """Number of levels in *node* (0 for ``None``)."""
    if node is None:
        return 0
    depth = 0
    stack = [(node, 1)]
    while stack:
        current, level = stack.pop()
        depth = max(depth, level)
        stack.extend((child, level + 1) for child in current['children'])
    return depth


class FamilyTreeService:
    """Builds trees for stored families, reusing the orphan snapshot loader."""

    def __init__(self, orphan_service: OrphanService) -> None:
        self._orphans = orphan_service

    def tree(self, family_id: str) -> Dict[str, Any]:
        """Return ``{'family_id', 'tree', 'orphans'}`` for *family_id*."""
        snap = self._orphans.snapshot(family_id)
        tree, orphans = build_family_tree(snap['games'], snap['relations'],
                                          snap['family'].get('base_game_id'))
        return {'family_id': family_id, 'tree': tree, 'orphans': orphans}
