"""Per-family statistics for the admin families overview."""
import logging
from typing import Any, Dict, List, Optional

from ..errors import ValidationError
from ..repositories import FamilyRepository, GameRepository, RelationRepository
from .orphan_service import calculate_orphan_count, select_root_game
from .relation_service import RELATION_TYPES

logger = logging.getLogger('famtree.stats')

# base_game_of is only ever derived for display, never counted.
COUNTED_RELATION_TYPES = tuple(t for t in RELATION_TYPES if t != 'base_game_of')

NEEDS_REVIEW = 'needs_review'


def _empty_counts() -> Dict[str, int]:
    return {t: 0 for t in COUNTED_RELATION_TYPES}


def game_thumbnail(game: Optional[Dict[str, Any]]) -> Optional[str]:
    """Thumbnail URL for *game*, falling back to the raw BGG payload."""
    if not game:
        return None
    raw = game.get('bgg_raw_data') or {}
    return game.get('thumbnail_url') or raw.get('thumbnail') or None


class FamilyStatsService:
    """Summarises every family: size, relation mix, base game and orphans."""

    def __init__(self, families: FamilyRepository, games: GameRepository,
                 relations: RelationRepository) -> None:
        self._families = families
        self._games = games
        self._relations = relations

    def family_stats(self, family: Dict[str, Any],
                     relations: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """Build the stats dict for a single *family* record."""
        if relations is None:
            relations = self._relations.all()
        games = self._games.in_family(family['id'])
        member_ids = {g['id'] for g in games}

        counts = _empty_counts()
        for rel in relations:
            if rel.get('source_game_id') in member_ids and rel.get('relation_type') in counts:
                counts[rel['relation_type']] += 1

        root = select_root_game(games, family.get('base_game_id'))
        return {
            'id': family['id'],
            'name': family.get('name'),
            'slug': family.get('slug'),
            'description': family.get('description'),
            'game_count': len(games),
            'has_unimported_content': any(g.get('has_unimported_relations') for g in games),
            'relation_counts': counts,
            'base_game_id': root['id'] if root else None,
            'base_game_thumbnail': game_thumbnail(root),
            'orphan_count': calculate_orphan_count(games, relations,
                                                   family.get('base_game_id')),
        }

    def list_families(self, search: Optional[str] = None,
                      relation_filter: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return stats for all families, sorted by name.

        Args:
            search:          Case-insensitive substring matched against names.
            relation_filter: ``'all'``/``None``, ``'needs_review'`` (families
                             with orphans) or a relation type (families with
                             at least one relation of that type).

        Raises:
            ValidationError: *relation_filter* is not recognised.
        """
        if relation_filter in (None, '', 'all'):
            relation_filter = None
        elif relation_filter != NEEDS_REVIEW and relation_filter not in COUNTED_RELATION_TYPES:
            raise ValidationError(f'Unknown relation filter: {relation_filter}')

        families = self._families.all()
        if search:
            needle = search.lower()
            families = [f for f in families if needle in (f.get('name') or '').lower()]

        relations = self._relations.all()
        stats = [self.family_stats(f, relations) for f in families]

        if relation_filter == NEEDS_REVIEW:
            stats = [s for s in stats if s['orphan_count'] > 0]
        elif relation_filter:
            stats = [s for s in stats if s['relation_counts'][relation_filter] > 0]
        logger.debug("Listed %d families (search=%r, filter=%r)", len(stats),
                     search, relation_filter)
        return stats

    @staticmethod
    def totals(stats: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Aggregate relation counts and the number of families needing review."""
        counts = _empty_counts()
        for s in stats:
            for rel_type, n in s['relation_counts'].items():
                counts[rel_type] += n
        return {
            'families': len(stats),
            NEEDS_REVIEW: sum(1 for s in stats if s['orphan_count'] > 0),
            'relation_counts': counts,
        }
