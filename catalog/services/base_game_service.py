"""Detects and records the base game of each family."""
import logging
from typing import Any, Dict, List, Optional

from ..errors import FamilyNotFoundError
from ..repositories import FamilyRepository, GameRepository, RelationRepository

logger = logging.getLogger('famtree.base_game')

# Games with one of these outgoing relations depend on another game.
DEPENDENT_RELATION_TYPES = ('expansion_of', 'reimplementation_of')


def detect_base_game(games: List[Dict[str, Any]],
                     relations: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Pick the oldest game that is not an expansion or reimplementation.

    Ties on year go to the lowest ``bgg_id`` (the older BGG entry).  When
    every game depends on another, all games are candidates.
    """
    if not games:
        return None
    member_ids = {g['id'] for g in games}
    dependent = {
        r['source_game_id'] for r in relations
        if r.get('source_game_id') in member_ids
        and r.get('relation_type') in DEPENDENT_RELATION_TYPES
    }
    candidates = [g for g in games if g['id'] not in dependent] or list(games)
    return min(candidates, key=lambda g: (g.get('year_published') or 9999,
                                          g.get('bgg_id') or 0))


class BaseGameService:
    """Keeps ``base_game_id`` on family records in line with their relations."""

    def __init__(self, families: FamilyRepository, games: GameRepository,
                 relations: RelationRepository) -> None:
        self._families = families
        self._games = games
        self._relations = relations

    def detect(self, family_id: str) -> Dict[str, Any]:
        """Report the detected base game for *family_id* without saving it."""
        family = self._families.find(family_id)
        if family is None:
            raise FamilyNotFoundError(family_id)
        base = detect_base_game(self._games.in_family(family_id), self._relations.all())
        current = family.get('base_game_id')
        detected = base['id'] if base else None
        return {
            'family_id': family_id,
            'current_base_game_id': current,
            'detected_base_game_id': detected,
            'detected_base_game': base,
            'changed': detected is not None and detected != current,
        }

    def apply(self, family_slug: Optional[str] = None,
              dry_run: bool = False) -> Dict[str, Any]:
        """Detect base games for all families (or one, by slug) and save them.

        Returns:
            Summary dict with ``processed``, ``updated``, ``already_correct``,
            ``no_games``, ``dry_run`` and the per-family ``results``.
        """
        if family_slug:
            family = self._families.find_by_slug(family_slug)
            if family is None:
                raise FamilyNotFoundError(family_slug)
            families = [family]
        else:
            families = self._families.all()

        summary = {'processed': len(families), 'updated': 0,
                   'already_correct': 0, 'no_games': 0,
                   'dry_run': dry_run, 'results': []}
        dirty = False
        for family in families:
            result = self.detect(family['id'])
            summary['results'].append(result)
            if result['detected_base_game_id'] is None:
                logger.info("Family %s has no games", family.get('slug'))
                summary['no_games'] += 1
                continue
            if not result['changed']:
                summary['already_correct'] += 1
                continue
            logger.info("Family %s: base game %s -> %s%s", family.get('slug'),
                        result['current_base_game_id'],
                        result['detected_base_game_id'],
                        ' (dry run)' if dry_run else '')
            if not dry_run:
                family['base_game_id'] = result['detected_base_game_id']
                dirty = True
            summary['updated'] += 1
        if dirty:
            self._families.save()
        return summary
