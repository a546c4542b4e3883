"""Business logic for directional game relations."""
import logging
import re
from typing import Any, Dict, List, Optional

from ..errors import ConflictError, NotFoundError, ValidationError
from ..repositories import GameRepository, RelationRepository

logger = logging.getLogger('famtree.relations')

RELATION_TYPES = (
    'expansion_of',
    'base_game_of',
    'sequel_to',
    'prequel_to',
    'reimplementation_of',
    'spin_off_of',
    'standalone_in_series',
)

RELATION_TYPE_LABELS = {
    'expansion_of': 'Expansion of',
    'base_game_of': 'Base game for',
    'sequel_to': 'Sequel to',
    'prequel_to': 'Prequel to',
    'reimplementation_of': 'Reimplementation of',
    'spin_off_of': 'Spin-off of',
    'standalone_in_series': 'Standalone in series',
}

# Heading used when listing the games that relate *to* a game.
RELATION_TYPE_GROUP_LABELS = {
    'expansion_of': 'Expansions',
    'base_game_of': 'Base Game',
    'sequel_to': 'Sequels',
    'prequel_to': 'Prequels',
    'reimplementation_of': 'Reimplementations',
    'spin_off_of': 'Spin-offs',
    'standalone_in_series': 'Related Games',
}

INVERSE_RELATIONS = {
    'expansion_of': 'base_game_of',
    'base_game_of': 'expansion_of',
    'sequel_to': 'prequel_to',
    'prequel_to': 'sequel_to',
    'reimplementation_of': 'reimplementation_of',
    'spin_off_of': 'spin_off_of',
    'standalone_in_series': 'standalone_in_series',
}

ASSIGNABLE_RELATION_TYPES = (
    'expansion_of',
    'sequel_to',
    'reimplementation_of',
    'spin_off_of',
    'standalone_in_series',
)

SYNC_KINDS = ('all', 'expansions', 'implementations')


def normalize_name(name: str) -> str:
    """Normalise a game title for fuzzy matching.

    ``"Gloomhaven: Jaws of the Lion"`` -> ``"gloomhaven jaws of the lion"``
    """
    text = (name or '').lower()
    text = re.sub(r'[:\-–—]', ' ', text)
    text = re.sub(r'\s+', ' ', text)
    text = re.sub(r'[^a-z0-9 ]', '', text)
    return text.strip()


def find_best_match(name: str, games: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Return the game in *games* whose title best matches *name*.

    An exact normalised match wins; otherwise the first game where one title
    contains the other and the shorter covers more than half of the longer.
    """
    wanted = normalize_name(name)
    if not wanted:
        return None
    for game in games:
        if normalize_name(game.get('name', '')) == wanted:
            return game
    for game in games:
        candidate = normalize_name(game.get('name', ''))
        if not candidate:
            continue
        if candidate in wanted or wanted in candidate:
            overlap = min(len(candidate), len(wanted)) / max(len(candidate), len(wanted))
            if overlap > 0.5:
                return game
    return None


def _bgg_ref(link: Optional[Dict[str, Any]]):
    if not link:
        return None
    return link.get('bgg_id') or link.get('id')


class RelationService:
    """Manages relations between games, delegating persistence to
    :class:`~catalog.repositories.relation_repository.RelationRepository`.

    Rules
    -----
    * Relation types must come from :data:`RELATION_TYPES`.
    * A game cannot relate to itself.
    * The same ``(source, target, type)`` triple is stored only once.
    """

    def __init__(self, relations: RelationRepository, games: GameRepository) -> None:
        self._repo = relations
        self._games = games

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def for_game(self, game_id: str) -> List[Dict[str, Any]]:
        """Outgoing relations of *game_id*, each with its ``target_game``."""
        result = []
        for rel in self._repo.from_source(game_id):
            target = self._games.find(rel['target_game_id'])
            if target is not None:
                result.append({**rel, 'target_game': target})
        return result

    def inverse_for_game(self, game_id: str) -> List[Dict[str, Any]]:
        """Incoming relations of *game_id*, viewed from *game_id*'s side.

        If B is ``expansion_of`` A, A sees B under ``base_game_of``.
        """
        result = []
        for rel in self._repo.to_target(game_id):
            source = self._games.find(rel['source_game_id'])
            if source is None:
                continue
            result.append({
                **rel,
                'source_game': source,
                'inverse_type': INVERSE_RELATIONS.get(rel['relation_type'],
                                                      rel['relation_type']),
            })
        return result

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _validate(self, source_id: str, target_id: str, relation_type: str,
                  replacing: Optional[str] = None) -> None:
        """Check a prospective relation; *replacing* names a relation the
        new one will supersede, so it does not count as a conflict."""
        if not source_id or not target_id or not relation_type:
            raise ValidationError('Missing required fields: sourceGameId, targetGameId, relationType')
        if relation_type not in RELATION_TYPES:
            raise ValidationError(f'Unknown relation type: {relation_type}')
        if source_id == target_id:
            raise ValidationError('A game cannot be related to itself')
        if self._games.find(source_id) is None:
            raise NotFoundError(f'Game not found: {source_id}')
        if self._games.find(target_id) is None:
            raise NotFoundError(f'Game not found: {target_id}')
        existing = self._repo.find_triple(source_id, target_id, relation_type)
        if existing and existing.get('id') != replacing:
            raise ConflictError('This relation already exists')

    def create(self, source_id: str, target_id: str, relation_type: str) -> Dict[str, Any]:
        """Create a relation "*source_id* is *relation_type* of *target_id*".

        Raises:
            ValidationError: Missing ids, unknown type or a self-relation.
            NotFoundError:   Either game does not exist.
            ConflictError:   The relation already exists.
        """
        self._validate(source_id, target_id, relation_type)
        rel = self._repo.insert(source_id, target_id, relation_type)
        logger.info("Created relation %s: %s %s %s", rel['id'], source_id,
                    relation_type, target_id)
        return rel

    def delete(self, relation_id: str) -> None:
        if not self._repo.delete(relation_id):
            raise NotFoundError(f'Relation not found: {relation_id}')
        logger.info("Deleted relation %s", relation_id)

    def update(self, relation_id: str, source_id: str, target_id: str,
               relation_type: str) -> Dict[str, Any]:
        """Replace a relation: the old record is removed, a new one created.

        The new relation is validated first; on any error the stored
        relation is left untouched.
        """
        if self._repo.find(relation_id) is None:
            raise NotFoundError(f'Relation not found: {relation_id}')
        self._validate(source_id, target_id, relation_type, replacing=relation_id)
        self.delete(relation_id)
        return self.create(source_id, target_id, relation_type)

    # ------------------------------------------------------------------
    # BoardGameGeek sync
    # ------------------------------------------------------------------

    def _create_from_bgg(self, source_id: str, target_bgg_id, relation_type: str) -> bool:
        target = self._games.find_by_bgg_id(target_bgg_id)
        if target is None or target['id'] == source_id:
            return False
        if self._repo.find_triple(source_id, target['id'], relation_type):
            return False
        self._repo.insert(source_id, target['id'], relation_type)
        return True

    def sync_from_bgg(self, game_id: str, kind: str = 'all') -> Dict[str, Any]:
        """Create missing relations for *game_id* from its ``bgg_raw_data``.

        Args:
            game_id: Game whose raw BGG payload is read.
            kind:    ``'all'``, ``'expansions'`` or ``'implementations'``.

        Returns:
            ``{'created': n, 'message': str}``.
        """
        if not game_id:
            raise ValidationError('Missing gameId')
        if kind not in SYNC_KINDS:
            raise ValidationError(f'Unknown sync type: {kind}')
        game = self._games.find(game_id)
        if game is None:
            raise NotFoundError('Game not found')

        raw = game.get('bgg_raw_data') or {}
        if not raw:
            return {'created': 0, 'message': 'No bgg_raw_data to process'}

        created = 0
        if kind in ('all', 'expansions'):
            ref = _bgg_ref(raw.get('expandsGame'))
            if ref and self._create_from_bgg(game_id, ref, 'expansion_of'):
                created += 1
            for link in raw.get('expansions') or []:
                ref = _bgg_ref(link)
                if not ref:
                    continue
                if link.get('direction') == 'expands' or link.get('inbound') is False:
                    if self._create_from_bgg(game_id, ref, 'expansion_of'):
                        created += 1

        if kind in ('all', 'implementations'):
            ref = _bgg_ref(raw.get('implementsGame'))
            if ref and self._create_from_bgg(game_id, ref, 'reimplementation_of'):
                created += 1
            for link in raw.get('implementations') or []:
                ref = _bgg_ref(link)
                if not ref:
                    continue
                if link.get('direction') == 'reimplements' or link.get('inbound') is False:
                    if self._create_from_bgg(game_id, ref, 'reimplementation_of'):
                        created += 1

        if created:
            logger.info("Synced %d relation(s) for %s from BGG data", created, game_id)
        message = f'Created {created} relation(s)' if created else 'No new relations to create'
        return {'created': created, 'message': message}

    # ------------------------------------------------------------------
    # Link suggestions
    # ------------------------------------------------------------------

    def suggest_links(self, family_games: List[Dict[str, Any]],
                      extracted: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Match extracted ``{sourceName, targetName, relationType, ...}``
        entries against *family_games*.

        Entries whose names do not resolve, that point at themselves, or that
        use an unknown relation type are dropped.  Each suggestion records
        whether the relation is already stored.
        """
        suggestions = []
        for item in extracted or []:
            relation_type = item.get('relationType')
            if relation_type not in RELATION_TYPES:
                continue
            source = find_best_match(item.get('sourceName', ''), family_games)
            target = find_best_match(item.get('targetName', ''), family_games)
            if source is None or target is None or source['id'] == target['id']:
                continue
            suggestions.append({
                'source_game': source,
                'target_game': target,
                'relation_type': relation_type,
                'confidence': item.get('confidence', 'low'),
                'reason': item.get('reason', ''),
                'already_exists': self._repo.find_triple(
                    source['id'], target['id'], relation_type) is not None,
            })
        return suggestions
