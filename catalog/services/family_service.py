"""Business logic for creating, editing and removing game families."""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..errors import ConflictError, FamilyNotFoundError, ValidationError
from ..repositories import FamilyRepository, GameRepository
from .orphan_service import root_sort_key

logger = logging.getLogger('famtree.families')

EDITABLE_FIELDS = ('name', 'slug', 'description', 'hero_image_url', 'base_game_id')


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FamilyService:
    """Manages family records, delegating persistence to
    :class:`~catalog.repositories.family_repository.FamilyRepository`.

    Rules
    -----
    * ``name`` and ``slug`` are required; slugs are unique.
    * Deleting a family detaches its games instead of deleting them.
    """

    def __init__(self, families: FamilyRepository, games: GameRepository) -> None:
        self._repo = families
        self._games = games

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, family_id: str) -> Dict[str, Any]:
        family = self._repo.find(family_id)
        if family is None:
            raise FamilyNotFoundError(family_id)
        return family

    def get_by_slug(self, slug: str) -> Dict[str, Any]:
        family = self._repo.find_by_slug(slug)
        if family is None:
            raise FamilyNotFoundError(slug)
        return family

    def games_in_family(self, family_id: str) -> List[Dict[str, Any]]:
        """Games of *family_id*, oldest first (undated games last)."""
        self.get(family_id)
        games = self._games.in_family(family_id)
        return sorted(games, key=lambda g: root_sort_key(g)[:2])

    def with_games(self, family_id: str) -> Dict[str, Any]:
        games = self.games_in_family(family_id)
        return {**self.get(family_id), 'games': games, 'game_count': len(games)}

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, name: str, slug: str, description: Optional[str] = None,
               hero_image_url: Optional[str] = None) -> Dict[str, Any]:
        """Create a family.

        Raises:
            ValidationError: *name* or *slug* missing or not a string.
            ConflictError:   *slug* already in use.
        """
        for value in (name, slug, description, hero_image_url):
            if value is not None and not isinstance(value, str):
                raise ValidationError('name, slug, description and hero_image_url must be strings')
        name = (name or '').strip()
        slug = (slug or '').strip()
        if not name or not slug:
            raise ValidationError('Missing required fields: name, slug')
        if self._repo.find_by_slug(slug):
            raise ConflictError('A family with this slug already exists')
        now = _now()
        family = self._repo.insert({
            'id': uuid.uuid4().hex,
            'name': name,
            'slug': slug,
            'description': description or None,
            'hero_image_url': hero_image_url or None,
            'base_game_id': None,
            'created_at': now,
            'updated_at': now,
        })
        logger.info("Created family %s (%s)", family['slug'], family['id'])
        return family

    def update(self, family_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply the editable fields in *data* to *family_id*."""
        if not data:
            raise ValidationError('Missing required fields: familyId, data')
        if not isinstance(data, dict):
            raise ValidationError('data must be an object')
        family = self.get(family_id)
        changes = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
        for key in EDITABLE_FIELDS:
            if changes.get(key) is not None and not isinstance(changes[key], str):
                raise ValidationError(f'{key} must be a string')
        if 'name' in changes and not (changes['name'] or '').strip():
            raise ValidationError('name cannot be empty')
        if 'slug' in changes:
            slug = (changes['slug'] or '').strip()
            if not slug:
                raise ValidationError('slug cannot be empty')
            existing = self._repo.find_by_slug(slug)
            if existing and existing['id'] != family_id:
                raise ConflictError('A family with this slug already exists')
            changes['slug'] = slug
        family.update(changes)
        family['updated_at'] = _now()
        self._repo.save()
        return family

    def delete(self, family_id: str) -> None:
        """Detach the family's games, then remove the family."""
        self.get(family_id)
        detached = self._games.clear_family(family_id)
        self._repo.delete(family_id)
        logger.info("Deleted family %s (%d game(s) detached)", family_id, detached)
