"""Repository for the game snapshot ([{id, name, year_published, ...}, ...])."""
from typing import Dict, List, Optional
from .base import BaseRepository


class GameRepository(BaseRepository):
    """Persists game records to a JSON file.

    Schema::

        [
          {
            "id": "<game_id>",
            "name": "Gloomhaven",
            "year_published": 2017,
            "family_id": "<family_id or null>",
            "bgg_id": 174430,
            "thumbnail_url": "https://...",
            "wikipedia_url": "https://en.wikipedia.org/wiki/Gloomhaven",
            "has_unimported_relations": false,
            "bgg_raw_data": {...}
          },
          ...
        ]
    """

    def __init__(self, file_path: str = 'games.json') -> None:
        super().__init__(file_path)
        self.data: List[Dict] = self._load([])

    def all(self) -> List[Dict]:
        return list(self.data)

    def find(self, game_id: str) -> Optional[Dict]:
        """Return the game with *game_id*, or ``None``."""
        for game in self.data:
            if game.get('id') == game_id:
                return game
        return None

    def find_by_bgg_id(self, bgg_id) -> Optional[Dict]:
        """Return the first game whose ``bgg_id`` equals *bgg_id*."""
        if bgg_id is None:
            return None
        for game in self.data:
            if game.get('bgg_id') is not None and str(game['bgg_id']) == str(bgg_id):
                return game
        return None

    def in_family(self, family_id: str) -> List[Dict]:
        """Return games belonging to *family_id* in snapshot order."""
        return [g for g in self.data if g.get('family_id') == family_id]

    def clear_family(self, family_id: str) -> int:
        """Detach every game from *family_id* and persist; returns the count."""
        changed = 0
        for game in self.data:
            if game.get('family_id') == family_id:
                game['family_id'] = None
                changed += 1
        if changed:
            self.save()
        return changed
