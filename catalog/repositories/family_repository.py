"""Repository for game families."""
from typing import Dict, List, Optional
from .base import BaseRepository


class FamilyRepository(BaseRepository):
    """Persists family records to a JSON file.

    Schema::

        [
          {
            "id": "<family_id>",
            "name": "Gloomhaven",
            "slug": "gloomhaven",
            "description": null,
            "hero_image_url": null,
            "base_game_id": "<game_id or null>",
            "created_at": "2024-01-01T00:00:00+00:00",
            "updated_at": "2024-01-01T00:00:00+00:00"
          },
          ...
        ]
    """

    def __init__(self, file_path: str = 'families.json') -> None:
        super().__init__(file_path)
        self.data: List[Dict] = self._load([])

    def all(self) -> List[Dict]:
        """Return every family sorted by name."""
        return sorted(self.data, key=lambda f: (f.get('name') or '').lower())

    def find(self, family_id: str) -> Optional[Dict]:
        for fam in self.data:
            if fam.get('id') == family_id:
                return fam
        return None

    def find_by_slug(self, slug: str) -> Optional[Dict]:
        for fam in self.data:
            if fam.get('slug') == slug:
                return fam
        return None

    def insert(self, family: Dict) -> Dict:
        self.data.append(family)
        self.save()
        return family

    def delete(self, family_id: str) -> bool:
        for i, fam in enumerate(self.data):
            if fam.get('id') == family_id:
                del self.data[i]
                self.save()
                return True
        return False
