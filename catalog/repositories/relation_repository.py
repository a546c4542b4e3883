"""Repository for directional game relations."""
import uuid
from typing import Dict, List, Optional
from .base import BaseRepository


class RelationRepository(BaseRepository):
    """Persists relation records to a JSON file.

    Schema::

        [
          {
            "id": "<relation_id>",
            "source_game_id": "<child game>",
            "target_game_id": "<parent game>",
            "relation_type": "expansion_of"
          },
          ...
        ]

    ``source`` is a ``relation_type`` *of* ``target``.
    """

    def __init__(self, file_path: str = 'relations.json') -> None:
        super().__init__(file_path)
        self.data: List[Dict] = self._load([])

    def all(self) -> List[Dict]:
        return list(self.data)

    def find(self, relation_id: str) -> Optional[Dict]:
        for rel in self.data:
            if rel.get('id') == relation_id:
                return rel
        return None

    def find_triple(self, source_id: str, target_id: str,
                    relation_type: str) -> Optional[Dict]:
        """Return the relation matching all three fields, if any."""
        for rel in self.data:
            if (rel.get('source_game_id') == source_id
                    and rel.get('target_game_id') == target_id
                    and rel.get('relation_type') == relation_type):
                return rel
        return None

    def from_source(self, game_id: str) -> List[Dict]:
        return [r for r in self.data if r.get('source_game_id') == game_id]

    def to_target(self, game_id: str) -> List[Dict]:
        return [r for r in self.data if r.get('target_game_id') == game_id]

    def insert(self, source_id: str, target_id: str, relation_type: str) -> Dict:
        """Append a new relation and persist.  Returns the stored record."""
        rel = {
            'id': uuid.uuid4().hex,
            'source_game_id': source_id,
            'target_game_id': target_id,
            'relation_type': relation_type,
        }
        self.data.append(rel)
        self.save()
        return rel

    def delete(self, relation_id: str) -> bool:
        """Remove the relation with *relation_id*; ``False`` if not found."""
        for i, rel in enumerate(self.data):
            if rel.get('id') == relation_id:
                del self.data[i]
                self.save()
                return True
        return False
