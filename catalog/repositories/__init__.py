"""Repository package: exposes all concrete repositories from one import."""
from .game_repository import GameRepository
from .relation_repository import RelationRepository
from .family_repository import FamilyRepository

__all__ = [
    'GameRepository',
    'RelationRepository',
    'FamilyRepository',
]
