"""Services package: exposes all concrete services from one import."""
from .orphan_service import (
    OrphanService,
    calculate_orphan_count,
    calculate_orphan_games,
)
from .family_tree_service import FamilyTreeService, build_family_tree
from .family_stats_service import FamilyStatsService
from .base_game_service import BaseGameService, detect_base_game
from .relation_service import RelationService
from .family_service import FamilyService

__all__ = [
    'OrphanService',
    'calculate_orphan_count',
    'calculate_orphan_games',
    'FamilyTreeService',
    'build_family_tree',
    'FamilyStatsService',
    'BaseGameService',
    'detect_base_game',
    'RelationService',
    'FamilyService',
]
