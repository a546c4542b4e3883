#!/usr/bin/env python3
"""
famtree - Board game family tree tools
Finds games that are not connected to their family's base game, prints family
trees and statistics, and keeps each family's base game up to date.
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from colorama import init, Fore, Style

from catalog.errors import ApiError
from catalog.repositories import FamilyRepository, GameRepository, RelationRepository
from catalog.services import (
    BaseGameService, FamilyService, FamilyStatsService, FamilyTreeService,
    OrphanService, RelationService,
)
from wikipedia_client import DEFAULT_API_URL, MAX_EXTRACT_CHARS, WikipediaClient

# Initialize colorama for cross-platform colored terminal output
init(autoreset=True)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root famtree logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, str(level).upper(), logging.WARNING)
    logger = logging.getLogger('famtree')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


# Module-level logger used throughout famtree.py
logger = setup_logging()

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_CONFIG: Dict[str, Any] = {
    'data_dir': '.',
    'log_level': 'WARNING',
    'wikipedia_api_url': DEFAULT_API_URL,
    'api_timeout_seconds': 10,
    'wikipedia_max_chars': MAX_EXTRACT_CHARS,
}

# Environment variable -> config key; the environment wins over the file.
ENV_OVERRIDES = {
    'FAMTREE_DATA_DIR': 'data_dir',
    'FAMTREE_LOG_LEVEL': 'log_level',
    'WIKIPEDIA_API_URL': 'wikipedia_api_url',
}


class ConfigError(Exception):
    """Raised when the config file exists but cannot be parsed."""


def load_config(config_path: Optional[str] = 'config.json') -> Dict[str, Any]:
    """Load configuration from a JSON file with environment variable support.

    Missing keys fall back to :data:`DEFAULT_CONFIG`; a missing file is not an
    error (defaults are used).  Environment variables take precedence:

    - FAMTREE_DATA_DIR overrides data_dir
    - FAMTREE_LOG_LEVEL overrides log_level
    - WIKIPEDIA_API_URL overrides wikipedia_api_url

    Raises:
        ConfigError: The file exists but is not a JSON object.
    """
    config = dict(DEFAULT_CONFIG)
    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Error parsing config file '{config_path}': {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file '{config_path}' must contain a JSON object")
        config.update(loaded)
    elif config_path:
        logger.warning("Config file '%s' not found, using defaults", config_path)

    for env_name, key in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            config[key] = value
    return config


# ---------------------------------------------------------------------------
# Integration point
# ---------------------------------------------------------------------------

class FamilyCatalog:
    """Wires repositories and services together for one data directory.

    Services are exposed as public attributes so the web layer and the CLI
    share one set of instances::

        catalog = FamilyCatalog(load_config())
        catalog.orphan_service.orphans(family_id)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._log = logging.getLogger('famtree.catalog')
        self.config = dict(DEFAULT_CONFIG)
        self.config.update(config or {})
        setup_logging(self.config.get('log_level', 'WARNING'))

        data_dir = self.config['data_dir']
        self.family_repo = FamilyRepository(os.path.join(data_dir, 'families.json'))
        self.game_repo = GameRepository(os.path.join(data_dir, 'games.json'))
        self.relation_repo = RelationRepository(os.path.join(data_dir, 'relations.json'))

        self.orphan_service = OrphanService(self.family_repo, self.game_repo, self.relation_repo)
        self.tree_service = FamilyTreeService(self.orphan_service)
        self.stats_service = FamilyStatsService(self.family_repo, self.game_repo, self.relation_repo)
        self.base_game_service = BaseGameService(self.family_repo, self.game_repo, self.relation_repo)
        self.relation_service = RelationService(self.relation_repo, self.game_repo)
        self.family_service = FamilyService(self.family_repo, self.game_repo)
        self.wikipedia = WikipediaClient(
            api_url=self.config.get('wikipedia_api_url', DEFAULT_API_URL),
            timeout=int(self.config.get('api_timeout_seconds', 10)),
        )
        self._log.debug("Loaded %d families, %d games, %d relations from %s",
                        len(self.family_repo.data), len(self.game_repo.data),
                        len(self.relation_repo.data), data_dir)

    def reload(self) -> None:
        """Re-read all snapshot files from disk."""
        for repo in (self.family_repo, self.game_repo, self.relation_repo):
            repo.reload()


# ---------------------------------------------------------------------------
# CLI output helpers
# ---------------------------------------------------------------------------

def _game_label(game: Dict[str, Any]) -> str:
    year = game.get('year_published')
    return f"{game.get('name')} ({year if year else 'N/A'})"


def format_tree(node: Optional[Dict[str, Any]], indent: str = '') -> List[str]:
    """Render a tree from :func:`build_family_tree` as indented text lines."""
    if node is None:
        return []
    lines = []
    stack = [(node, indent)]
    while stack:
        current, prefix = stack.pop()
        label = _game_label(current['game'])
        if current['relation_type']:
            label = f"{label} [{current['relation_type']}]"
        lines.append(f"{prefix}{label}")
        # reversed so the first child is rendered first
        stack.extend((child, prefix + '  ') for child in reversed(current['children']))
    return lines


def print_orphans(catalog: FamilyCatalog, slug: Optional[str] = None) -> int:
    """Print orphaned games; returns the total number found."""
    if slug:
        family = catalog.family_service.get_by_slug(slug)
        found = {family['id']: catalog.orphan_service.orphans(family['id'])}
    else:
        found = catalog.orphan_service.all_orphans()

    total = 0
    for family_id, orphans in found.items():
        family = catalog.family_repo.find(family_id)
        if not orphans:
            print(f"{Fore.GREEN}{family['name']}: all games connected")
            continue
        print(f"{Fore.YELLOW}{family['name']}: {len(orphans)} unlinked game(s)")
        for game in orphans:
            print(f"  - {_game_label(game)}")
        total += len(orphans)
    if not found:
        print(f"{Fore.GREEN}No orphaned games found.")
    return total


def print_tree(catalog: FamilyCatalog, slug: str) -> None:
    family = catalog.family_service.get_by_slug(slug)
    result = catalog.tree_service.tree(family['id'])
    print(f"{Fore.CYAN}{Style.BRIGHT}{family['name']}")
    for line in format_tree(result['tree']):
        print(line)
    if result['orphans']:
        print(f"{Fore.YELLOW}Unlinked Games ({len(result['orphans'])}):")
        for game in result['orphans']:
            print(f"  - {_game_label(game)}")


def print_stats(catalog: FamilyCatalog) -> None:
    stats = catalog.stats_service.list_families()
    print(f"{Fore.CYAN}{Style.BRIGHT}{'Family':<40}{'Games':>6}{'Orphans':>9}")
    for s in stats:
        colour = Fore.YELLOW if s['orphan_count'] else Fore.WHITE
        print(f"{colour}{s['name'][:39]:<40}{s['game_count']:>6}{s['orphan_count']:>9}")
    totals = catalog.stats_service.totals(stats)
    print(f"\nFamilies: {totals['families']}  Needs review: {totals['needs_review']}")


def print_base_game_summary(summary: Dict[str, Any]) -> None:
    mode = 'DRY RUN' if summary['dry_run'] else 'LIVE'
    print(f"{Fore.CYAN}=== Detect Base Games ({mode}) ===")
    print(f"Families processed: {summary['processed']}")
    print(f"Updated: {summary['updated']}")
    print(f"Already correct: {summary['already_correct']}")
    print(f"No games in family: {summary['no_games']}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description='famtree - board game family tree tools',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  famtree --orphans                   # List unlinked games in every family
  famtree --orphans gloomhaven        # ... in one family
  famtree --tree gloomhaven           # Print a family tree
  famtree --stats                     # Family overview table
  famtree --detect-base-games --dry-run
        """
    )
    parser.add_argument('--config', '-c', default='config.json',
                        help='Path to config file (default: config.json)')
    parser.add_argument('--orphans', nargs='?', const='', metavar='SLUG',
                        help='List games not connected to their base game')
    parser.add_argument('--tree', metavar='SLUG', help='Print the tree of one family')
    parser.add_argument('--stats', '-s', action='store_true',
                        help='Show per-family statistics')
    parser.add_argument('--detect-base-games', action='store_true',
                        help='Detect and store the base game of each family')
    parser.add_argument('--family', metavar='SLUG',
                        help='Limit --detect-base-games to one family')
    parser.add_argument('--dry-run', action='store_true',
                        help="Report base game changes without saving them")
    args = parser.parse_args(argv)

    try:
        catalog = FamilyCatalog(load_config(args.config))
    except ConfigError as e:
        print(f"{Fore.RED}{e}")
        return 1

    try:
        if args.orphans is not None:
            print_orphans(catalog, args.orphans or None)
        elif args.tree:
            print_tree(catalog, args.tree)
        elif args.stats:
            print_stats(catalog)
        elif args.detect_base_games:
            print_base_game_summary(
                catalog.base_game_service.apply(args.family, dry_run=args.dry_run))
        else:
            parser.print_help()
    except ApiError as e:
        print(f"{Fore.RED}Error: {e.message}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
