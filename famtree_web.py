#!/usr/bin/env python3
"""
famtree web - JSON API for the board game family admin tools.
Serves orphan reports, family trees, statistics and relation maintenance
on top of the shared :class:`famtree.FamilyCatalog`.
"""

import argparse
import logging
import os
import threading
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

import famtree
from catalog.errors import ApiError, ErrorCode, ValidationError, internal_error, log_error
from catalog.services.relation_service import (
    ASSIGNABLE_RELATION_TYPES, INVERSE_RELATIONS, RELATION_TYPE_GROUP_LABELS,
    RELATION_TYPE_LABELS, RELATION_TYPES,
)
from wikipedia_client import MIN_EXTRACT_CHARS, WikipediaError, truncate_extract

load_dotenv()

# Initialize logging early so service logs are captured
log_level = os.getenv('FAMTREE_LOG_LEVEL', 'INFO')
famtree.setup_logging(log_level)
web_logger = logging.getLogger('famtree.web')
try:
    os.makedirs('logs', exist_ok=True)
    fh = logging.FileHandler('logs/famtree_web.log')
    fh.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s %(name)s: %(message)s'))
    fh.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logging.getLogger('famtree').addHandler(fh)
except OSError:
    web_logger.warning('Could not create log file handler')

app = Flask(__name__)

# Shared catalog instance, created on first use
catalog: Optional[famtree.FamilyCatalog] = None
catalog_lock = threading.Lock()

_HTTP_ERROR_CODES = {
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
}

# Client-facing text when the upstream article fetch fails; details are logged.
WIKIPEDIA_FETCH_FAILED = 'Failed to fetch Wikipedia article'


def get_catalog() -> famtree.FamilyCatalog:
    """Return the shared catalog, loading it from config on first use."""
    global catalog
    with catalog_lock:
        if catalog is None:
            catalog = famtree.FamilyCatalog(
                famtree.load_config(os.getenv('FAMTREE_CONFIG', 'config.json')))
        return catalog


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


@app.errorhandler(ApiError)
def handle_api_error(err: ApiError):
    if err.status >= 500:
        web_logger.error('%s %s failed: %s', request.method, request.path, err.message)
    return jsonify(err.to_dict()), err.status


@app.errorhandler(HTTPException)
def handle_http_error(err: HTTPException):
    # Unknown routes, wrong methods and the like
    default = ErrorCode.INTERNAL_ERROR if (err.code or 500) >= 500 else ErrorCode.VALIDATION_ERROR
    code = _HTTP_ERROR_CODES.get(err.code, default)
    return jsonify({'error': err.description, 'code': code}), err.code


@app.errorhandler(Exception)
def handle_unexpected_error(err: Exception):
    api_err = internal_error(err, route=f'{request.method} {request.path}')
    return jsonify(api_err.to_dict()), api_err.status


# -----------------------------------------------------------------------
# Status
# -----------------------------------------------------------------------

@app.route('/api/status')
def api_status():
    """Return snapshot sizes and the data directory in use."""
    cat = get_catalog()
    return jsonify({
        'status': 'ok',
        'data_dir': cat.config['data_dir'],
        'families': len(cat.family_repo.data),
        'games': len(cat.game_repo.data),
        'relations': len(cat.relation_repo.data),
    })


@app.route('/api/relation-types', methods=['GET'])
def api_relation_types():
    """Return relation types with labels and inverses."""
    return jsonify({
        'types': [
            {
                'value': t,
                'label': RELATION_TYPE_LABELS[t],
                'group_label': RELATION_TYPE_GROUP_LABELS[t],
                'inverse': INVERSE_RELATIONS[t],
                'assignable': t in ASSIGNABLE_RELATION_TYPES,
            }
            for t in RELATION_TYPES
        ]
    })


# -----------------------------------------------------------------------
# Families
# -----------------------------------------------------------------------

@app.route('/api/families', methods=['GET'])
def api_list_families():
    """List family statistics.

    Query: ``q`` (name search), ``relation`` (``all``, ``needs_review`` or a
    relation type).
    """
    cat = get_catalog()
    stats = cat.stats_service.list_families(request.args.get('q'),
                                            request.args.get('relation'))
    return jsonify({'families': stats, 'totals': cat.stats_service.totals(stats)})


@app.route('/api/families', methods=['POST'])
def api_create_family():
    """Create a family.

    Body JSON: {"name": str, "slug": str, "description"?: str, "hero_image_url"?: str}
    """
    data = _json_body()
    cat = get_catalog()
    with catalog_lock:
        family = cat.family_service.create(
            data.get('name'), data.get('slug'),
            description=data.get('description'),
            hero_image_url=data.get('hero_image_url'),
        )
    return jsonify({'family': family}), 201


@app.route('/api/families/<family_id>', methods=['GET'])
def api_get_family(family_id: str):
    """Return a family with its games (oldest first)."""
    return jsonify({'family': get_catalog().family_service.with_games(family_id)})


@app.route('/api/families/<family_id>', methods=['PATCH'])
def api_update_family(family_id: str):
    """Update editable family fields.  Body JSON: {"data": {...}}"""
    data = _json_body()
    cat = get_catalog()
    with catalog_lock:
        family = cat.family_service.update(family_id, data.get('data'))
    return jsonify({'family': family})


@app.route('/api/families/<family_id>', methods=['DELETE'])
def api_delete_family(family_id: str):
    """Delete a family, detaching its games."""
    cat = get_catalog()
    with catalog_lock:
        cat.family_service.delete(family_id)
    return jsonify({'success': True})


@app.route('/api/families/<family_id>/orphans', methods=['GET'])
def api_family_orphans(family_id: str):
    """Return games not connected to the family's base game."""
    orphans = get_catalog().orphan_service.orphans(family_id)
    return jsonify({'family_id': family_id, 'orphans': orphans,
                    'orphan_count': len(orphans)})


@app.route('/api/families/<family_id>/tree', methods=['GET'])
def api_family_tree(family_id: str):
    """Return the nested family tree plus games left out of it."""
    return jsonify(get_catalog().tree_service.tree(family_id))


@app.route('/api/families/<family_id>/base-game', methods=['GET'])
def api_detect_base_game(family_id: str):
    """Report the detected base game without saving it."""
    return jsonify(get_catalog().base_game_service.detect(family_id))


@app.route('/api/families/base-game/detect', methods=['POST'])
def api_apply_base_games():
    """Detect and store base games.  Body JSON: {"slug"?: str, "dry_run"?: bool}"""
    data = _json_body()
    cat = get_catalog()
    with catalog_lock:
        summary = cat.base_game_service.apply(data.get('slug'),
                                              dry_run=bool(data.get('dry_run', False)))
    return jsonify(summary)


@app.route('/api/families/<family_id>/auto-link', methods=['POST'])
def api_auto_link(family_id: str):
    """Match extracted relations against the family's games.

    Body JSON: {"relations": [{"sourceName", "targetName", "relationType",
    "confidence", "reason"}, ...]}
    """
    data = _json_body()
    extracted = data.get('relations')
    if not isinstance(extracted, list):
        raise ValidationError('relations must be a list')
    cat = get_catalog()
    games = cat.family_service.games_in_family(family_id)
    if not games:
        raise ValidationError('No games found in family')
    suggestions = cat.relation_service.suggest_links(games, extracted)
    return jsonify({
        'suggestions': suggestions,
        'new_count': sum(1 for s in suggestions if not s['already_exists']),
    })


@app.route('/api/families/<family_id>/wikipedia', methods=['GET'])
def api_family_wikipedia(family_id: str):
    """Return the Wikipedia extract for the first family game with a URL."""
    cat = get_catalog()
    games = cat.family_service.games_in_family(family_id)
    with_wiki = [g for g in games if g.get('wikipedia_url')]
    if not with_wiki:
        raise ValidationError('No games in this family have a Wikipedia URL')
    source = with_wiki[0]
    try:
        text = cat.wikipedia.fetch_extract(source['wikipedia_url'])
    except WikipediaError as e:
        log_error(ErrorCode.INTERNAL_ERROR, e, route=f'{request.method} {request.path}',
                  family_id=family_id, wikipedia_url=source['wikipedia_url'])
        return jsonify({'error': WIKIPEDIA_FETCH_FAILED, 'code': ErrorCode.INTERNAL_ERROR}), 502
    if len(text) < MIN_EXTRACT_CHARS:
        raise ValidationError('Wikipedia article content too short or empty')
    return jsonify({
        'family_id': family_id,
        'source_game_id': source['id'],
        'wikipedia_url': source['wikipedia_url'],
        'content': truncate_extract(text, int(cat.config.get('wikipedia_max_chars', 15000))),
    })


# -----------------------------------------------------------------------
# Relations
# -----------------------------------------------------------------------

@app.route('/api/games/<game_id>/relations', methods=['GET'])
def api_game_relations(game_id: str):
    """Return outgoing and incoming relations for a game."""
    cat = get_catalog()
    return jsonify({
        'game_id': game_id,
        'relations': cat.relation_service.for_game(game_id),
        'inverse': cat.relation_service.inverse_for_game(game_id),
    })


@app.route('/api/relations', methods=['POST'])
def api_create_relation():
    """Create a relation.

    Body JSON: {"sourceGameId": str, "targetGameId": str, "relationType": str}
    """
    data = _json_body()
    cat = get_catalog()
    with catalog_lock:
        rel = cat.relation_service.create(data.get('sourceGameId'),
                                          data.get('targetGameId'),
                                          data.get('relationType'))
    return jsonify({'relation': rel}), 201


@app.route('/api/relations/<relation_id>', methods=['PUT'])
def api_update_relation(relation_id: str):
    """Replace a relation.  Body JSON as for POST /api/relations."""
    data = _json_body()
    cat = get_catalog()
    with catalog_lock:
        rel = cat.relation_service.update(relation_id, data.get('sourceGameId'),
                                          data.get('targetGameId'),
                                          data.get('relationType'))
    return jsonify({'relation': rel})


@app.route('/api/relations/<relation_id>', methods=['DELETE'])
def api_delete_relation(relation_id: str):
    cat = get_catalog()
    with catalog_lock:
        cat.relation_service.delete(relation_id)
    return jsonify({'success': True})


@app.route('/api/games/<game_id>/sync-relations', methods=['POST'])
def api_sync_relations(game_id: str):
    """Create relations from the game's BGG data.  Body JSON: {"type"?: str}"""
    data = _json_body()
    cat = get_catalog()
    with catalog_lock:
        result = cat.relation_service.sync_from_bgg(game_id, data.get('type', 'all'))
    return jsonify({'success': True, **result})


def main():
    parser = argparse.ArgumentParser(description='famtree web API')
    parser.add_argument('--host', default='127.0.0.1')
    parser.add_argument('--port', type=int, default=5000)
    parser.add_argument('--debug', action='store_true')
    args = parser.parse_args()
    get_catalog()
    web_logger.info('Starting famtree web API on %s:%d', args.host, args.port)
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == '__main__':
    main()
