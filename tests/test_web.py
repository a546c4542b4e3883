#!/usr/bin/env python3
"""
Flask route tests for famtree_web.py.

Each test runs against a FamilyCatalog over a temp data directory.

Run with:
    python -m pytest tests/test_web.py
"""
import json
import os
import shutil
import sys
import tempfile
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import famtree
import famtree_web
from wikipedia_client import WikipediaError

FAMILIES = [
    {'id': 'f1', 'name': 'Gloomhaven', 'slug': 'gloomhaven', 'description': None,
     'base_game_id': None},
    {'id': 'f2', 'name': 'Solo', 'slug': 'solo', 'description': None,
     'base_game_id': None},
]

GAMES = [
    {'id': 'gh', 'name': 'Gloomhaven', 'year_published': 2017, 'family_id': 'f1',
     'bgg_id': 174430, 'wikipedia_url': 'https://en.wikipedia.org/wiki/Gloomhaven'},
    {'id': 'fc', 'name': 'Gloomhaven: Forgotten Circles', 'year_published': 2019,
     'family_id': 'f1', 'bgg_id': 246900,
     'bgg_raw_data': {'expandsGame': {'id': 174430, 'name': 'Gloomhaven'}}},
    {'id': 'fh', 'name': 'Frosthaven', 'year_published': 2022, 'family_id': 'f1',
     'bgg_id': 295770},
    {'id': 'solo', 'name': 'Solo Game', 'year_published': 2010, 'family_id': 'f2'},
]


class WebTestCase(unittest.TestCase):
    """Points famtree_web at a fresh catalog in a temp directory."""

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        for name, data in (('families.json', FAMILIES), ('games.json', GAMES),
                           ('relations.json', [])):
            with open(os.path.join(self.tmp, name), 'w') as f:
                json.dump(data, f)
        self.catalog = famtree.FamilyCatalog({'data_dir': self.tmp})
        patcher = patch.object(famtree_web, 'catalog', self.catalog)
        patcher.start()
        self.addCleanup(patcher.stop)
        famtree_web.app.config['TESTING'] = True
        self.client = famtree_web.app.test_client()

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _link(self, source, target, relation_type='expansion_of'):
        return self.client.post('/api/relations', json={
            'sourceGameId': source, 'targetGameId': target, 'relationType': relation_type,
        })


class TestStatusRoutes(WebTestCase):

    def test_status(self):
        resp = self.client.get('/api/status')
        self.assertEqual(resp.status_code, 200)
        data = json.loads(resp.data)
        self.assertEqual(data['games'], 4)
        self.assertEqual(data['families'], 2)

    def test_relation_types(self):
        data = json.loads(self.client.get('/api/relation-types').data)
        by_value = {t['value']: t for t in data['types']}
        self.assertEqual(len(by_value), 7)
        self.assertEqual(by_value['sequel_to']['inverse'], 'prequel_to')
        self.assertFalse(by_value['base_game_of']['assignable'])

    def test_unknown_route_is_json(self):
        resp = self.client.get('/api/nope')
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(json.loads(resp.data)['code'], 'NOT_FOUND')


class TestOrphanRoutes(WebTestCase):

    def test_orphans_before_and_after_linking(self):
        data = json.loads(self.client.get('/api/families/f1/orphans').data)
        self.assertEqual(data['orphan_count'], 2)
        self.assertEqual([g['id'] for g in data['orphans']], ['fc', 'fh'])

        self.assertEqual(self._link('fc', 'gh').status_code, 201)
        self.assertEqual(self._link('fh', 'gh', 'sequel_to').status_code, 201)
        data = json.loads(self.client.get('/api/families/f1/orphans').data)
        self.assertEqual(data['orphans'], [])

    def test_unknown_family(self):
        resp = self.client.get('/api/families/missing/orphans')
        self.assertEqual(resp.status_code, 404)
        data = json.loads(resp.data)
        self.assertEqual(data['code'], 'NOT_FOUND')
        self.assertIn('missing', data['error'])

    def test_tree(self):
        self._link('fc', 'gh')
        data = json.loads(self.client.get('/api/families/f1/tree').data)
        self.assertEqual(data['tree']['game']['id'], 'gh')
        self.assertEqual(data['tree']['children'][0]['relation_type'], 'expansion_of')
        self.assertEqual([g['id'] for g in data['orphans']], ['fh'])


class TestFamilyRoutes(WebTestCase):

    def test_list_with_totals(self):
        data = json.loads(self.client.get('/api/families').data)
        self.assertEqual([f['name'] for f in data['families']], ['Gloomhaven', 'Solo'])
        self.assertEqual(data['totals']['needs_review'], 1)

    def test_list_filters(self):
        data = json.loads(self.client.get('/api/families?q=solo').data)
        self.assertEqual([f['id'] for f in data['families']], ['f2'])
        data = json.loads(self.client.get('/api/families?relation=needs_review').data)
        self.assertEqual([f['id'] for f in data['families']], ['f1'])

    def test_list_bad_filter(self):
        resp = self.client.get('/api/families?relation=bogus')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(json.loads(resp.data)['code'], 'VALIDATION_ERROR')

    def test_create_get_update_delete(self):
        resp = self.client.post('/api/families', json={'name': 'Catan', 'slug': 'catan'})
        self.assertEqual(resp.status_code, 201)
        family_id = json.loads(resp.data)['family']['id']

        resp = self.client.get(f'/api/families/{family_id}')
        self.assertEqual(json.loads(resp.data)['family']['game_count'], 0)

        resp = self.client.patch(f'/api/families/{family_id}',
                                 json={'data': {'description': 'Trading'}})
        self.assertEqual(json.loads(resp.data)['family']['description'], 'Trading')

        resp = self.client.delete(f'/api/families/{family_id}')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get(f'/api/families/{family_id}').status_code, 404)

    def test_create_conflict(self):
        resp = self.client.post('/api/families', json={'name': 'Again', 'slug': 'gloomhaven'})
        self.assertEqual(resp.status_code, 409)

    def test_create_missing_fields(self):
        resp = self.client.post('/api/families', json={'name': 'No slug'})
        self.assertEqual(resp.status_code, 400)

    def test_non_object_body_rejected(self):
        resp = self.client.post('/api/families', json=['name'])
        self.assertEqual(resp.status_code, 400)

    def test_get_family_games_oldest_first(self):
        data = json.loads(self.client.get('/api/families/f1').data)
        self.assertEqual([g['id'] for g in data['family']['games']], ['gh', 'fc', 'fh'])


class TestBaseGameRoutes(WebTestCase):

    def test_detect_single(self):
        data = json.loads(self.client.get('/api/families/f1/base-game').data)
        self.assertEqual(data['detected_base_game_id'], 'gh')
        self.assertTrue(data['changed'])

    def test_apply_dry_run(self):
        resp = self.client.post('/api/families/base-game/detect', json={'dry_run': True})
        data = json.loads(resp.data)
        self.assertEqual(data['updated'], 2)
        self.assertIsNone(self.catalog.family_repo.find('f1')['base_game_id'])

    def test_apply_one_family(self):
        resp = self.client.post('/api/families/base-game/detect', json={'slug': 'solo'})
        data = json.loads(resp.data)
        self.assertEqual(data['processed'], 1)
        self.assertEqual(self.catalog.family_repo.find('f2')['base_game_id'], 'solo')


class TestRelationRoutes(WebTestCase):

    def test_game_relations(self):
        self._link('fc', 'gh')
        data = json.loads(self.client.get('/api/games/gh/relations').data)
        self.assertEqual(data['relations'], [])
        self.assertEqual(data['inverse'][0]['inverse_type'], 'base_game_of')

    def test_duplicate_relation(self):
        self._link('fc', 'gh')
        self.assertEqual(self._link('fc', 'gh').status_code, 409)

    def test_invalid_relation_type(self):
        self.assertEqual(self._link('fc', 'gh', 'rival_of').status_code, 400)

    def test_update_and_delete(self):
        rel_id = json.loads(self._link('fh', 'gh').data)['relation']['id']
        resp = self.client.put(f'/api/relations/{rel_id}', json={
            'sourceGameId': 'fh', 'targetGameId': 'gh', 'relationType': 'sequel_to'})
        self.assertEqual(resp.status_code, 200)
        new_id = json.loads(resp.data)['relation']['id']
        self.assertEqual(self.client.delete(f'/api/relations/{new_id}').status_code, 200)
        self.assertEqual(self.client.delete(f'/api/relations/{new_id}').status_code, 404)

    def test_failed_update_keeps_relation(self):
        rel_id = json.loads(self._link('fh', 'gh').data)['relation']['id']
        resp = self.client.put(f'/api/relations/{rel_id}', json={
            'sourceGameId': 'fh', 'targetGameId': 'gh', 'relationType': 'bogus'})
        self.assertEqual(resp.status_code, 400)
        self.assertIsNotNone(self.catalog.relation_repo.find(rel_id))

    def test_sync_relations(self):
        resp = self.client.post('/api/games/fc/sync-relations', json={})
        data = json.loads(resp.data)
        self.assertTrue(data['success'])
        self.assertEqual(data['created'], 1)
        self.assertIsNotNone(self.catalog.relation_repo.find_triple('fc', 'gh', 'expansion_of'))

    def test_auto_link(self):
        resp = self.client.post('/api/families/f1/auto-link', json={'relations': [
            {'sourceName': 'Frosthaven', 'targetName': 'Gloomhaven',
             'relationType': 'sequel_to', 'confidence': 'high', 'reason': 'Sequel'},
        ]})
        data = json.loads(resp.data)
        self.assertEqual(data['new_count'], 1)
        self.assertEqual(data['suggestions'][0]['source_game']['id'], 'fh')

    def test_auto_link_requires_list(self):
        resp = self.client.post('/api/families/f1/auto-link', json={'relations': 'x'})
        self.assertEqual(resp.status_code, 400)


class TestWikipediaRoute(WebTestCase):

    def test_returns_truncated_content(self):
        with patch.object(self.catalog.wikipedia, 'fetch_extract',
                          return_value='word ' * 5000) as mocked:
            resp = self.client.get('/api/families/f1/wikipedia')
        mocked.assert_called_once_with('https://en.wikipedia.org/wiki/Gloomhaven')
        data = json.loads(resp.data)
        self.assertEqual(data['source_game_id'], 'gh')
        self.assertTrue(data['content'].endswith('[Content truncated...]'))

    def test_short_article_rejected(self):
        with patch.object(self.catalog.wikipedia, 'fetch_extract', return_value='Stub'):
            resp = self.client.get('/api/families/f1/wikipedia')
        self.assertEqual(resp.status_code, 400)

    def test_fetch_failure_is_502(self):
        with patch.object(self.catalog.wikipedia, 'fetch_extract',
                          side_effect=WikipediaError('connection refused by 10.0.0.5')):
            resp = self.client.get('/api/families/f1/wikipedia')
        self.assertEqual(resp.status_code, 502)
        data = json.loads(resp.data)
        self.assertEqual(data['error'], famtree_web.WIKIPEDIA_FETCH_FAILED)
        self.assertEqual(data['code'], 'INTERNAL_ERROR')
        self.assertNotIn('10.0.0.5', data['error'])

    def test_no_wikipedia_url(self):
        resp = self.client.get('/api/families/f2/wikipedia')
        self.assertEqual(resp.status_code, 400)


class TestUnexpectedErrors(WebTestCase):

    def test_internal_error_hides_details(self):
        with patch.object(self.catalog.orphan_service, 'orphans',
                          side_effect=RuntimeError('secret detail')):
            resp = self.client.get('/api/families/f1/orphans')
        self.assertEqual(resp.status_code, 500)
        data = json.loads(resp.data)
        self.assertEqual(data['code'], 'INTERNAL_ERROR')
        self.assertNotIn('secret', data['error'])


if __name__ == '__main__':
    unittest.main()
