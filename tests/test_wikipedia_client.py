#!/usr/bin/env python3
"""
Unit tests for wikipedia_client.py.

HTTP is mocked with unittest.mock; no network access is needed.

Run with:
    python -m pytest tests/test_wikipedia_client.py
"""
import os
import sys
import unittest
from unittest.mock import MagicMock, patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import requests

from wikipedia_client import (
    TRUNCATION_MARKER, WikipediaClient, WikipediaError, article_title,
    truncate_extract,
)


# ===========================================================================
# Helpers
# ===========================================================================

def _ok_resp(body):
    resp = MagicMock()
    resp.status_code = 200
    resp.json.return_value = body
    resp.raise_for_status.return_value = None
    return resp


def _err_resp():
    resp = MagicMock()
    resp.status_code = 500
    resp.raise_for_status.side_effect = requests.HTTPError(response=resp)
    return resp


def _pages(page):
    return {'query': {'pages': {'123': page}}}


# ===========================================================================
# URL and text helpers
# ===========================================================================

class TestArticleTitle(unittest.TestCase):

    def test_plain_title(self):
        self.assertEqual(article_title('https://en.wikipedia.org/wiki/Gloomhaven'),
                         'Gloomhaven')

    def test_percent_encoded_title(self):
        self.assertEqual(
            article_title('https://en.wikipedia.org/wiki/Catan%3A_Seafarers'),
            'Catan:_Seafarers')

    def test_fragment_dropped(self):
        self.assertEqual(article_title('https://en.wikipedia.org/wiki/Catan#Expansions'),
                         'Catan')

    def test_invalid_url(self):
        with self.assertRaises(WikipediaError):
            article_title('https://example.com/Catan')
        with self.assertRaises(WikipediaError):
            article_title(None)


class TestTruncateExtract(unittest.TestCase):

    def test_short_text_unchanged(self):
        self.assertEqual(truncate_extract('abc', 10), 'abc')

    def test_long_text_marked(self):
        result = truncate_extract('x' * 20, 10)
        self.assertEqual(result, 'x' * 10 + TRUNCATION_MARKER)


# ===========================================================================
# WikipediaClient
# ===========================================================================

class TestWikipediaClient(unittest.TestCase):

    @patch('wikipedia_client.requests.Session')
    def test_fetch_extract_success(self, mock_session_cls):
        mock_session = MagicMock()
        mock_session.get.return_value = _ok_resp(_pages({'extract': 'Gloomhaven is...'}))
        mock_session_cls.return_value = mock_session
        client = WikipediaClient(api_url='https://wiki.test/api.php', timeout=5)
        text = client.fetch_extract('https://en.wikipedia.org/wiki/Gloomhaven')
        self.assertEqual(text, 'Gloomhaven is...')
        args, kwargs = mock_session.get.call_args
        self.assertEqual(args[0], 'https://wiki.test/api.php')
        self.assertEqual(kwargs['params']['titles'], 'Gloomhaven')
        self.assertEqual(kwargs['params']['prop'], 'extracts')
        self.assertEqual(kwargs['timeout'], 5)

    @patch('wikipedia_client.requests.Session')
    def test_missing_extract_is_empty_string(self, mock_session_cls):
        mock_session = MagicMock()
        mock_session.get.return_value = _ok_resp(_pages({'title': 'Stub'}))
        mock_session_cls.return_value = mock_session
        self.assertEqual(WikipediaClient().fetch_extract('https://en.wikipedia.org/wiki/Stub'), '')

    @patch('wikipedia_client.requests.Session')
    def test_missing_article(self, mock_session_cls):
        mock_session = MagicMock()
        mock_session.get.return_value = _ok_resp(_pages({'missing': ''}))
        mock_session_cls.return_value = mock_session
        with self.assertRaises(WikipediaError):
            WikipediaClient().fetch_extract('https://en.wikipedia.org/wiki/Nope')

    @patch('wikipedia_client.requests.Session')
    def test_no_pages(self, mock_session_cls):
        mock_session = MagicMock()
        mock_session.get.return_value = _ok_resp({'query': {}})
        mock_session_cls.return_value = mock_session
        with self.assertRaises(WikipediaError):
            WikipediaClient().fetch_extract('https://en.wikipedia.org/wiki/Catan')

    @patch('wikipedia_client.requests.Session')
    def test_http_error(self, mock_session_cls):
        mock_session = MagicMock()
        mock_session.get.return_value = _err_resp()
        mock_session_cls.return_value = mock_session
        with self.assertRaises(WikipediaError):
            WikipediaClient().fetch_extract('https://en.wikipedia.org/wiki/Catan')

    @patch('wikipedia_client.requests.Session')
    def test_connection_error(self, mock_session_cls):
        mock_session = MagicMock()
        mock_session.get.side_effect = requests.ConnectionError('down')
        mock_session_cls.return_value = mock_session
        with self.assertRaises(WikipediaError):
            WikipediaClient().fetch_extract('https://en.wikipedia.org/wiki/Catan')

    @patch('wikipedia_client.requests.Session')
    def test_invalid_json(self, mock_session_cls):
        mock_session = MagicMock()
        resp = _ok_resp(None)
        resp.json.side_effect = ValueError('not json')
        mock_session.get.return_value = resp
        mock_session_cls.return_value = mock_session
        with self.assertRaises(WikipediaError):
            WikipediaClient().fetch_extract('https://en.wikipedia.org/wiki/Catan')

    @patch('wikipedia_client.requests.Session')
    def test_bad_url_makes_no_request(self, mock_session_cls):
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        with self.assertRaises(WikipediaError):
            WikipediaClient().fetch_extract('not a url')
        mock_session.get.assert_not_called()


if __name__ == '__main__':
    unittest.main()
