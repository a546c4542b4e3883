"""
wikipedia_client.py
===================
Lightweight wrapper around the MediaWiki API used by famtree to pull the plain
text of a family's Wikipedia article (the input for relation suggestions).

Usage
-----
::

    from wikipedia_client import WikipediaClient

    client = WikipediaClient()
    text = client.fetch_extract("https://en.wikipedia.org/wiki/Gloomhaven")
    text = truncate_extract(text)
"""

from __future__ import annotations

import logging
import re
import urllib.parse
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger('famtree.wikipedia')

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
DEFAULT_API_URL  = "https://en.wikipedia.org/w/api.php"
_DEFAULT_TIMEOUT = 10  # seconds
MAX_EXTRACT_CHARS = 15000
TRUNCATION_MARKER = "\n\n[Content truncated...]"
# Articles shorter than this carry too little to work with
MIN_EXTRACT_CHARS = 100

_TITLE_RE = re.compile(r"/wiki/(.+)$")


class WikipediaError(Exception):
    """Raised when an article extract cannot be fetched."""


def article_title(wikipedia_url: str) -> str:
    """Return the decoded article title from a ``.../wiki/<Title>`` URL.

    Raises:
        WikipediaError: The URL does not contain ``/wiki/<title>``.
    """
    match = _TITLE_RE.search(wikipedia_url or "")
    if not match:
        raise WikipediaError("Invalid Wikipedia URL format")
    return urllib.parse.unquote(match.group(1).split("#", 1)[0])


def truncate_extract(text: str, limit: int = MAX_EXTRACT_CHARS) -> str:
    """Cut *text* to *limit* characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


class WikipediaClient:
    """Minimal MediaWiki ``prop=extracts`` client."""

    def __init__(self, api_url: str = DEFAULT_API_URL,
                 timeout: int = _DEFAULT_TIMEOUT) -> None:
        self.api_url = api_url
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "famtree/1.0"})

    def fetch_extract(self, wikipedia_url: str) -> str:
        """Return the plain-text extract of the article at *wikipedia_url*.

        Raises:
            WikipediaError: Bad URL, HTTP failure, or missing article.
        """
        title = article_title(wikipedia_url)
        params: Dict[str, Any] = {
            "action": "query",
            "titles": title,
            "prop": "extracts",
            "explaintext": "true",
            "format": "json",
            "origin": "*",
        }
        try:
            resp = self.session.get(self.api_url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as exc:
            logger.warning("Wikipedia request failed for %s: %s", title, exc)
            raise WikipediaError(f"Failed to fetch Wikipedia article: {exc}") from exc
        except ValueError as exc:
            raise WikipediaError("Wikipedia returned invalid JSON") from exc

        pages: Optional[Dict[str, Any]] = (data.get("query") or {}).get("pages")
        if not pages:
            raise WikipediaError("No pages found in Wikipedia response")
        page = next(iter(pages.values()))
        if "missing" in page:
            raise WikipediaError(f"Wikipedia article not found: {title}")
        extract = page.get("extract") or ""
        logger.debug("Fetched %d chars for %s", len(extract), title)
        return extract
