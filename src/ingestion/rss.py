"""
News search over an RSS search feed
"""
import logging
import re
from typing import List, Optional

import feedparser
import httpx

from core.entities import CandidateArticle
from ingestion.base import ArticleSearch, FeedError

logger = logging.getLogger(__name__)

_TAGS = re.compile(r"<[^>]+>")


def _strip_html(text: str) -> str:
    return _TAGS.sub(" ", text or "").strip()


def _media_url(entry) -> Optional[str]:
    for key in ("media_content", "media_thumbnail"):
        for media in entry.get(key) or []:
            url = media.get("url")
            if url:
                return url
    return None


def _enclosure_url(entry) -> Optional[str]:
    for enclosure in entry.get("enclosures") or []:
        url = enclosure.get("href") or enclosure.get("url")
        if url:
            return url
    return None


def entry_to_candidate(entry) -> CandidateArticle:
    source = entry.get("source") or {}
    return CandidateArticle(
        title=entry.get("title") or None,
        link=entry.get("link") or None,
        snippet=_strip_html(entry.get("summary", "")) or None,
        media_url=_media_url(entry),
        enclosure_url=_enclosure_url(entry),
        source_name=source.get("title"),
        published=entry.get("published"),
    )


class RSSNewsSearch(ArticleSearch):
    name = "rss"

    def __init__(
        self,
        base_url: str = "https://news.google.com/rss/search",
        region: str = "in",
        lang: str = "en",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.region = region
        self.lang = lang
        self.timeout = timeout
        self.transport = transport

    def _params(self, query: str) -> dict:
        region = self.region.upper()
        return {
            "q": query,
            "hl": f"{self.lang}-{region}",
            "gl": region,
            "ceid": f"{region}:{self.lang}",
        }

    async def search(self, query: str) -> List[CandidateArticle]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.get(self.base_url, params=self._params(query))
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise FeedError(f"RSS search request failed: {e}") from e

        feed = feedparser.parse(resp.text)

        if feed.bozo and not feed.entries:
            raise FeedError(f"Malformed RSS feed: {feed.get('bozo_exception')}")
        if feed.bozo:
            logger.warning(f"RSS feed parsed with errors: {feed.get('bozo_exception')}")

        items = [entry_to_candidate(entry) for entry in feed.entries]
        logger.info(f"RSS search '{query}' returned {len(items)} entries")
        return items
