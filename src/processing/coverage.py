"""
Coverage lookup: the press sources that reported a timeline event.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from core.entities import CandidateArticle
from core.schemas import CoverageRequest
from ingestion.base import FeedError
from ingestion.serper import SerperNewsSearch

logger = logging.getLogger(__name__)

_PLACEHOLDERS = {
    "title": re.compile(r"\{\{\s*title\s*\}\}", re.IGNORECASE),
    "event": re.compile(r"\{\{\s*event\s*\}\}", re.IGNORECASE),
    "description": re.compile(r"\{\{\s*description\s*\}\}", re.IGNORECASE),
}


def build_coverage_query(
    template: Optional[str],
    *,
    title: Optional[str] = None,
    event: Optional[str] = None,
    description: Optional[str] = None,
) -> str:
    """
    Fill a query template. The template "title" (the default) searches for
    the first non-empty of title, event, description.
    """
    fallback = (title or event or description or "").strip()
    if not template or template.strip().lower() == "title":
        return fallback

    values = {"title": title or "", "event": event or "", "description": description or ""}
    query = template
    for name, pattern in _PLACEHOLDERS.items():
        query = pattern.sub(lambda _: values[name], query)

    return query.strip() or fallback


def normalize_link(url: str) -> str:
    return re.sub(r"^https?://", "", url).split("?")[0]


def to_source_items(candidates: Iterable[CandidateArticle], provider: str) -> List[Dict[str, Any]]:
    """Source items deduplicated by link, ignoring scheme and query string."""
    unique: Dict[str, Dict[str, Any]] = {}
    for candidate in candidates:
        if not candidate.link:
            continue
        unique[normalize_link(candidate.link)] = {
            "title": candidate.title or "",
            "link": candidate.link,
            "imageUrl": candidate.preview_image,
            "sourceName": candidate.source_name or "Unknown",
            "pubDate": candidate.published or None,
            "provider": provider,
        }
    return list(unique.values())


async def fetch_event_coverage(
    search: Optional[SerperNewsSearch],
    request: CoverageRequest,
    query_template: Optional[str] = "title",
) -> List[Dict[str, Any]]:
    """
    Never raises: every failure is logged and yields no sources.
    """
    if search is None:
        logger.error("Coverage search is not configured")
        return []

    query = build_coverage_query(
        query_template,
        title=request.title,
        event=request.event,
        description=request.description,
    )
    if not query:
        logger.warning("Missing query input for coverage search")
        return []

    logger.info(f"Coverage query: {query}")

    try:
        candidates = await search.search(
            query, date=request.date, region=request.region, lang=request.lang
        )
    except FeedError as e:
        logger.error(f"Coverage search failed: {e}")
        return []

    sources = to_source_items(candidates, provider=search.name)
    logger.info(f"Unique coverage sources: {len(sources)}")
    return sources
