"""
Web news search through the Serper API
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx

from core.entities import CandidateArticle
from ingestion.base import ArticleSearch, FeedError

logger = logging.getLogger(__name__)


def build_date_window(date_str: Optional[str], days: int = 2) -> Optional[str]:
    """
    Serper `tbs` value restricting results to +/- `days` around a date.
    Returns None when the date is missing or unparseable.
    """
    if not date_str:
        return None

    try:
        base = datetime.fromisoformat(date_str.strip()[:10])
    except ValueError:
        return None

    low = (base - timedelta(days=days)).date().isoformat()
    high = (base + timedelta(days=days)).date().isoformat()
    return f"cdr:1,cd_min:{low},cd_max:{high}"


def _to_candidate(item: Dict[str, Any]) -> CandidateArticle:
    return CandidateArticle(
        title=item.get("title") or None,
        link=item.get("link") or None,
        snippet=item.get("snippet") or None,
        media_url=item.get("imageUrl") or item.get("thumbnail") or None,
        source_name=item.get("source") or item.get("domain") or None,
        published=item.get("date") or None,
    )


def _json_object(resp: httpx.Response) -> Dict[str, Any]:
    data = resp.json()
    if not isinstance(data, dict):
        raise FeedError(f"Serper returned {type(data).__name__}, expected an object")
    return data


def _result_list(data: Dict[str, Any], *keys: str) -> List[Any]:
    for key in keys:
        items = data.get(key)
        if isinstance(items, list) and items:
            return items
    return []


class SerperNewsSearch(ArticleSearch):
    name = "serper"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://google.serper.dev",
        region: str = "in",
        lang: str = "en",
        num_results: int = 10,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.region = region
        self.lang = lang
        self.num_results = num_results
        self.timeout = timeout
        self.transport = transport

    async def search(
        self,
        query: str,
        *,
        date: Optional[str] = None,
        region: Optional[str] = None,
        lang: Optional[str] = None,
    ) -> List[CandidateArticle]:
        payload: Dict[str, Any] = {
            "q": query,
            "num": self.num_results,
            "gl": region or self.region,
            "hl": lang or self.lang,
        }
        headers = {"X-API-KEY": self.api_key, "Content-Type": "application/json"}

        tbs = build_date_window(date)
        if tbs:
            payload["tbs"] = tbs
            logger.info(f"Applying date window: {tbs}")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, headers=headers, transport=self.transport
            ) as client:
                resp = await client.post(f"{self.base_url}/news", json=payload)
                resp.raise_for_status()
                items = _result_list(_json_object(resp), "news")
                logger.info(f"Serper /news results: {len(items)}")

                if not items:
                    # General search has no date window
                    payload.pop("tbs", None)
                    resp = await client.post(f"{self.base_url}/search", json=payload)
                    resp.raise_for_status()
                    items = _result_list(_json_object(resp), "news", "organic")
                    logger.info(f"Serper /search results: {len(items)}")

        except httpx.HTTPStatusError as e:
            raise FeedError(f"Serper HTTP {e.response.status_code}: {e.response.text[:200]}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise FeedError(f"Serper request failed: {e}") from e

        return [_to_candidate(item) for item in items if isinstance(item, dict)]
