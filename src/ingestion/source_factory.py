"""
Source Factory - Creates search backends from configuration.
"""
import logging
from typing import Optional

from ingestion.rss import RSSNewsSearch
from ingestion.serper import SerperNewsSearch
from services.config import SearchConfig

logger = logging.getLogger(__name__)


def create_rss_search(search_config: SearchConfig) -> RSSNewsSearch:
    return RSSNewsSearch(
        base_url=search_config.rss_url,
        region=search_config.region,
        lang=search_config.lang,
        timeout=search_config.rss_timeout,
    )


def create_coverage_search(search_config: SearchConfig) -> Optional[SerperNewsSearch]:
    """
    Serper search, or None when no API key is configured.
    """
    if not search_config.serper_api_key:
        logger.warning("SERPER_API_KEY missing, coverage search disabled")
        return None

    return SerperNewsSearch(
        api_key=search_config.serper_api_key,
        base_url=search_config.serper_url,
        region=search_config.region,
        lang=search_config.lang,
        timeout=search_config.serper_timeout,
    )
