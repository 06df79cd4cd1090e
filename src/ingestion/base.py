"""
Base classes for news search collaborators
"""
from abc import ABC, abstractmethod
from typing import List

from core.entities import CandidateArticle


class FeedError(Exception):
    """Upstream search feed could not be fetched or parsed."""


class ArticleSearch(ABC):
    """
    Base interface for all news search backends.
    """

    name: str

    @abstractmethod
    async def search(self, query: str) -> List[CandidateArticle]:
        """
        Return candidate articles for a free-text query.
        Raises FeedError when the upstream feed fails.
        """
        raise NotImplementedError
