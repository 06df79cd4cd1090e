from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


class _Unset:
    """
    Marker for a field that was never provided.
    Distinct from None, which is a real value ("no date", "no image").
    """

    _instance: Optional["_Unset"] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Unset":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "_Unset":
        return self


UNSET = _Unset()


@dataclass(frozen=True)
class CandidateArticle:
    """
    A search hit returned by a news feed. Lives for one ranking call.
    """
    title: Optional[str]
    link: Optional[str]
    snippet: Optional[str] = None
    media_url: Optional[str] = None
    enclosure_url: Optional[str] = None
    source_name: Optional[str] = None
    published: Optional[str] = None

    @property
    def preview_image(self) -> Optional[str]:
        return self.media_url or self.enclosure_url or None


@dataclass(frozen=True)
class RankedResult:
    """
    Best matching article for a topic.
    """
    image_url: Optional[str]
    source_link: Optional[str]

    @classmethod
    def empty(cls) -> "RankedResult":
        return cls(image_url=None, source_link=None)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"imageUrl": self.image_url, "sourceLink": self.source_link}
