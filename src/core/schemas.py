"""
Pydantic schemas for everything that crosses a trust boundary:
LLM output, callable payloads and the timeline block union.
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr, TypeAdapter, field_validator

VALID_IMPORTANCE = (1, 2, 3)
DEFAULT_IMPORTANCE = 2


def _text(value: Any) -> str:
    if value is None or value is False or value == "":
        return ""
    return value if isinstance(value, str) else str(value)


def _optional_text(value: Any) -> Optional[str]:
    return _text(value) or None


def coerce_importance(value: Any) -> int:
    """Anything outside {1, 2, 3} becomes the medium default."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_IMPORTANCE
    if value in VALID_IMPORTANCE:
        return int(value)
    return DEFAULT_IMPORTANCE


# ----------------------------
# Search-augmented timeline output
# ----------------------------

class SonarSource(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = ""
    url: str = ""
    source_name: str = Field("", alias="sourceName")
    published_at: Optional[str] = Field(None, alias="publishedAt")
    image_url: Optional[str] = Field(None, alias="imageUrl")

    @field_validator("title", "url", "source_name", mode="before")
    @classmethod
    def _default_text(cls, value: Any) -> str:
        return _text(value)

    @field_validator("published_at", "image_url", mode="before")
    @classmethod
    def _default_none(cls, value: Any) -> Optional[str]:
        return _optional_text(value)


class SonarEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    date: Optional[str] = None
    title: str = ""
    description: str = ""
    importance: int = DEFAULT_IMPORTANCE
    sources: List[SonarSource] = []

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return value if isinstance(value, str) else str(value)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _trimmed(cls, value: Any) -> str:
        return _text(value).strip()

    @field_validator("importance", mode="before")
    @classmethod
    def _importance(cls, value: Any) -> int:
        return coerce_importance(value)

    @field_validator("sources", mode="before")
    @classmethod
    def _sources(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        # Bare URL strings are sources too; anything else keeps only defaults
        return [
            item if isinstance(item, dict) else {"url": item} if isinstance(item, str) else {}
            for item in value
        ]


class SonarTimeline(BaseModel):
    """Top-level shape the timeline backend must return."""
    model_config = ConfigDict(extra="ignore")

    events: List[SonarEvent]


# ----------------------------
# Generic LLM helper output
# ----------------------------

class Stakeholder(BaseModel):
    name: str = ""
    detail: str = ""


class QA(BaseModel):
    question: str = ""
    answer: str = ""


class AnalysisSection(BaseModel):
    model_config = ConfigDict(extra="allow")

    stakeholders: List[Stakeholder] = []
    faqs: List[QA] = []
    future: List[QA] = []


class ContextTerm(BaseModel):
    term: str
    explainer: str


class LegacyTimelineEvent(BaseModel):
    """Event as produced by the generic LLM and by manual entry."""
    model_config = ConfigDict(extra="ignore")

    date: str = ""
    event: str = ""
    description: str = ""
    significance: int = DEFAULT_IMPORTANCE

    @field_validator("date", "event", "description", mode="before")
    @classmethod
    def _default_text(cls, value: Any) -> str:
        return _text(value)

    @field_validator("significance", mode="before")
    @classmethod
    def _significance(cls, value: Any) -> int:
        return coerce_importance(value)


class TimelinePhase(BaseModel):
    title: str
    description: Optional[str] = None
    events: List[LegacyTimelineEvent] = []


# ----------------------------
# Timeline blocks (tagged union)
# ----------------------------

class EventBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["event"] = "event"
    id: str = ""
    title: str = ""
    description: str = ""
    date: Optional[str] = None
    significance: int = DEFAULT_IMPORTANCE
    sources: List[Dict[str, Any]] = []


class ImageBlock(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: Literal["image"] = "image"
    id: str = ""
    image_url: str = Field(..., alias="imageUrl")
    caption: Optional[str] = None
    attribution: Optional[str] = None


TimelineBlock = Annotated[Union[EventBlock, ImageBlock], Field(discriminator="type")]
TIMELINE_BLOCKS = TypeAdapter(List[TimelineBlock])


# ----------------------------
# Callable payloads
# ----------------------------

class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SourcePreviewRequest(_Request):
    event_text: StrictStr = Field(..., alias="eventText", min_length=1)
    description: Optional[StrictStr] = None


class TimelineRequest(_Request):
    title: StrictStr = Field(..., min_length=1)
    overview: Optional[StrictStr] = None


class CoverageRequest(_Request):
    title: Optional[str] = None
    event: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None
    region: str = "in"
    lang: str = "en"


class AnalysisRequest(_Request):
    title: StrictStr = Field(..., min_length=1)
    overview: str = ""


class ContextsRequest(_Request):
    overview: StrictStr = Field(..., min_length=1)


class ExplainerTerm(_Request):
    term: str = ""
    explainer: Optional[str] = None


class ExplainerRequest(_Request):
    event: str = ""
    description: str = ""
    contexts: List[ExplainerTerm] = []


class ImageBlockRequest(_Request):
    image_url: StrictStr = Field(..., alias="imageUrl", min_length=1)
    caption: Optional[str] = None
    attribution: Optional[str] = None


class EventContextsRequest(_Request):
    event: StrictStr = Field(..., min_length=1)
    description: str = ""


class AnalysisContextsRequest(_Request):
    section: StrictStr = Field(..., min_length=1)
    items: List[Any] = []
