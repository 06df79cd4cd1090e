"""
Prompt settings stored in the `settings/global` document.
Editors tune prompts from the console; callables read them on each request
(or through a short TTL cache) and fall back to the defaults below.
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from services.database import DocumentStore, deep_merge

logger = logging.getLogger(__name__)

SETTINGS_COLLECTION = "settings"
SETTINGS_DOC = "global"

DEFAULT_GPT_TIMELINE_PROMPT = """You are a precise news editor.
Given a topic, generate a concise chronological timeline of 10–15 key events.
Each event must include:
- date (YYYY-MM-DD)
- short event title
- 1–2 sentence factual description
- significance (1=low, 2=medium, 3=high)
Return only valid JSON with key "timeline"."""

DEFAULT_GPT_ANALYSIS_PROMPT = """You are a political analyst creating structured insights.
Given a topic and overview, produce three sections:
1. stakeholders – list key people/institutions and their roles.
2. faqs – questions readers might have with concise answers.
3. future – forward-looking questions with reasoned answers.
Keep all responses factual, under 50 words each. Return valid JSON with key "analysis"."""

DEFAULT_SONAR_SYSTEM_PROMPT = """You are a meticulous news researcher.
You must:
- Use live web search.
- Produce an exhaustive but concise chronological timeline.
- Focus on distinct, real-world events (not analysis).
- Include both major and important minor events if they move the story.
- Deduplicate overlapping coverage.
- Attach multiple reliable sources per event.
- Prefer recognized and reliable outlets across geographies.
- Output VALID JSON ONLY, no commentary, no markdown."""

DEFAULT_SONAR_USER_TEMPLATE = """Generate a chronological news timeline.

Title: {{title}}

Summary / overview:
{{overview}}

IMPORTANT RULES:
- Maximum events: 10–20
- Keep descriptions under 5 lines each
- STRICT token budget: DO NOT exceed ~3500 total tokens
- Merge micro-events where necessary
- DO NOT use ellipses (...). DO NOT include trailing commas.
- DO NOT output anything except JSON.

JSON FORMAT (MANDATORY):
{
  "events": [
    {
      "date": "YYYY-MM-DD or null",
      "title": "string",
      "description": "string",
      "importance": 1,
      "sources": [
        {
          "title": "string",
          "url": "string",
          "sourceName": "string",
          "publishedAt": "YYYY-MM-DD or null",
          "imageUrl": "string or null"
        }
      ]
    }
  ]
}

If data is uncertain, use null. ALWAYS return valid JSON."""


class GptPrompts(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timeline_prompt: str = Field(DEFAULT_GPT_TIMELINE_PROMPT, alias="timelinePrompt")
    analysis_prompt: str = Field(DEFAULT_GPT_ANALYSIS_PROMPT, alias="analysisPrompt")


class SerperPrompts(BaseModel):
    # "title" means: search for the event title as-is
    prompt: str = "title"


class SonarPrompts(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    model: str = "sonar"
    timeline_system_prompt: str = Field(DEFAULT_SONAR_SYSTEM_PROMPT, alias="timelineSystemPrompt")
    timeline_user_prompt_template: str = Field(
        DEFAULT_SONAR_USER_TEMPLATE, alias="timelineUserPromptTemplate"
    )


class PromptSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    gpt: GptPrompts = GptPrompts()
    serper: SerperPrompts = SerperPrompts()
    sonar: SonarPrompts = SonarPrompts()

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def _drop_blank(data: Any) -> Any:
    """Blank strings in the stored document mean "use the default"."""
    if isinstance(data, dict):
        return {k: _drop_blank(v) for k, v in data.items() if not (isinstance(v, str) and not v.strip())}
    return data


class SettingsProvider(ABC):
    @abstractmethod
    async def get_settings(self) -> PromptSettings:
        raise NotImplementedError


class StaticSettingsProvider(SettingsProvider):
    def __init__(self, settings: Optional[PromptSettings] = None):
        self.settings = settings or PromptSettings()

    async def get_settings(self) -> PromptSettings:
        return self.settings


class DocumentSettingsProvider(SettingsProvider):
    """
    Reads settings/global from the document store.
    ttl_seconds=0 reads on every call; otherwise the parsed settings are
    reused until the TTL expires or save_settings() is called.
    """

    def __init__(self, store: DocumentStore, ttl_seconds: float = 0.0):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._cached: Optional[PromptSettings] = None
        self._loaded_at = 0.0

    def invalidate(self) -> None:
        self._cached = None

    async def get_settings(self) -> PromptSettings:
        now = time.monotonic()
        if self._cached is not None and self.ttl_seconds > 0 and now - self._loaded_at < self.ttl_seconds:
            return self._cached

        try:
            raw = await self.store.get(SETTINGS_COLLECTION, SETTINGS_DOC) or {}
            settings = PromptSettings.model_validate(_drop_blank(raw))
        except Exception as e:
            logger.error(f"Failed to load prompt settings, using defaults: {e}")
            settings = PromptSettings()

        self._cached, self._loaded_at = settings, now
        return settings

    async def save_settings(self, patch: Dict[str, Any]) -> PromptSettings:
        """Merge `patch` into the stored document. Raises ValidationError on bad shapes."""
        current = await self.store.get(SETTINGS_COLLECTION, SETTINGS_DOC) or {}
        PromptSettings.model_validate(_drop_blank(deep_merge(current, patch)))

        await self.store.set(SETTINGS_COLLECTION, SETTINGS_DOC, patch, merge=True)
        self.invalidate()
        return await self.get_settings()
