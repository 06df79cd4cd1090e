"""
Timeline generation against a search-augmented chat model.

The exchange is a small state machine:

    ATTEMPT --parsed--> DONE
    ATTEMPT --bad JSON / bad shape--> RETRY --parsed--> DONE
    ATTEMPT --backend error--> DEGRADED
    RETRY --anything else--> DEGRADED

DEGRADED yields an empty event list. Callers must read an empty list as
"generation unavailable", not as "the topic has no events".
"""
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from core.schemas import SonarTimeline
from processing.llm_json import LLMResponseError, parse_json
from services.llm import ChatCompletionClient, LLMError

logger = logging.getLogger(__name__)

NO_OVERVIEW = "(none provided)"

RETRY_OVERRIDE = """
IMPORTANT OVERRIDE:
- STRICT LIMIT: No more than 12 events.
- Descriptions under 3 lines.
- Output MUST be parseable JSON.
- ABSOLUTELY NO text outside JSON.
"""

_PLACEHOLDER = re.compile(r"\{\{(title|overview)\}\}")


class GenerationState(Enum):
    ATTEMPT = "attempt"
    RETRY = "retry"
    DEGRADED = "degraded"
    DONE = "done"


@dataclass
class TimelineResult:
    state: GenerationState
    events: List[Dict[str, Any]] = field(default_factory=list)
    calls: int = 0


def render_prompt(template: str, title: str, overview: Optional[str]) -> str:
    """
    Fill the first {{title}} and the first {{overview}}; later copies stay literal.
    """
    values = {"title": title, "overview": overview or NO_OVERVIEW}

    def substitute(match: re.Match) -> str:
        return values.pop(match.group(1), match.group(0))

    return _PLACEHOLDER.sub(substitute, template)


def sanitize_timeline(content: str) -> Optional[List[Dict[str, Any]]]:
    """
    Parse and validate raw model output.
    Returns None unless every event sanitizes cleanly.
    """
    try:
        timeline = SonarTimeline.model_validate(parse_json(content))
    except (LLMResponseError, ValidationError) as e:
        logger.error(f"Unusable timeline output: {e}")
        logger.error(f"Offending snippet: {content[:300]}")
        return None

    return [event.model_dump(by_alias=True) for event in timeline.events]


class TimelineGenerator:
    def __init__(
        self,
        llm: ChatCompletionClient,
        *,
        temperature: float = 0.1,
        max_tokens: int = 4096,
        retry_max_tokens: int = 3000,
    ):
        self.llm = llm
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.retry_max_tokens = retry_max_tokens

    async def _call(
        self,
        system_prompt: str,
        prompt: str,
        max_tokens: int,
        model: Optional[str],
    ) -> Optional[str]:
        try:
            response = await self.llm.chat(
                system_prompt,
                prompt,
                temperature=self.temperature,
                max_tokens=max_tokens,
                model=model,
            )
        except LLMError as e:
            logger.error(f"Timeline backend error: {e}")
            return None

        content = response["content"]
        logger.info(f"Raw timeline output snippet: {content[:500]}")
        return content

    async def run(
        self,
        topic: str,
        overview: Optional[str],
        system_prompt: str,
        user_prompt_template: str,
        model: Optional[str] = None,
    ) -> TimelineResult:
        prompt = render_prompt(user_prompt_template, topic, overview)
        result = TimelineResult(state=GenerationState.ATTEMPT)

        while result.state in (GenerationState.ATTEMPT, GenerationState.RETRY):
            if result.state is GenerationState.ATTEMPT:
                content = await self._call(system_prompt, prompt, self.max_tokens, model)
                result.calls += 1
                if content is None:
                    result.state = GenerationState.DEGRADED
                    continue
                events = sanitize_timeline(content)
                if events is None:
                    logger.warning("Timeline output unusable, retrying with stricter prompt")
                    result.state = GenerationState.RETRY
                else:
                    result.events, result.state = events, GenerationState.DONE

            else:
                content = await self._call(
                    system_prompt, prompt + RETRY_OVERRIDE, self.retry_max_tokens, model
                )
                result.calls += 1
                events = sanitize_timeline(content) if content is not None else None
                if events is None:
                    logger.error("Retry also failed, returning no events")
                    result.state = GenerationState.DEGRADED
                else:
                    result.events, result.state = events, GenerationState.DONE

        logger.info(
            f"Timeline for '{topic}': {result.state.value}, "
            f"{len(result.events)} events, {result.calls} call(s)"
        )
        return result

    async def generate_timeline(
        self,
        topic: str,
        overview: Optional[str],
        system_prompt: str,
        user_prompt_template: str,
        model: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        result = await self.run(topic, overview, system_prompt, user_prompt_template, model)
        return result.events
