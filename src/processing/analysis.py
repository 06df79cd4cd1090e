"""
Generic LLM helpers for draft enrichment: analysis sections, contextual
explainers, phased timelines and a plain (non-search) timeline.

Unlike the search-augmented timeline these helpers do not degrade: backend
errors raise LLMError and unusable JSON raises LLMResponseError, except for
the two explainer helpers which return an empty list on bad JSON.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from core.schemas import AnalysisSection, ContextTerm, LegacyTimelineEvent, TimelinePhase
from processing.llm_json import LLMResponseError, parse_json
from services.llm import ChatCompletionClient

logger = logging.getLogger(__name__)


def _system_prompt(schema_description: str) -> str:
    return f"""You are a precise news editor.
Always respond ONLY with valid JSON matching this schema:
{schema_description}
Do not include markdown, code fences, or commentary."""


async def call_json(
    llm: ChatCompletionClient,
    prompt: str,
    schema_description: Optional[str] = None,
) -> Any:
    """
    One chat completion whose content must be JSON.
    """
    system_prompt = _system_prompt(schema_description) if schema_description else None
    response = await llm.chat(system_prompt, prompt)
    content = response["content"].strip()

    try:
        return parse_json(content)
    except LLMResponseError:
        logger.error(f"Raw model output: {content[:500]}")
        raise


def _validate_list(model: type[BaseModel], items: Any) -> List[Dict[str, Any]]:
    if not isinstance(items, list):
        raise LLMResponseError(f"Expected a JSON array, got {type(items).__name__}")
    try:
        return [model.model_validate(item).model_dump() for item in items]
    except ValidationError as e:
        raise LLMResponseError(f"Unexpected item shape: {e}") from e


def _key(result: Any, key: str) -> Any:
    if not isinstance(result, dict) or key not in result:
        raise LLMResponseError(f"Model output is missing '{key}'")
    return result[key]


def _context_terms(items: Any) -> List[Dict[str, str]]:
    """Keep only well-formed {term, explainer} pairs."""
    if not isinstance(items, list):
        return []
    terms = []
    for item in items:
        if isinstance(item, dict) and item.get("term") and item.get("explainer"):
            terms.append(ContextTerm(term=str(item["term"]), explainer=str(item["explainer"])).model_dump())
    return terms


async def generate_gpt_timeline(
    llm: ChatCompletionClient,
    title: str,
    overview: str,
    instructions: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Legacy-shaped timeline events from the generic model."""
    schema = """
{
  "timeline": [
    { "date": "YYYY-MM-DD", "event": "string", "description": "string",
      "significance": 1|2|3, "sourceLink": null }
  ]
}"""

    prompt = f"""{instructions or "You are a news editor."}
Create a concise chronological timeline of key developments for the topic:
"{title}"
Make descriptions factual, data-rich, and written as short bullet summaries.

Context:
{overview}

Return 10–15 events.
Each must have:
- date (ISO format)
- event
- short description
- significance (1=low,2=medium,3=high)

Return only valid JSON.
"""

    result = await call_json(llm, prompt, schema)
    return _validate_list(LegacyTimelineEvent, _key(result, "timeline"))


async def generate_analysis(
    llm: ChatCompletionClient,
    title: str,
    overview: str,
    instructions: Optional[str] = None,
) -> Dict[str, Any]:
    """Stakeholders, FAQs and future-looking Q&A for a draft."""
    schema = """
{
  "analysis": {
    "stakeholders": [{ "name": "string", "detail": "string" }],
    "faqs": [{ "question": "string", "answer": "string" }],
    "future": [{ "question": "string", "answer": "string" }]
  }
}"""

    prompt = f"""{instructions or "You are a political analyst creating structured insights."}
Theme: "{title}"

Context:
{overview}

Return three sections:
1. stakeholders – list of key people/institutions and their roles.
2. faqs – common reader questions with concise factual answers.
3. future – forward-looking questions with short, reasoned answers.

Keep all answers under 50 words.
Return only valid JSON.
"""

    result = await call_json(llm, prompt, schema)
    try:
        return AnalysisSection.model_validate(_key(result, "analysis")).model_dump()
    except ValidationError as e:
        raise LLMResponseError(f"Unexpected analysis shape: {e}") from e


async def generate_contexts(llm: ChatCompletionClient, overview: str) -> List[Dict[str, str]]:
    """Up to 8 explainers for hard terms in an overview."""
    prompt = f"""
You are a clear and factual news editor.
From the following overview, identify up to 8 important or complex terms that a reader might not immediately understand.

Return JSON only:
[
  {{ "term": "term or phrase", "explainer": "short, clear, factual, under 25 words" }}
]

Overview:
{overview}
"""

    try:
        result = await call_json(llm, prompt)
    except LLMResponseError:
        logger.warning("Context JSON parse error, returning no contexts")
        return []
    return _context_terms(result)


async def generate_explainers_for_event(
    llm: ChatCompletionClient,
    event: str,
    description: str,
    terms: List[str],
) -> List[Dict[str, str]]:
    """Explainers for the terms an editor attached to an event."""
    terms = [t for t in terms if t]
    if not terms:
        return []

    term_lines = "\n".join(f"- {t}" for t in terms)
    prompt = f"""
You are a concise factual explainer.
For the given event, write a short (under 25 words) neutral definition for each listed term.

Event title: {event}
Event description: {description}

Terms to explain:
{term_lines}

Return ONLY valid JSON:
[
  {{"term": "string", "explainer": "string"}}
]
"""

    try:
        result = await call_json(llm, prompt)
    except LLMResponseError:
        logger.warning("Invalid JSON for event explainer, returning none")
        return []
    return _context_terms(result)


async def generate_contexts_for_timeline_event(
    llm: ChatCompletionClient,
    event: str,
    description: str,
) -> List[Dict[str, str]]:
    prompt = f"""
You are a concise factual news explainer.
Given the event below, identify key proper nouns, organizations, or technical terms a general reader may not know.
For each, write a short (under 20 words) neutral explanation.

Event Title: {event}
Event Description: {description}

Return ONLY valid JSON:
[
  {{"term": "string", "explainer": "string"}}
]
"""
    result = await call_json(llm, prompt, '[{"term": "string", "explainer": "string"}]')
    return _validate_list(ContextTerm, result)


async def generate_contexts_for_analysis(
    llm: ChatCompletionClient,
    section_key: str,
    items: List[Any],
) -> List[Dict[str, str]]:
    prompt = f"""
You are a concise factual explainer for a news analysis section.
Section: {section_key}

For each entry below, suggest short (under 20 words) neutral explainers for key names or entities readers may not know.

Entries:
{json.dumps(items, indent=2, ensure_ascii=False)}

Return ONLY valid JSON:
[
  {{"term": "string", "explainer": "string"}}
]
"""
    result = await call_json(llm, prompt, '[{"term": "string", "explainer": "string"}]')
    return _validate_list(ContextTerm, result)


async def generate_phased_timeline(
    llm: ChatCompletionClient,
    title: str,
    overview: str,
) -> List[Dict[str, Any]]:
    """Group the story into 3-5 phases, each with its own events."""
    schema = """
{
  "phases": [
    {
      "title": "string",
      "description": "string",
      "events": [
        { "date": "YYYY-MM-DD", "event": "string", "description": "string", "significance": 1|2|3 }
      ]
    }
  ]
}"""

    prompt = f"""
You are a news timeline editor.

From the overview and known chronology, organize key events into 3–5 major *phases* of the story.
Each phase should have:
- a clear title
- a 1–2 sentence description summarizing that phase
- a chronological subset of key events under it

Topic: {title}

Context:
{overview}

Return valid JSON matching the schema above.
"""

    result = await call_json(llm, prompt, schema)
    return _validate_list(TimelinePhase, _key(result, "phases"))
