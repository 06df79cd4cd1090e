"""
Mapping between legacy timeline events and shared timeline blocks.

Legacy events use `event` for the headline and may carry UI-only fields.
Blocks are the tagged-union shape stored on drafts. Everything leaving this
module for the store has been deep-stripped of UNSET values and of the
legacy `origin` key.

Date defaults differ on purpose: `to_block` turns a missing date into ""
while `update_block` stores a provided None as-is.
"""
import uuid
from typing import Any, Dict, List, Mapping, Optional

from core.entities import UNSET
from core.schemas import TIMELINE_BLOCKS, EventBlock, ImageBlock, coerce_importance

BLOCK_TYPES = ("event", "image")
STRIPPED_KEYS = frozenset({"origin"})
FACT_FIELDS = ("factStatus", "factNote", "factUpdatedAt")
SOURCE_UI_FIELDS = ("preview",)
DEFAULT_PROVIDER = "manual"


def new_block_id() -> str:
    return uuid.uuid4().hex[:21]


def strip_unset(value: Any) -> Any:
    """
    Recursively drop UNSET values and stripped keys from dicts and lists.
    Always returns new containers.
    """
    if isinstance(value, Mapping):
        return {
            key: strip_unset(item)
            for key, item in value.items()
            if item is not UNSET and key not in STRIPPED_KEYS
        }
    if isinstance(value, (list, tuple)):
        return [strip_unset(item) for item in value if item is not UNSET]
    return value


def safe_date(value: Any) -> str:
    if value is None or value is UNSET:
        return ""
    return value


def _text(value: Any) -> str:
    if value is None or value is UNSET:
        return ""
    return value


def sanitize_source(source: Mapping[str, Any]) -> Dict[str, Any]:
    cleaned = {key: item for key, item in source.items() if key not in SOURCE_UI_FIELDS}
    if cleaned.get("provider") in (None, "", UNSET):
        cleaned["provider"] = DEFAULT_PROVIDER
    return cleaned


def sanitize_sources(sources: Any) -> List[Dict[str, Any]]:
    if not isinstance(sources, (list, tuple)):
        return []
    return [sanitize_source(source) for source in sources if isinstance(source, Mapping)]


def to_block(legacy: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Legacy event -> new event block with a fresh id.
    """
    block: Dict[str, Any] = {
        "id": new_block_id(),
        "type": "event",
        "title": _text(legacy.get("event")),
        "description": _text(legacy.get("description")),
        "date": safe_date(legacy.get("date")),
        "significance": coerce_importance(legacy.get("significance")),
        "sources": sanitize_sources(legacy.get("sources")),
    }
    for key in FACT_FIELDS:
        block[key] = legacy.get(key, UNSET)

    return strip_unset(block)


def _provided(patch: Mapping[str, Any], key: str) -> bool:
    return key in patch and patch[key] is not UNSET


def update_block(existing: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Apply a legacy patch to a stored event block.
    A field changes only when the patch actually carries it.
    """
    block = dict(existing)

    # A null headline or description keeps the stored text
    if _provided(patch, "event") and patch["event"] is not None:
        block["title"] = patch["event"]
    if _provided(patch, "description") and patch["description"] is not None:
        block["description"] = patch["description"]
    if _provided(patch, "date"):
        block["date"] = patch["date"]
    if _provided(patch, "significance"):
        block["significance"] = coerce_importance(patch["significance"])
    if _provided(patch, "sources"):
        block["sources"] = sanitize_sources(patch["sources"])
    for key in FACT_FIELDS:
        if _provided(patch, key):
            block[key] = patch[key]

    return strip_unset(block)


def decode_block(block: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Read-side compatibility decoder: records stored before blocks were
    tagged are viewed as event blocks. Never written back.
    """
    if block.get("type") in BLOCK_TYPES:
        return dict(block)
    return {**block, "type": "event"}


def normalize_for_read(blocks: Optional[List[Mapping[str, Any]]]) -> List[Dict[str, Any]]:
    return [decode_block(block) for block in blocks or [] if isinstance(block, Mapping)]


def read_blocks(blocks: Optional[List[Mapping[str, Any]]]) -> List[EventBlock | ImageBlock]:
    """Typed view of a stored timeline."""
    return TIMELINE_BLOCKS.validate_python(normalize_for_read(blocks))


def image_block(image_url: str, caption: Optional[str] = None, attribution: Optional[str] = None) -> Dict[str, Any]:
    block = ImageBlock(id=new_block_id(), image_url=image_url, caption=caption, attribution=attribution)
    return block.model_dump(by_alias=True, exclude_none=True)


def sonar_event_to_legacy(event: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Generated timeline event -> legacy event, tagging every source as sonar.
    """
    return {
        "date": event.get("date") or "",
        "event": event.get("title") or "",
        "description": event.get("description") or "",
        "significance": event.get("importance", UNSET),
        "sources": [
            {
                "title": source.get("title") or "",
                "link": source.get("url") or "",
                "sourceName": source.get("sourceName") or "",
                "imageUrl": source.get("imageUrl") or None,
                "pubDate": source.get("publishedAt") or None,
                "provider": "sonar",
            }
            for source in event.get("sources") or []
            if isinstance(source, Mapping)
        ],
    }
