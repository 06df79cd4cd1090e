"""
DraftRepository - CRUD, timeline editing and publishing for drafts.
Every write goes through strip_unset so no unset field reaches the store.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from core.tags import dedupe_tags
from processing.normalizer import (
    image_block,
    normalize_for_read,
    strip_unset,
    to_block,
    update_block,
)
from services.database import DocumentStore, server_timestamp

logger = logging.getLogger(__name__)

DRAFTS = "drafts"
STORIES = "stories"
THEMES = "themes"


class DraftNotFoundError(Exception):
    def __init__(self, draft_id: str):
        super().__init__(f"Draft not found: {draft_id}")
        self.draft_id = draft_id


class TimelineIndexError(IndexError):
    pass


class InvalidTimelineOperation(ValueError):
    pass


def slugify(title: str) -> str:
    slug = re.sub(r"\s+", "-", (title or "").lower())
    return re.sub(r"[^\w-]", "", slug)


def build_all_categories(primary: Optional[str], secondary: Optional[Iterable[str]] = None) -> List[str]:
    merged = [primary, *(secondary or [])]
    seen = {}
    for category in merged:
        if category and category.strip():
            seen.setdefault(category.strip(), True)
    return list(seen)


def ensure_analysis(analysis: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    analysis = analysis or {}
    return {
        **analysis,
        "stakeholders": analysis.get("stakeholders") or [],
        "faqs": analysis.get("faqs") or [],
        "future": analysis.get("future") or [],
    }


def normalize_draft(data: Dict[str, Any]) -> Dict[str, Any]:
    """Fill fields that older drafts may lack."""
    return {
        **data,
        "isPinned": data.get("isPinned", data.get("isPinnedFeatured", False)),
        "secondaryCategories": data.get("secondaryCategories") or [],
        "secondarySubcategories": data.get("secondarySubcategories") or [],
        "allCategories": data.get("allCategories")
        or build_all_categories(data.get("category"), data.get("secondaryCategories")),
        "analysis": ensure_analysis(data.get("analysis")),
        "timeline": data.get("timeline") or [],
    }


def published_collection(draft: Mapping[str, Any]) -> str:
    return STORIES if draft.get("type") == "Story" else THEMES


class DraftRepository:
    def __init__(self, store: DocumentStore):
        self.store = store

    # ----------------------------
    # CRUD
    # ----------------------------

    async def create_draft(self, data: Mapping[str, Any]) -> str:
        is_pinned = data.get("isPinned", data.get("isPinnedFeatured", False))
        now = server_timestamp()
        draft = {
            "title": data.get("title") or "",
            "type": data.get("type") or "Theme",
            "overview": data.get("overview") or "",
            "category": data.get("category") or "",
            "subcategory": data.get("subcategory") or "",
            "secondaryCategories": data.get("secondaryCategories") or [],
            "secondarySubcategories": data.get("secondarySubcategories") or [],
            "allCategories": data.get("allCategories")
            or build_all_categories(data.get("category"), data.get("secondaryCategories")),
            "tags": dedupe_tags(data.get("tags") or []),
            "imageUrl": data.get("imageUrl") or "",
            "sources": data.get("sources") or [],
            "timeline": [],
            "cardDescription": data.get("cardDescription") or "",
            "cardDescriptionHome": data.get("cardDescriptionHome") or "",
            "cardDescriptionTheme": data.get("cardDescriptionTheme") or "",
            "cardDescriptionStory": data.get("cardDescriptionStory") or "",
            "analysis": ensure_analysis(None),
            "contexts": data.get("contexts") or [],
            "disableDepthToggle": data.get("disableDepthToggle") or False,
            "isPinned": is_pinned,
            "isPinnedFeatured": data.get("isPinnedFeatured", is_pinned),
            "isCompactCard": data.get("isCompactCard", False),
            "pinnedCategory": data.get("pinnedCategory", "All"),
            "keywords": data.get("keywords") or [],
            "status": data.get("status") or "draft",
            "slug": data.get("slug") or slugify(data.get("title") or ""),
            "editorNotes": data.get("editorNotes") or "",
            "createdAt": now,
            "updatedAt": now,
        }

        draft_id = await self.store.add(DRAFTS, strip_unset(draft))
        logger.info(f"Created draft {draft_id}: {draft['title']}")
        return draft_id

    async def fetch_drafts(self) -> List[Dict[str, Any]]:
        return [normalize_draft(d) for d in await self.store.list(DRAFTS)]

    async def fetch_draft(self, draft_id: str) -> Optional[Dict[str, Any]]:
        data = await self.store.get(DRAFTS, draft_id)
        if data is None:
            return None
        return normalize_draft({"id": draft_id, **data})

    async def _require(self, draft_id: str) -> Dict[str, Any]:
        draft = await self.fetch_draft(draft_id)
        if draft is None:
            raise DraftNotFoundError(draft_id)
        return draft

    async def update_draft(self, draft_id: str, patch: Mapping[str, Any]) -> None:
        """
        Partial update merged into the stored draft.
        Stamps updatedAt; createdAt is never overwritten.
        """
        existing = await self._require(draft_id)

        update = {k: v for k, v in patch.items() if k not in ("id", "createdAt")}
        if "tags" in update:
            update["tags"] = dedupe_tags(update["tags"] or [])
        if "category" in update or "secondaryCategories" in update:
            update["allCategories"] = build_all_categories(
                update.get("category", existing.get("category")),
                update.get("secondaryCategories", existing.get("secondaryCategories")),
            )
        update["updatedAt"] = server_timestamp()

        await self.store.set(DRAFTS, draft_id, strip_unset(update), merge=True)

    async def delete_draft(self, draft_id: str) -> bool:
        """Delete a draft and any published copy keyed by its slug or id."""
        data = await self.store.get(DRAFTS, draft_id)

        if data is not None:
            slug = data.get("slug") or slugify(data.get("title") or "") or draft_id
            collection = published_collection(data)
            await self.store.delete(collection, slug)
            if slug != draft_id:
                await self.store.delete(collection, draft_id)

        deleted = await self.store.delete(DRAFTS, draft_id)
        logger.info(f"Deleted draft {draft_id} (existed={deleted})")
        return deleted

    # ----------------------------
    # Timeline
    # ----------------------------

    async def add_timeline_event(self, draft_id: str, legacy_event: Mapping[str, Any]) -> Dict[str, Any]:
        draft = await self._require(draft_id)
        block = to_block(legacy_event)
        await self.update_draft(draft_id, {"timeline": [*draft["timeline"], block]})
        return block

    async def add_timeline_events(self, draft_id: str, legacy_events: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        draft = await self._require(draft_id)
        blocks = [to_block(event) for event in legacy_events]
        await self.update_draft(draft_id, {"timeline": [*draft["timeline"], *blocks]})
        return blocks

    async def add_image_block(
        self,
        draft_id: str,
        image_url: str,
        caption: Optional[str] = None,
        attribution: Optional[str] = None,
    ) -> Dict[str, Any]:
        draft = await self._require(draft_id)
        block = image_block(image_url, caption=caption, attribution=attribution)
        await self.update_draft(draft_id, {"timeline": [*draft["timeline"], block]})
        return block

    async def update_timeline_event(
        self,
        draft_id: str,
        index: int,
        patch: Mapping[str, Any],
    ) -> Dict[str, Any]:
        draft = await self._require(draft_id)
        timeline = list(draft["timeline"])
        if not 0 <= index < len(timeline):
            raise TimelineIndexError(f"No timeline block at index {index}")
        if timeline[index].get("type") == "image":
            raise InvalidTimelineOperation("Image blocks cannot take event fields")

        timeline[index] = update_block(timeline[index], patch)
        await self.update_draft(draft_id, {"timeline": timeline})
        return timeline[index]

    async def delete_timeline_event(self, draft_id: str, index: int) -> None:
        draft = await self._require(draft_id)
        timeline = draft["timeline"]
        if not 0 <= index < len(timeline):
            raise TimelineIndexError(f"No timeline block at index {index}")
        await self.update_draft(draft_id, {"timeline": [b for i, b in enumerate(timeline) if i != index]})

    # ----------------------------
    # Publishing
    # ----------------------------

    async def publish_draft(self, draft_id: str) -> str:
        """
        Copy a draft to stories/ or themes/ keyed by slug.
        Returns "<collection>/<slug>".
        """
        draft = await self._require(draft_id)
        slug = draft.get("slug") or slugify(draft.get("title") or "")

        all_sources = [
            source
            for block in normalize_for_read(draft["timeline"])
            if block["type"] == "event" and isinstance(block.get("sources"), list)
            for source in block["sources"]
            if isinstance(source, dict) and str(source.get("link") or "").startswith("http")
        ]

        collection = published_collection(draft)
        now = server_timestamp()
        published = {k: v for k, v in draft.items() if k != "id"}
        published.update(
            {
                "allCategories": draft.get("allCategories")
                or build_all_categories(draft.get("category"), draft.get("secondaryCategories")),
                "sources": all_sources,
                "publishedAt": now,
                "createdAt": draft.get("createdAt") or now,
                "status": "published",
            }
        )

        await self.store.set(collection, slug, strip_unset(published))
        await self.store.update(DRAFTS, draft_id, {"status": "published", "updatedAt": now})

        logger.info(f"Published {draft.get('type')} -> /{collection}/{slug} with {len(all_sources)} sources")
        return f"{collection}/{slug}"
