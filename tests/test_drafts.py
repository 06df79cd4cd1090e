import asyncio

import pytest

from core.entities import UNSET
from services.drafts import (
    DraftNotFoundError,
    DraftRepository,
    InvalidTimelineOperation,
    TimelineIndexError,
    build_all_categories,
    slugify,
)


def run(coro):
    return asyncio.run(coro)


def test_slugify():
    assert slugify("India's G20  Presidency") == "indias-g20-presidency"


def test_build_all_categories_dedupes_and_drops_blank():
    assert build_all_categories("Politics", ["Economy", " Economy ", "", None, "Politics"]) == ["Politics", "Economy"]
    assert build_all_categories(None) == []


def test_create_draft_applies_defaults(store):
    repo = DraftRepository(store)

    async def scenario():
        draft_id = await repo.create_draft({
            "title": "Farm Laws Protest",
            "category": "Politics",
            "secondaryCategories": ["Economy"],
            "tags": [" Farm Laws", "farm laws", "Protest"],
        })
        return await repo.fetch_draft(draft_id)

    draft = run(scenario())
    assert draft["slug"] == "farm-laws-protest"
    assert draft["type"] == "Theme"
    assert draft["status"] == "draft"
    assert draft["tags"] == ["farm-laws", "protest"]
    assert draft["allCategories"] == ["Politics", "Economy"]
    assert draft["timeline"] == []
    assert draft["analysis"] == {"stakeholders": [], "faqs": [], "future": []}
    assert draft["createdAt"] == draft["updatedAt"]


def test_update_draft_merges_and_keeps_created_at(store):
    repo = DraftRepository(store)

    async def scenario():
        draft_id = await repo.create_draft({"title": "T", "category": "Politics"})
        before = await repo.fetch_draft(draft_id)
        await repo.update_draft(draft_id, {
            "secondaryCategories": ["World"],
            "createdAt": "1999-01-01",
            "editorNotes": UNSET,
            "analysis": {"faqs": [{"question": "q", "answer": "a"}]},
        })
        return before, await repo.fetch_draft(draft_id)

    before, after = run(scenario())
    assert after["createdAt"] == before["createdAt"]
    assert after["allCategories"] == ["Politics", "World"]
    assert after["editorNotes"] == ""
    assert after["analysis"]["faqs"] == [{"question": "q", "answer": "a"}]
    assert after["analysis"]["stakeholders"] == []


def test_update_missing_draft_raises(store):
    with pytest.raises(DraftNotFoundError):
        run(DraftRepository(store).update_draft("nope", {"title": "x"}))


def test_timeline_editing(store):
    repo = DraftRepository(store)

    async def scenario():
        draft_id = await repo.create_draft({"title": "T"})
        await repo.add_timeline_event(draft_id, {"event": "First", "date": "2024-01-01", "origin": "gpt"})
        await repo.add_image_block(draft_id, "https://img.test/a.png", caption="Crowd")
        await repo.add_timeline_events(draft_id, [{"event": "Second"}, {"event": "Third"}])
        await repo.update_timeline_event(draft_id, 0, {"description": "Edited"})
        await repo.delete_timeline_event(draft_id, 2)
        return draft_id, await repo.fetch_draft(draft_id)

    draft_id, draft = run(scenario())
    timeline = draft["timeline"]

    assert [b["type"] for b in timeline] == ["event", "image", "event"]
    assert timeline[0]["title"] == "First"
    assert timeline[0]["description"] == "Edited"
    assert "origin" not in timeline[0]
    assert timeline[2]["title"] == "Third"

    with pytest.raises(TimelineIndexError):
        run(repo.update_timeline_event(draft_id, 5, {"event": "x"}))
    with pytest.raises(TimelineIndexError):
        run(repo.delete_timeline_event(draft_id, -1))
    with pytest.raises(InvalidTimelineOperation):
        run(repo.update_timeline_event(draft_id, 1, {"event": "x"}))


def test_publish_copies_to_collection_with_http_sources(store):
    repo = DraftRepository(store)

    async def scenario():
        draft_id = await repo.create_draft({"title": "Budget 2024", "type": "Story"})
        await repo.add_timeline_event(draft_id, {
            "event": "Tabled",
            "sources": [
                {"title": "ok", "link": "https://x.test/a"},
                {"title": "bad", "link": "ftp://x.test/b"},
            ],
        })
        await repo.add_image_block(draft_id, "https://img.test/a.png")
        path = await repo.publish_draft(draft_id)
        return draft_id, path

    draft_id, path = run(scenario())
    assert path == "stories/budget-2024"

    published = run(store.get("stories", "budget-2024"))
    assert published["status"] == "published"
    assert published["publishedAt"]
    assert [s["title"] for s in published["sources"]] == ["ok"]
    assert run(store.get("drafts", draft_id))["status"] == "published"


def test_delete_draft_removes_published_copy(store):
    repo = DraftRepository(store)

    async def scenario():
        draft_id = await repo.create_draft({"title": "Gone"})
        await repo.publish_draft(draft_id)
        deleted = await repo.delete_draft(draft_id)
        return deleted, await store.get("themes", "gone"), await repo.fetch_draft(draft_id)

    deleted, published, draft = run(scenario())
    assert deleted is True
    assert published is None
    assert draft is None


def test_publish_tolerates_loosely_typed_legacy_blocks(store):
    repo = DraftRepository(store)

    async def scenario():
        draft_id = await repo.create_draft({"title": "Old Story", "type": "Story"})
        await store.set("drafts", draft_id, {"timeline": [
            {"id": "1", "title": "Untyped", "description": None, "significance": "high",
             "sources": [{"link": "https://x.test/a"}, "junk"]},
            {"id": "2", "type": "image", "imageUrl": "https://img.test/a.png"},
        ]}, merge=True)
        return await repo.publish_draft(draft_id)

    assert run(scenario()) == "stories/old-story"
    published = run(store.get("stories", "old-story"))
    assert published["sources"] == [{"link": "https://x.test/a"}]
