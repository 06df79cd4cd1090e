import copy

import pytest
from pydantic import ValidationError

from core.entities import UNSET
from core.schemas import EventBlock, ImageBlock
from processing.normalizer import (
    decode_block,
    image_block,
    normalize_for_read,
    read_blocks,
    sonar_event_to_legacy,
    strip_unset,
    to_block,
    update_block,
)


def contains_unset(value):
    if value is UNSET:
        return True
    if isinstance(value, dict):
        return any(contains_unset(v) for v in value.values())
    if isinstance(value, list):
        return any(contains_unset(v) for v in value)
    return False


def test_strip_unset_reaches_every_depth():
    data = {
        "a": UNSET,
        "origin": "manual",
        "nested": {"b": UNSET, "c": 1, "deeper": [{"d": UNSET, "origin": "x", "e": 2}]},
        "items": [UNSET, 3],
    }
    assert strip_unset(data) == {"nested": {"c": 1, "deeper": [{"e": 2}]}, "items": [3]}


def test_to_block_defaults():
    block = to_block({"event": "Budget tabled"})

    assert block["type"] == "event"
    assert block["title"] == "Budget tabled"
    assert block["description"] == ""
    assert block["date"] == ""
    assert block["significance"] == 2
    assert block["sources"] == []
    assert block["id"]
    assert "factStatus" not in block


def test_to_block_ids_are_unique():
    assert to_block({"event": "a"})["id"] != to_block({"event": "a"})["id"]


def test_to_block_strips_unset_inside_sources():
    block = to_block({
        "event": "A",
        "date": None,
        "significance": 9,
        "origin": "gpt",
        "factStatus": "verified",
        "factNote": UNSET,
        "sources": [
            {"title": "S", "link": "https://x.test", "imageUrl": UNSET, "preview": {"x": 1}},
        ],
    })

    assert not contains_unset(block)
    assert "origin" not in block
    assert block["date"] == ""
    assert block["significance"] == 2
    assert block["factStatus"] == "verified"
    assert "factNote" not in block
    assert block["sources"] == [{"title": "S", "link": "https://x.test", "provider": "manual"}]


def test_update_block_empty_patch_is_identity():
    existing = to_block({"event": "A", "description": "B", "date": "2024-02-01", "significance": 3})
    assert update_block(existing, {}) == existing


def test_update_block_only_touches_provided_fields():
    existing = to_block({"event": "A", "description": "B", "date": "2024-02-01", "significance": 3})
    updated = update_block(existing, {"description": "", "significance": UNSET})

    assert updated["description"] == ""
    assert updated["significance"] == 3
    assert updated["title"] == "A"


def test_update_block_keeps_null_date():
    existing = to_block({"event": "A", "date": "2024-02-01"})
    assert update_block(existing, {"date": None})["date"] is None


def test_update_block_maps_event_to_title():
    existing = to_block({"event": "A"})
    assert update_block(existing, {"event": "Renamed"})["title"] == "Renamed"


def test_normalize_for_read_does_not_mutate():
    stored = [{"id": "1", "title": "old"}, {"id": "2", "type": "image", "imageUrl": "u"}]
    snapshot = copy.deepcopy(stored)

    view = normalize_for_read(stored)

    assert stored == snapshot
    assert view[0]["type"] == "event"
    assert view[1]["type"] == "image"
    assert view[0] is not stored[0]


def test_decode_block_unknown_type_reads_as_event():
    assert decode_block({"type": "chart"})["type"] == "event"


def test_read_blocks_gives_typed_view():
    blocks = read_blocks([{"id": "1", "title": "old"}, image_block("https://img.test/a.png", caption="c")])
    assert isinstance(blocks[0], EventBlock)
    assert isinstance(blocks[1], ImageBlock)
    assert blocks[1].image_url == "https://img.test/a.png"


def test_image_block_requires_url():
    with pytest.raises(ValidationError):
        image_block(None)


def test_image_block_shape():
    block = image_block("https://img.test/a.png")
    assert block["type"] == "image"
    assert block["imageUrl"] == "https://img.test/a.png"
    assert "caption" not in block


def test_sonar_event_to_legacy_tags_sources():
    legacy = sonar_event_to_legacy({
        "date": None,
        "title": "A",
        "description": "B",
        "importance": 3,
        "sources": [{"title": "S", "url": "https://x.test", "sourceName": "X", "publishedAt": None, "imageUrl": None}],
    })
    assert legacy["event"] == "A"
    assert legacy["date"] == ""
    assert legacy["significance"] == 3
    assert legacy["sources"] == [{
        "title": "S",
        "link": "https://x.test",
        "sourceName": "X",
        "imageUrl": None,
        "pubDate": None,
        "provider": "sonar",
    }]

    block = to_block(legacy)
    assert block["sources"][0]["provider"] == "sonar"


def test_update_block_null_text_keeps_existing():
    existing = to_block({"event": "A", "description": "B"})
    updated = update_block(existing, {"event": None, "description": None})
    assert updated["title"] == "A"
    assert updated["description"] == "B"
