"""
Tag canonicalization for drafts
"""
import re
from typing import Iterable, List

_WHITESPACE = re.compile(r"\s+")


def normalize_tag(tag: str) -> str:
    return _WHITESPACE.sub("-", tag.strip().lower())


def dedupe_tags(tags: Iterable[str]) -> List[str]:
    """
    Normalize every tag and drop empties and repeats, keeping first-seen order.
    """
    seen = {}
    for tag in tags:
        normalized = normalize_tag(tag)
        if normalized and normalized not in seen:
            seen[normalized] = True
    return list(seen)
