"""
Pick the news article that best matches a timeline event.
"""
import logging
import math
import re
from typing import Iterable, List, Optional, Set, Tuple

from core.entities import CandidateArticle, RankedResult

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"[^\W_]+")

EXCLUDED_TITLE_PHRASES = ("how to watch", "live stream")

# Video-sharing and sports-streaming hosts never make a useful source card
EXCLUDED_LINK_PATTERN = re.compile(
    r"(youtube\.com|youtu\.be|vimeo\.com|dailymotion\.com|twitch\.tv|"
    r"espn\.|espncricinfo\.com|cricbuzz\.com|hotstar\.com|sonyliv\.com|"
    r"fancode\.com|skysports\.com)",
    re.IGNORECASE,
)


def tokenize(text: Optional[str]) -> Set[str]:
    if not text:
        return set()
    return set(_TOKEN.findall(text.lower()))


def similarity(a: Set[str], b: Set[str]) -> float:
    """
    Cosine similarity over boolean term sets, in [0, 1].
    """
    if not a or not b:
        return 0.0
    return len(a & b) / math.sqrt(len(a) * len(b))


def is_excluded(candidate: CandidateArticle) -> bool:
    if not candidate.title:
        return True

    title = candidate.title.lower()
    if any(phrase in title for phrase in EXCLUDED_TITLE_PHRASES):
        return True

    if candidate.link and EXCLUDED_LINK_PATTERN.search(candidate.link):
        return True

    return False


def score_candidates(
    topic: str,
    description: str,
    candidates: Iterable[CandidateArticle],
) -> List[Tuple[float, CandidateArticle]]:
    """Score the candidates that survive filtering, keeping input order."""
    topic_tokens = tokenize(f"{topic} {description or ''}")

    scored = []
    for candidate in candidates:
        if is_excluded(candidate):
            continue
        candidate_tokens = tokenize(f"{candidate.title} {candidate.snippet or ''}")
        scored.append((similarity(topic_tokens, candidate_tokens), candidate))

    return scored


def rank(
    topic: str,
    description: str,
    candidates: Iterable[CandidateArticle],
) -> RankedResult:
    scored = score_candidates(topic, description, candidates)
    if not scored:
        return RankedResult.empty()

    # max() keeps the first of equal scores
    best_score, best = max(scored, key=lambda pair: pair[0])
    logger.debug(f"Best match for '{topic}': {best.title} (score: {best_score:.3f})")

    return RankedResult(image_url=best.preview_image, source_link=best.link)
