import pytest

from core.entities import CandidateArticle
from processing.ranker import is_excluded, rank, similarity, tokenize


def article(title, link="https://news.example.com/a", snippet=None, **kwargs):
    return CandidateArticle(title=title, link=link, snippet=snippet, **kwargs)


def test_tokenize_is_case_folded_alphanumeric_runs():
    assert tokenize("G20 Summit: India's bid!") == {"g20", "summit", "india", "s", "bid"}
    assert tokenize(None) == set()


def test_similarity_identical_sets_is_one():
    tokens = tokenize("budget session opens")
    assert similarity(tokens, tokens) == pytest.approx(1.0)


def test_similarity_empty_side_is_zero():
    assert similarity(set(), {"a"}) == 0.0
    assert similarity({"a"}, set()) == 0.0


def test_similarity_is_bounded():
    score = similarity({"a", "b", "c"}, {"b", "c", "d", "e"})
    assert 0.0 <= score <= 1.0


def test_all_streaming_titles_yield_empty_result():
    candidates = [
        article("How to watch the final tonight"),
        article("LIVE STREAM: parliament session"),
    ]
    result = rank("parliament session", "", candidates)
    assert result.to_dict() == {"imageUrl": None, "sourceLink": None}


def test_empty_candidates_yield_empty_result():
    assert rank("anything", "", []).to_dict() == {"imageUrl": None, "sourceLink": None}


def test_excludes_missing_title_and_video_hosts():
    assert is_excluded(article(None))
    assert is_excluded(article("Budget explained", link="https://www.youtube.com/watch?v=1"))
    assert is_excluded(article("Match report", link="https://www.cricbuzz.com/x"))
    assert not is_excluded(article("Budget explained"))


@pytest.mark.parametrize("order", [0, 1])
def test_higher_score_wins_regardless_of_order(order):
    weak = article("Weather update for Delhi", link="https://a.example.com/weak")
    strong = article("Union budget session opens in parliament", link="https://b.example.com/strong")
    candidates = [weak, strong] if order == 0 else [strong, weak]

    result = rank("budget session", "parliament", candidates)
    assert result.source_link == "https://b.example.com/strong"


def test_tie_keeps_first_seen():
    first = article("Budget session", link="https://a.example.com/1")
    second = article("Budget session", link="https://b.example.com/2")
    assert rank("budget session", "", [first, second]).source_link == "https://a.example.com/1"


def test_preview_image_prefers_media_over_enclosure():
    candidate = article(
        "Budget session",
        media_url="https://img.example.com/media.jpg",
        enclosure_url="https://img.example.com/enclosure.jpg",
    )
    assert rank("budget session", "", [candidate]).image_url == "https://img.example.com/media.jpg"

    candidate = article("Budget session", enclosure_url="https://img.example.com/enclosure.jpg")
    assert rank("budget session", "", [candidate]).image_url == "https://img.example.com/enclosure.jpg"

    assert rank("budget session", "", [article("Budget session")]).image_url is None
