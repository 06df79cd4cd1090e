import pytest

from processing.llm_json import LLMResponseError, parse_json, strip_code_fence


def test_strip_code_fence():
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('```\n[1]\n```') == "[1]"
    assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'


def test_parse_json_raises_on_prose():
    with pytest.raises(LLMResponseError):
        parse_json("Here is your timeline: {")


def test_parse_json_empty():
    with pytest.raises(LLMResponseError):
        parse_json("")
