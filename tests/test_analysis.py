import asyncio
import json

import pytest

from conftest import FakeLLM
from processing import analysis
from processing.llm_json import LLMResponseError
from services.llm import LLMError


def test_generate_analysis_fills_missing_sections():
    llm = FakeLLM(json.dumps({"analysis": {"stakeholders": [{"name": "RBI", "detail": "Central bank"}]}}))
    result = asyncio.run(analysis.generate_analysis(llm, "Rate cut", "Overview"))
    assert result["stakeholders"] == [{"name": "RBI", "detail": "Central bank"}]
    assert result["faqs"] == []
    assert result["future"] == []
    assert "Rate cut" in llm.calls[0]["prompt"]


def test_generate_analysis_uses_custom_instructions():
    llm = FakeLLM('{"analysis": {}}')
    asyncio.run(analysis.generate_analysis(llm, "T", "O", "Be brief."))
    assert llm.calls[0]["prompt"].startswith("Be brief.")


def test_gpt_timeline_coerces_significance():
    llm = FakeLLM(json.dumps({"timeline": [{"date": "2024-01-01", "event": "A", "significance": 5}]}))
    events = asyncio.run(analysis.generate_gpt_timeline(llm, "T", "O"))
    assert events == [{"date": "2024-01-01", "event": "A", "description": "", "significance": 2}]


def test_gpt_timeline_missing_key_raises():
    llm = FakeLLM('{"events": []}')
    with pytest.raises(LLMResponseError):
        asyncio.run(analysis.generate_gpt_timeline(llm, "T", "O"))


def test_backend_errors_propagate():
    llm = FakeLLM(LLMError("HTTP 500"))
    with pytest.raises(LLMError):
        asyncio.run(analysis.generate_phased_timeline(llm, "T", "O"))


def test_contexts_filter_incomplete_items_and_tolerate_bad_json():
    llm = FakeLLM(json.dumps([
        {"term": "Repo rate", "explainer": "Rate at which RBI lends"},
        {"term": "missing explainer"},
        "junk",
    ]))
    assert asyncio.run(analysis.generate_contexts(llm, "Overview")) == [
        {"term": "Repo rate", "explainer": "Rate at which RBI lends"}
    ]
    assert asyncio.run(analysis.generate_contexts(FakeLLM("no json"), "Overview")) == []


def test_explainers_skip_backend_without_terms():
    llm = FakeLLM()
    assert asyncio.run(analysis.generate_explainers_for_event(llm, "E", "D", ["", None])) == []
    assert llm.calls == []


def test_phased_timeline():
    llm = FakeLLM(json.dumps({"phases": [
        {"title": "Build-up", "events": [{"event": "A", "significance": 3}]},
    ]}))
    phases = asyncio.run(analysis.generate_phased_timeline(llm, "T", "O"))
    assert phases[0]["title"] == "Build-up"
    assert phases[0]["description"] is None
    assert phases[0]["events"][0]["significance"] == 3


def test_event_contexts_reject_wrong_shape():
    llm = FakeLLM('{"term": "x"}')
    with pytest.raises(LLMResponseError):
        asyncio.run(analysis.generate_contexts_for_timeline_event(llm, "E", "D"))
