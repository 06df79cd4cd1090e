import argparse
import asyncio

from conftest import FakeLLM
from cli import run as cli_run


def test_timeline_command_reads_stored_prompt_settings(config, store, monkeypatch):
    llm = FakeLLM('{"events": [{"title": "A"}]}')
    monkeypatch.setattr(cli_run, "ChatCompletionClient", lambda **kwargs: llm)
    asyncio.run(store.set("settings", "global", {"sonar": {
        "model": "sonar-pro",
        "timelineSystemPrompt": "Stored system prompt",
        "timelineUserPromptTemplate": "Stored: {{title}}",
    }}))

    args = argparse.Namespace(title="Floods", overview=None)
    output = asyncio.run(cli_run.run_timeline(config, args))

    assert [e["title"] for e in output["events"]] == ["A"]
    assert llm.calls[0]["system"] == "Stored system prompt"
    assert llm.calls[0]["prompt"] == "Stored: Floods"
    assert llm.calls[0]["model"] == "sonar-pro"
