import pytest

from services.config import Config, LLMConfig
from services.database import DocumentStore
from services.llm import LLMError


class FakeLLM:
    """Scripted chat backend. Each reply is a content string or an exception."""

    def __init__(self, *replies, api_key="test-key"):
        self.replies = list(replies)
        self.api_key = api_key
        self.calls = []

    async def chat(self, system_prompt, user_prompt, **kwargs):
        self.calls.append({"system": system_prompt, "prompt": user_prompt, **kwargs})
        if not self.replies:
            raise LLMError("No scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return {"content": reply, "latency_ms": 1, "finish_reason": "stop"}


class FakeSearch:
    name = "fake"

    def __init__(self, results=None, error=None):
        self.results = results or []
        self.error = error
        self.queries = []

    async def search(self, query, **kwargs):
        self.queries.append((query, kwargs))
        if self.error is not None:
            raise self.error
        return self.results


@pytest.fixture
def store(tmp_path):
    return DocumentStore(str(tmp_path / "console.db"))


@pytest.fixture
def config(tmp_path):
    return Config(
        DATABASE_PATH=str(tmp_path / "console.db"),
        sonar=LLMConfig(base_url="https://sonar.test", model="sonar", api_key="sonar-key"),
        openai=LLMConfig(base_url="https://openai.test/v1", model="gpt-test", api_key="openai-key"),
    )
