import asyncio

import pytest
from pydantic import ValidationError

from services.settings import (
    DEFAULT_SONAR_SYSTEM_PROMPT,
    DocumentSettingsProvider,
    PromptSettings,
)


def test_defaults_when_document_missing(store):
    settings = asyncio.run(DocumentSettingsProvider(store).get_settings())
    assert settings == PromptSettings()
    assert settings.sonar.timeline_system_prompt == DEFAULT_SONAR_SYSTEM_PROMPT
    assert settings.serper.prompt == "title"


def test_stored_values_override_and_blank_means_default(store):
    async def scenario():
        await store.set("settings", "global", {
            "sonar": {"model": "sonar-pro", "timelineSystemPrompt": "   "},
            "serper": {"prompt": "{{event}} news"},
        })
        return await DocumentSettingsProvider(store).get_settings()

    settings = asyncio.run(scenario())
    assert settings.sonar.model == "sonar-pro"
    assert settings.sonar.timeline_system_prompt == DEFAULT_SONAR_SYSTEM_PROMPT
    assert settings.serper.prompt == "{{event}} news"


def test_zero_ttl_reads_fresh_every_call(store):
    provider = DocumentSettingsProvider(store, ttl_seconds=0)

    async def scenario():
        first = await provider.get_settings()
        await store.set("settings", "global", {"sonar": {"model": "changed"}})
        return first, await provider.get_settings()

    first, second = asyncio.run(scenario())
    assert first.sonar.model == "sonar"
    assert second.sonar.model == "changed"


def test_ttl_caches_until_saved(store):
    provider = DocumentSettingsProvider(store, ttl_seconds=3600)

    async def scenario():
        await provider.get_settings()
        await store.set("settings", "global", {"sonar": {"model": "behind-the-cache"}})
        cached = await provider.get_settings()
        saved = await provider.save_settings({"sonar": {"model": "saved"}})
        return cached, saved

    cached, saved = asyncio.run(scenario())
    assert cached.sonar.model == "sonar"
    assert saved.sonar.model == "saved"


def test_save_rejects_bad_shape(store):
    provider = DocumentSettingsProvider(store)
    with pytest.raises(ValidationError):
        asyncio.run(provider.save_settings({"sonar": {"model": ["not", "a", "string"]}}))
    assert asyncio.run(store.get("settings", "global")) is None
