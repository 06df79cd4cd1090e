import time
import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """The chat-completion backend failed or returned no content."""


class ChatCompletionClient:
    """
    Chat-completion client for OpenAI-compatible endpoints
    (the search-augmented timeline model and the generic helper model).
    One HTTP attempt per call; callers own any retry policy.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: Optional[str],
        timeout: float = 180.0,  # 3 minutes, search-augmented answers are slow
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    @property
    def url(self) -> str:
        return f"{self.base_url}/chat/completions"

    async def complete(
        self,
        messages: List[Dict[str, str]],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send one chat completion and return the content with metadata.
        """
        if not self.api_key:
            raise LLMError(f"No API key configured for {self.base_url}")

        payload: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
        }
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        start = time.time()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(self.url, json=payload, headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"LLM HTTP {e.response.status_code} from {self.url}: {e.response.text[:500]}"
            )
            raise LLMError(f"HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"Request timed out after {self.timeout}s") from e
        except (httpx.HTTPError, ValueError) as e:
            raise LLMError(f"Request failed: {e}") from e

        latency_ms = int((time.time() - start) * 1000)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None

        if not content:
            raise LLMError("Empty content from model")
        if not isinstance(content, str):
            raise LLMError(f"Unexpected content type from model: {type(content).__name__}")

        logger.info(f"{payload['model']} responded in {latency_ms} ms")

        return {
            "content": content,
            "latency_ms": latency_ms,
            "finish_reason": data["choices"][0].get("finish_reason"),
        }

    async def chat(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        return await self.complete(messages, **kwargs)
