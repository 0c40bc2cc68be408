"""LLM client — HTTP connection to a chat-completion backend.

The generator injects an LLM callable matching the protocol:

    async def __call__(self, system: str, user: str) -> str: ...

ChatCompletionLLM is the real implementation, speaking the OpenAI-style
chat-completion format used by DeepSeek. Tests substitute a stub.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from storychain.config import AIConfig

logger = logging.getLogger(__name__)


class LLM(Protocol):
    async def __call__(self, system: str, user: str) -> str: ...


class ChatCompletionLLM:
    """Async HTTP client for a chat-completion endpoint.

    Request:   POST {api_url}
               {"model": ..., "messages": [system, user], "temperature": ...,
                "max_tokens": ..., "stream": false}
    Response:  {"choices": [{"message": {"content": "..."}}]}

    Args:
        api_url:      Full URL of the completions endpoint.
        api_key:      Bearer token.
        model:        Model identifier.
        temperature:  Sampling temperature. Defaults to 0.8.
        max_tokens:   Output token cap. Defaults to 800.
        timeout:      HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str = "deepseek-chat",
        temperature: float = 0.8,
        max_tokens: int = 800,
        timeout: float = 120.0,
    ) -> None:
        self._url = api_url
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout

    @classmethod
    def from_config(cls, config: AIConfig) -> ChatCompletionLLM:
        return cls(
            api_url=config.api_url,
            api_key=config.api_key,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    def _build_body(self, system: str, user: str) -> dict:
        return {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
            "stream": False,
        }

    def _parse_response(self, data: object) -> str:
        """Pull choices[0].message.content out of a decoded response body.

        Any deviation from the documented shape is an LLMError, never a
        KeyError or AttributeError.
        """
        if not isinstance(data, dict):
            raise LLMError("Chat-completion response is not a JSON object")
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise LLMError("No choices in chat-completion response")
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            raise LLMError("Chat-completion choice has no message")
        content = message.get("content")
        if content is not None and not isinstance(content, str):
            raise LLMError(
                f"Chat-completion content is {type(content).__name__}, not text"
            )
        text = (content or "").strip()
        if not text:
            raise LLMError("Empty completion from chat-completion backend")
        return text

    def _describe_failure(self, exc: Exception) -> str:
        if isinstance(exc, httpx.HTTPStatusError):
            return f"DeepSeek endpoint answered HTTP {exc.response.status_code}"
        if isinstance(exc, httpx.TimeoutException):
            return f"DeepSeek endpoint gave no answer within {self._timeout}s"
        if isinstance(exc, httpx.ConnectError):
            return f"DeepSeek endpoint {self._url} is unreachable"
        if isinstance(exc, (httpx.UnsupportedProtocol, httpx.InvalidURL)):
            return f"DeepSeek endpoint URL {self._url!r} is not usable"
        return f"DeepSeek request failed ({type(exc).__name__}: {exc})"

    async def __call__(self, system: str, user: str) -> str:
        body = self._build_body(system, user)
        logger.debug("llm call url=%s prompt_len=%d", self._url, len(user))

        # InvalidURL does not derive from HTTPError
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json=body, headers=self._headers())
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise LLMError(self._describe_failure(e)) from e
        except ValueError as e:
            raise LLMError("DeepSeek endpoint returned a non-JSON body") from e

        text = self._parse_response(data)
        logger.debug("llm response len=%d", len(text))
        return text


class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
