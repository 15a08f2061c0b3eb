from __future__ import annotations

import http.client
import json
import os
from abc import ABC, abstractmethod
from typing import Any
from urllib import error, request

from selfheal.core.exceptions import ServiceUnavailableError
from selfheal.llm.prompts import SYSTEM_PROMPT, build_user_prompt

DEFAULT_TIMEOUT_SECONDS = 30


class LocatorSuggestionClient(ABC):
    """Provider-neutral interface for locator suggestions."""

    provider_name = "unknown"

    @abstractmethod
    def suggest_locators(self, dom_snippet: str, reference: str) -> str:
        """Returns the raw model reply, expected to hold a JSON array."""


class OpenAILocatorClient(LocatorSuggestionClient):
    provider_name = "openai"
    endpoint = "https://api.openai.com/v1/chat/completions"

    def __init__(self, api_key: str, model: str | None = None, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.api_key = api_key
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.timeout = timeout

    def suggest_locators(self, dom_snippet: str, reference: str) -> str:
        body = {
            "model": self.model,
            "temperature": 0.2,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(dom_snippet, reference)},
            ],
        }
        response = _post_json(
            self.endpoint,
            body,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        choices = response.get("choices") or []
        if not choices:
            raise ServiceUnavailableError("OpenAI returned no choices")
        return (choices[0].get("message", {}).get("content") or "").strip()


class AnthropicLocatorClient(LocatorSuggestionClient):
    provider_name = "anthropic"
    endpoint = "https://api.anthropic.com/v1/messages"

    def __init__(self, api_key: str, model: str | None = None, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.api_key = api_key
        self.model = model or os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-latest")
        self.timeout = timeout

    def suggest_locators(self, dom_snippet: str, reference: str) -> str:
        body = {
            "model": self.model,
            "max_tokens": 2048,
            "temperature": 0.2,
            "system": SYSTEM_PROMPT,
            "messages": [
                {"role": "user", "content": build_user_prompt(dom_snippet, reference)},
            ],
        }
        response = _post_json(
            self.endpoint,
            body,
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": "2023-06-01",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        parts = response.get("content", [])
        return "".join(part.get("text", "") for part in parts if isinstance(part, dict)).strip()


class GeminiLocatorClient(LocatorSuggestionClient):
    provider_name = "gemini"
    endpoint_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def __init__(self, api_key: str, model: str | None = None, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.api_key = api_key
        self.model = model or os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        self.timeout = timeout

    def suggest_locators(self, dom_snippet: str, reference: str) -> str:
        body = {
            "system_instruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": build_user_prompt(dom_snippet, reference)}],
                }
            ],
            "generationConfig": {"temperature": 0.2},
        }
        response = _post_json(
            self.endpoint_template.format(model=self.model),
            body,
            headers={
                "x-goog-api-key": self.api_key,
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        candidates = response.get("candidates", [])
        if not candidates:
            raise ServiceUnavailableError("Gemini returned no candidates")
        parts = candidates[0].get("content", {}).get("parts", [])
        return "".join(part.get("text", "") for part in parts if isinstance(part, dict)).strip()


class LazyLocatorClient(LocatorSuggestionClient):
    """Defers provider client construction until a suggestion is actually needed."""

    def __init__(self, provider: str | None = None, model: str | None = None, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.provider_name = (provider or os.getenv("LLM_PROVIDER", "openai")).lower()
        self.model = model
        self.timeout = timeout
        self._client: LocatorSuggestionClient | None = None

    def suggest_locators(self, dom_snippet: str, reference: str) -> str:
        if self._client is None:
            self._client = create_locator_client(self.provider_name, model=self.model, timeout=self.timeout)
        return self._client.suggest_locators(dom_snippet, reference)


_PROVIDERS: dict[str, tuple[type[LocatorSuggestionClient], str]] = {
    "openai": (OpenAILocatorClient, "OPENAI_API_KEY"),
    "anthropic": (AnthropicLocatorClient, "ANTHROPIC_API_KEY"),
    "gemini": (GeminiLocatorClient, "GEMINI_API_KEY"),
}


def create_locator_client(
    provider: str | None = None,
    model: str | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> LocatorSuggestionClient:
    name = (provider or os.getenv("LLM_PROVIDER", "openai")).lower()
    if name not in _PROVIDERS:
        raise ServiceUnavailableError(f"Unsupported LLM provider: {name}")
    client_class, key_variable = _PROVIDERS[name]
    api_key = os.getenv(key_variable)
    if not api_key:
        raise ServiceUnavailableError(f"{key_variable} is required when LLM_PROVIDER={name}")
    return client_class(api_key, model=model, timeout=timeout)


def _post_json(url: str, payload: dict[str, Any], headers: dict[str, str], timeout: float) -> dict[str, Any]:
    encoded = json.dumps(payload).encode("utf-8")
    req = request.Request(url, data=encoded, headers=headers, method="POST")
    try:
        with request.urlopen(req, timeout=timeout) as response:
            raw = response.read().decode("utf-8")
    except error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")
        raise ServiceUnavailableError(f"LLM request failed with status {exc.code}: {detail}") from exc
    except error.URLError as exc:
        raise ServiceUnavailableError(f"LLM request could not be completed: {exc.reason}") from exc
    except TimeoutError as exc:
        raise ServiceUnavailableError("LLM request timed out") from exc
    except (http.client.HTTPException, OSError) as exc:
        raise ServiceUnavailableError(f"LLM connection failed: {exc!r}") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ServiceUnavailableError("LLM response was not valid JSON") from exc
