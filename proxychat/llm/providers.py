from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Sequence

import requests

from proxychat.config import Settings
from proxychat.models.core import Turn

log = logging.getLogger(__name__)

GEMINI_FALLBACK_MODELS = ("gemini-2.5-flash", "gemini-2.0-flash")


class ProviderUnavailableError(RuntimeError):
    pass


class QuotaExceededError(RuntimeError):
    pass


class ModelNotFoundError(RuntimeError):
    pass


def raise_for_quota(response, provider: str) -> None:
    if response.status_code == 429:
        raise QuotaExceededError(f"{provider}_http_429")


class BaseTextProvider(ABC):
    name = "base"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.max_input_chars = settings.llm_max_input_chars

    def _truncate(self, text: str) -> str:
        return text[: self.max_input_chars]

    @property
    def enabled(self) -> bool:
        return True

    @abstractmethod
    def generate_text(self, history: Sequence[Turn], new_input: str) -> str:
        raise NotImplementedError


class StubTextProvider(BaseTextProvider):
    name = "stub"

    def generate_text(self, history: Sequence[Turn], new_input: str) -> str:
        del history
        return f"[stub] {self._truncate(new_input)[:80]}"


class GeminiProvider(BaseTextProvider):
    name = "gemini"

    @property
    def enabled(self) -> bool:
        return bool(self.settings.gemini_api_key)

    def _contents(self, history: Sequence[Turn], new_input: str) -> dict[str, object]:
        contents: list[dict[str, object]] = []
        system_parts: list[dict[str, str]] = []
        for turn in history:
            if turn.role == "system":
                system_parts.append({"text": self._truncate(turn.text)})
                continue
            contents.append({"role": turn.role, "parts": [{"text": self._truncate(turn.text)}]})
        contents.append({"role": "user", "parts": [{"text": self._truncate(new_input)}]})
        body: dict[str, object] = {"contents": contents}
        if system_parts:
            body["systemInstruction"] = {"parts": system_parts}
        return body

    def _extract_text(self, response) -> str:
        parsed = response.json()
        candidates = parsed.get("candidates") or []
        if not candidates:
            return "..."
        parts = (candidates[0].get("content") or {}).get("parts") or []
        if not parts or not isinstance(parts[0], dict):
            return "..."
        text = parts[0].get("text")
        if not isinstance(text, str) or not text.strip():
            return "..."
        return text.strip()

    def _call(self, body: dict[str, object], model: str) -> str:
        response = requests.post(
            f"{self.settings.gemini_base_url}/models/{model}:generateContent",
            params={"key": self.settings.gemini_api_key},
            headers={"Content-Type": "application/json; charset=UTF-8"},
            data=json.dumps(body),
            timeout=30,
        )
        raise_for_quota(response, "gemini")
        if response.status_code == 404:
            raise ModelNotFoundError(f"gemini model not found: {model}")
        if response.status_code >= 400:
            raise RuntimeError(f"Gemini HTTP {response.status_code}: {response.text[:200]}")
        return self._extract_text(response)

    def _model_chain(self) -> list[str]:
        configured = self.settings.gemini_model
        chain = [configured]
        if not configured.endswith("-latest"):
            chain.append(f"{configured}-latest")
        for fallback in GEMINI_FALLBACK_MODELS:
            if fallback not in chain:
                chain.append(fallback)
        return chain

    def generate_text(self, history: Sequence[Turn], new_input: str) -> str:
        if not self.enabled:
            raise ProviderUnavailableError("gemini_missing_api_key")
        body = self._contents(history, new_input)
        tried: list[str] = []
        for model in self._model_chain():
            try:
                return self._call(body, model)
            except ModelNotFoundError:
                log.warning("gemini_model_not_found model=%s trying_next=1", model)
                tried.append(model)
        raise ModelNotFoundError(f"Gemini model not found. Tried: {', '.join(tried)}")


class OpenRouterProvider(BaseTextProvider):
    name = "openrouter"

    @property
    def enabled(self) -> bool:
        return bool(self.settings.openrouter_api_key)

    def _messages(self, history: Sequence[Turn], new_input: str) -> list[dict[str, str]]:
        messages = [
            {"role": "assistant" if turn.role == "model" else turn.role, "content": self._truncate(turn.text)}
            for turn in history
        ]
        messages.append({"role": "user", "content": self._truncate(new_input)})
        return messages

    def _headers(self) -> dict[str, str]:
        api_key = self.settings.openrouter_api_key
        if not api_key:
            raise ProviderUnavailableError("openrouter_missing_api_key")
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": "http://localhost",
            "X-Title": "proxychat",
        }

    def _extract_content(self, response) -> str:
        parsed = response.json()
        content = parsed["choices"][0]["message"]["content"]
        if not isinstance(content, str):
            raise RuntimeError("unexpected_chat_content_type")
        return content.strip()

    def generate_text(self, history: Sequence[Turn], new_input: str) -> str:
        payload: dict[str, object] = {
            "model": self.settings.openrouter_model,
            "messages": self._messages(history, new_input),
            "temperature": 0.7,
        }
        response = requests.post(
            f"{self.settings.openrouter_base_url}/chat/completions",
            headers=self._headers(),
            data=json.dumps(payload),
            timeout=20,
        )
        raise_for_quota(response, "openrouter")
        if response.status_code == 404:
            raise ModelNotFoundError("OpenRouter request returned 404. Check OPENROUTER_MODEL and OPENROUTER_BASE_URL.")
        response.raise_for_status()
        return self._extract_content(response)


def build_text_provider(settings: Settings) -> BaseTextProvider | None:
    backend = settings.text_backend
    if backend == "stub":
        return StubTextProvider(settings)
    if backend == "gemini":
        return GeminiProvider(settings)
    if backend == "openrouter":
        return OpenRouterProvider(settings)
    if backend not in {"off", "none", ""}:
        log.warning("unknown_text_backend backend=%s fallback=off", backend)
    return None
