from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional

from launchtidy.core.errors import ProviderError, ValidationError

from .providers import HttpStream, Message, decode_event, iterate_in_thread, make_default_http_stream

_CODE = "openai"


@dataclass(frozen=True)
class OpenAIChatConfig:
    api_base: str = "https://api.openai.com"
    api_key_env: str = "OPENAI_API_KEY"
    default_model: str = "gpt-4o-mini"
    timeout_s: float = 120.0


class OpenAIChatClient:
    """
    Minimal OpenAI-compatible Chat Completions streaming client (no extra dependency).

    `api_base` may point at any compatible server; `/v1/chat/completions` is appended
    unless the base already ends with `/v1`.
    """

    def __init__(self, *, config: Optional[OpenAIChatConfig] = None, http_stream: Optional[HttpStream] = None) -> None:
        self._config = config or OpenAIChatConfig()
        self._http_stream = http_stream or make_default_http_stream("OpenAI", _CODE)

    @property
    def config(self) -> OpenAIChatConfig:
        return self._config

    def _url(self) -> str:
        base = self._config.api_base.rstrip("/")
        if base.endswith("/v1"):
            return base + "/chat/completions"
        return base + "/v1/chat/completions"

    def stream_chat(
        self,
        *,
        model: str,
        messages: List[Message],
        temperature: float = 0.4,
        api_key: Optional[str] = None,
    ) -> Iterator[str]:
        if not isinstance(model, str) or not model:
            raise ValidationError(code="intake.invalid", message="model must be a non-empty string")
        if not messages:
            raise ValidationError(code="intake.invalid", message="messages must be non-empty")

        key = api_key or os.environ.get(self._config.api_key_env)
        if not isinstance(key, str) or not key:
            raise ProviderError(code="intake.missing_api_key", message=f"Missing OpenAI API key (env: {self._config.api_key_env})")

        headers = {"authorization": f"Bearer {key}", "content-type": "application/json", "accept": "text/event-stream"}
        body: Dict[str, Any] = {
            "model": model,
            "messages": [dict(m) for m in messages],
            "temperature": float(temperature),
            "stream": True,
        }
        for payload in self._http_stream(self._url(), headers=headers, body=body, timeout_s=self._config.timeout_s):
            if payload.strip() == "[DONE]":
                return
            event = decode_event(payload, _CODE)
            if event is None:
                continue
            if isinstance(event.get("error"), dict):
                raise ProviderError(code="intake.openai_stream_error", message="OpenAI stream error", data=event["error"])
            for choice in event.get("choices") or []:
                delta = choice.get("delta") if isinstance(choice, dict) else None
                text = delta.get("content") if isinstance(delta, dict) else None
                if isinstance(text, str) and text:
                    yield text


class OpenAIChatProvider:
    def __init__(self, *, client: OpenAIChatClient, model: str, temperature: float = 0.4, api_key: Optional[str] = None) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature
        self._api_key = api_key

    @property
    def model(self) -> str:
        return self._model

    def stream(self, *, messages: List[Message]) -> AsyncIterator[str]:
        fragments = self._client.stream_chat(
            model=self._model,
            messages=messages,
            temperature=self._temperature,
            api_key=self._api_key,
        )
        return iterate_in_thread(fragments)
