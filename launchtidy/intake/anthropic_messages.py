from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional, Tuple

from launchtidy.core.errors import ProviderError, ValidationError

from .providers import HttpStream, Message, decode_event, iterate_in_thread, make_default_http_stream

_CODE = "anthropic"


@dataclass(frozen=True)
class AnthropicMessagesConfig:
    api_base: str = "https://api.anthropic.com"
    api_key_env: str = "ANTHROPIC_API_KEY"
    default_model: str = "claude-3-5-haiku-latest"
    timeout_s: float = 120.0
    anthropic_version: str = "2023-06-01"
    max_tokens: int = 8192


def split_system(messages: List[Message]) -> Tuple[str, List[Message]]:
    """
    Messages API wants one system string and strictly alternating turns starting with the user.

    System messages are joined into the system string; consecutive turns of the
    same role are merged.
    """
    system_parts: List[str] = []
    turns: List[Message] = []
    for m in messages:
        role = m.get("role")
        content = m.get("content", "")
        if role == "system":
            system_parts.append(content)
            continue
        role = "assistant" if role == "assistant" else "user"
        if turns and turns[-1]["role"] == role:
            turns[-1] = {"role": role, "content": turns[-1]["content"] + "\n\n" + content}
        else:
            turns.append({"role": role, "content": content})
    if turns and turns[0]["role"] != "user":
        turns.insert(0, {"role": "user", "content": "(continue)"})
    return "\n\n".join(system_parts), turns


class AnthropicMessagesClient:
    """
    Minimal Anthropic Messages API streaming client (no extra dependency).
    """

    def __init__(self, *, config: Optional[AnthropicMessagesConfig] = None, http_stream: Optional[HttpStream] = None) -> None:
        self._config = config or AnthropicMessagesConfig()
        self._http_stream = http_stream or make_default_http_stream("Anthropic", _CODE)

    @property
    def config(self) -> AnthropicMessagesConfig:
        return self._config

    def stream_message(
        self,
        *,
        model: str,
        messages: List[Message],
        temperature: float = 0.4,
        api_key: Optional[str] = None,
    ) -> Iterator[str]:
        if not isinstance(model, str) or not model:
            raise ValidationError(code="intake.invalid", message="model must be a non-empty string")
        system, turns = split_system(messages)
        if not turns:
            raise ValidationError(code="intake.invalid", message="messages must contain at least one user turn")

        key = api_key or os.environ.get(self._config.api_key_env)
        if not isinstance(key, str) or not key:
            raise ProviderError(code="intake.missing_api_key", message=f"Missing Anthropic API key (env: {self._config.api_key_env})")

        url = self._config.api_base.rstrip("/") + "/v1/messages"
        headers = {
            "x-api-key": key,
            "anthropic-version": self._config.anthropic_version,
            "content-type": "application/json",
            "accept": "text/event-stream",
        }
        body: Dict[str, Any] = {
            "model": model,
            "max_tokens": int(self._config.max_tokens),
            "temperature": float(temperature),
            "system": system,
            "messages": turns,
            "stream": True,
        }
        for payload in self._http_stream(url, headers=headers, body=body, timeout_s=self._config.timeout_s):
            event = decode_event(payload, _CODE)
            if event is None:
                continue
            etype = event.get("type")
            if etype == "message_stop":
                return
            if etype == "error":
                raise ProviderError(code="intake.anthropic_stream_error", message="Anthropic stream error", data=event.get("error") or {})
            if etype == "content_block_delta":
                delta = event.get("delta") or {}
                text = delta.get("text") if delta.get("type") == "text_delta" else None
                if isinstance(text, str) and text:
                    yield text


class AnthropicMessagesProvider:
    def __init__(self, *, client: AnthropicMessagesClient, model: str, temperature: float = 0.4, api_key: Optional[str] = None) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature
        self._api_key = api_key

    @property
    def model(self) -> str:
        return self._model

    def stream(self, *, messages: List[Message]) -> AsyncIterator[str]:
        fragments = self._client.stream_message(
            model=self._model,
            messages=messages,
            temperature=self._temperature,
            api_key=self._api_key,
        )
        return iterate_in_thread(fragments)
