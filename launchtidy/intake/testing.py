from __future__ import annotations

import json
from typing import Any, AsyncIterator, List, Optional, Sequence

from launchtidy.core.errors import ProviderError

from .providers import Message


async def _chunks(text: str, size: int) -> AsyncIterator[str]:
    size = max(1, int(size))
    for i in range(0, len(text), size):
        yield text[i : i + size]


class ScriptedProvider:
    """
    Deterministic provider for tests/examples.

    Replies with `responses` in order (the last one repeats once the script runs
    out), streamed in fixed-size fragments. Every request is kept in `calls`.
    """

    def __init__(self, responses: Sequence[str], *, model: str = "scripted", chunk_size: int = 7) -> None:
        self._responses = list(responses)
        self._model = model
        self._chunk_size = chunk_size
        self.calls: List[List[Message]] = []

    @property
    def model(self) -> str:
        return self._model

    def stream(self, *, messages: List[Message]) -> AsyncIterator[str]:
        self.calls.append([dict(m) for m in messages])
        index = min(len(self.calls), len(self._responses)) - 1
        text = self._responses[index] if index >= 0 else ""
        return _chunks(text, self._chunk_size)


class EchoLayoutProvider:
    """
    Deterministic provider for tests/examples.

    It answers with the layout it was given (the second system message), fenced
    the way chat models usually reply.
    """

    def __init__(self, model: str = "echo", **_kwargs: Any) -> None:
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    def stream(self, *, messages: List[Message]) -> AsyncIterator[str]:
        layout = messages[1]["content"] if len(messages) > 1 else "[]"
        return _chunks("```json\n" + layout + "\n```", 16)


class ModelAsResponseProvider:
    """
    Deterministic provider for tests/examples.

    It replies with exactly the provided model string, so a CLI test can pass a
    compact layout through `--model`.
    """

    def __init__(self, model: str = "[]", **_kwargs: Any) -> None:
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    def stream(self, *, messages: List[Message]) -> AsyncIterator[str]:
        _ = messages
        return _chunks(self._model, 16)


class SortedLayoutProvider:
    """
    Deterministic provider for tests/examples: every app of the given layout on one page, sorted by name.
    """

    def __init__(self, model: str = "sorted", **_kwargs: Any) -> None:
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    def stream(self, *, messages: List[Message]) -> AsyncIterator[str]:
        layout = json.loads(messages[1]["content"]) if len(messages) > 1 else []
        names: List[str] = []
        for page in layout:
            for item in page:
                if isinstance(item, str):
                    names.append(item)
                else:
                    names.extend(item[1])
        return _chunks(json.dumps([sorted(names)], ensure_ascii=False), 16)


class RaiseProviderErrorProvider:
    """
    Provider for CLI tests: always raises a ProviderError with a data payload.
    """

    def __init__(self, model: str = "stub", **_kwargs: Any) -> None:
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    def stream(self, *, messages: List[Message]) -> AsyncIterator[str]:
        _ = messages
        raise ProviderError(
            code="intake.openai_http_error",
            message="OpenAI HTTP error",
            data={"status": 401, "body": "invalid_api_key"},
        )


def last_user_message(messages: List[Message]) -> Optional[str]:
    for m in reversed(messages):
        if m.get("role") == "user":
            return m.get("content")
    return None
