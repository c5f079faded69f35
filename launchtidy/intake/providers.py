from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request
from typing import Any, AsyncIterator, Callable, Dict, Iterable, Iterator, List, Optional, Protocol

from launchtidy.core.errors import ProviderError

Message = Dict[str, str]
# (url, *, headers, body, timeout_s) -> iterable of SSE `data:` payloads
HttpStream = Callable[..., Iterable[str]]


class TextGenProvider(Protocol):
    """
    A text-generation collaborator: role-tagged messages in, text fragments out.
    """

    @property
    def model(self) -> str: ...

    def stream(self, *, messages: List[Message]) -> AsyncIterator[str]: ...


def iter_sse_data(lines: Iterable[Any]) -> Iterator[str]:
    """
    Yield the `data:` payload of each server-sent event.

    Multi-line data fields of one event are joined with newlines; comments and
    other fields are ignored.
    """
    buf: List[str] = []
    for raw in lines:
        line = raw.decode("utf-8", errors="replace") if isinstance(raw, (bytes, bytearray)) else str(raw)
        line = line.rstrip("\r\n")
        if not line:
            if buf:
                yield "\n".join(buf)
                buf = []
            continue
        if line.startswith(":"):
            continue
        if line.startswith("data:"):
            value = line[5:]
            buf.append(value[1:] if value.startswith(" ") else value)
    if buf:
        yield "\n".join(buf)


def make_default_http_stream(provider_label: str, code_prefix: str) -> HttpStream:
    """
    Build a urllib-based SSE transport; errors map to ProviderError codes `intake.<prefix>_*`.
    """

    def _http_stream(url: str, *, headers: Dict[str, str], body: Dict[str, Any], timeout_s: float) -> Iterator[str]:
        data = json.dumps(body).encode("utf-8")
        req = urllib.request.Request(url, data=data, method="POST")
        for k, v in headers.items():
            req.add_header(k, v)
        try:
            with urllib.request.urlopen(req, timeout=timeout_s) as resp:  # noqa: S310 (intake is explicitly network-capable)
                yield from iter_sse_data(resp)
        except urllib.error.HTTPError as e:
            msg = e.read().decode("utf-8", errors="replace") if hasattr(e, "read") else repr(e)
            raise ProviderError(
                code=f"intake.{code_prefix}_http_error",
                message=f"{provider_label} HTTP error",
                data={"status": e.code, "body": msg[:2000]},
            ) from e
        except (urllib.error.URLError, OSError) as e:
            raise ProviderError(
                code=f"intake.{code_prefix}_request_failed",
                message=f"{provider_label} request failed",
                data={"error": repr(e)},
            ) from e

    return _http_stream


def decode_event(payload: str, code_prefix: str) -> Optional[Dict[str, Any]]:
    try:
        obj = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ProviderError(
            code=f"intake.{code_prefix}_invalid_json",
            message="Stream event was not valid JSON",
            data={"raw": payload[:1000]},
        ) from e
    return obj if isinstance(obj, dict) else None


_DONE = object()


async def iterate_in_thread(fragments: Iterable[str]) -> AsyncIterator[str]:
    """
    Drive a blocking fragment iterator from a worker thread, one fragment per await.
    """
    it = iter(fragments)
    while True:
        item = await asyncio.to_thread(next, it, _DONE)
        if item is _DONE:
            return
        yield item
