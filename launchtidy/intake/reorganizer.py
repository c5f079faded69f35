from __future__ import annotations

import asyncio
import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, List, Optional

from launchtidy.codec.compact import decode, dumps, encode, name_index, parse_compact
from launchtidy.core.errors import (
    LaunchTidyError,
    NameNotFoundError,
    ParseFailure,
    RetryBudgetExhausted,
    ValidationError,
    VerifyError,
)
from launchtidy.core.model import RootFolder, collect_apps
from launchtidy.core.verifier import verify
from launchtidy.trace.trace_emitter import TraceEmitter

from .providers import Message, TextGenProvider

DEFAULT_MAX_ATTEMPTS = 3

ProgressCallback = Callable[[float], None]

SYSTEM_PROMPT = """
You are an expert at organizing macOS Launchpad icons, and fluent in JSON and TypeScript.
Rearrange the Launchpad layout given below as the user asks, and answer with the same data structure.

```typescript
// One app; the value is the app's name. Child of a Page or a Folder.
type CompactApp = string;
// A folder: the first element is its name, the second its apps. Only a child of a Page.
type CompactFolder = [string, CompactApp[]];
// One page of the launch surface, holding apps and folders. **Only a child of the root.**
type CompactPage = (CompactFolder | CompactApp)[];
// The root: a list of pages.
type CompactRoot = CompactPage[];
```

## Rules

- The output must **match the types above**: Pages only at level 2, Folders only at level 3, Apps only inside a Page or a Folder.
- Every app name must be exactly as in the input; **case and whitespace never change**.
- Apps may only come from the current layout; **every app must appear, and exactly once**.
- The output must be valid JSON on a single line, without formatting.
- Output only the JSON result, with no explanation.

## Examples

All apps flat on the first page:
[["App1","App2","App3"]]

All apps in folders:
[[["Folder1",["App1","App2","App3"]],["Folder2",["App4","App5"]]]]

App1, App2 and Folder1 on the first page, App3 and App4 on the second page:
[["App1","App2",["Folder1",[]]],["App3","App4"]]

App1 and App2 in Folder1 on the first page, App3 and App4 directly on the first page:
[[["Folder1",["App1","App2"]],"App3","App4"]]

The current layout follows as the next message.
""".strip()

FORMAT_REMINDER = (
    "Answer with the complete layout only, as single-line JSON of type CompactRoot: "
    'a list of pages, each page a list of app names or ["Folder name", [app names]].'
)


@dataclass
class ReorganizeOutcome:
    tree: Optional[RootFolder]
    attempts: int
    messages: List[Message] = field(default_factory=list)
    error: Optional[RetryBudgetExhausted] = None

    @property
    def ok(self) -> bool:
        return self.tree is not None


def build_messages(layout_json: str, instruction: str) -> List[Message]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "system", "content": layout_json},
        {"role": "user", "content": instruction},
    ]


def correction_for(error: LaunchTidyError) -> str:
    """
    The corrective user turn appended after a failed attempt.
    """
    if isinstance(error, ParseFailure):
        detail = ""
        if error.code == "compact.invalid_shape":
            detail = " It was JSON, but not in the layout shape."
        return "Your reply was not valid layout JSON." + detail + "\n" + FORMAT_REMINDER
    if isinstance(error, NameNotFoundError):
        return (
            f"The app {json.dumps(error.name, ensure_ascii=False)} does not exist in the current layout. "
            "Use only app names from the layout, spelled exactly as given.\n" + FORMAT_REMINDER
        )
    if isinstance(error, VerifyError):
        return error.feedback() + "\n" + FORMAT_REMINDER
    return str(error) + "\n" + FORMAT_REMINDER


def _ensure_unique_names(tree: RootFolder) -> None:
    counts = Counter(app.name for app in collect_apps(tree))
    dupes = sorted(name for name, n in counts.items() if n > 1)
    if dupes:
        raise ValidationError(
            code="reorganize.ambiguous_names",
            message="Several apps share a display name; a name-only layout cannot tell them apart",
            data={"names": dupes},
        )


async def collect_stream(
    fragments: AsyncIterator[str],
    *,
    expected_len: int,
    on_progress: Optional[ProgressCallback] = None,
) -> str:
    """
    Await the whole fragment stream, reporting received/expected length as progress.
    """
    parts: List[str] = []
    received = 0
    expected = max(1, int(expected_len))
    async for fragment in fragments:
        if not fragment:
            continue
        parts.append(fragment)
        received += len(fragment)
        if on_progress is not None:
            on_progress(min(received / expected, 1.0))
    return "".join(parts)


def _emit(trace: Optional[TraceEmitter], event_type: str, **kwargs: Any) -> None:
    if trace is not None:
        trace.emit(event_type, **kwargs)


async def reorganize(
    tree: RootFolder,
    instruction: str,
    *,
    provider: TextGenProvider,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    trace: Optional[TraceEmitter] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel: Optional[asyncio.Event] = None,
) -> ReorganizeOutcome:
    """
    Turn a natural-language instruction into a verified tree.

    Each failed attempt keeps the conversation going: the collaborator's own
    reply and a specific complaint are appended before the next request.
    Running out of attempts (or being cancelled between attempts) is returned
    as `outcome.error`, never raised.
    """
    if not isinstance(instruction, str) or not instruction.strip():
        raise ValidationError(code="intake.invalid", message="instruction must be a non-empty string")
    if int(max_attempts) < 1:
        raise ValidationError(code="intake.invalid", message="max_attempts must be >= 1", data={"max_attempts": max_attempts})
    _ensure_unique_names(tree)

    reference = collect_apps(tree)
    index = name_index(reference)
    layout_json = dumps(encode(tree))
    messages = build_messages(layout_json, instruction.strip())
    last_error: Optional[LaunchTidyError] = None

    for attempt in range(1, int(max_attempts) + 1):
        if cancel is not None and cancel.is_set():
            err = RetryBudgetExhausted(
                code="reorganize.cancelled",
                message="Reorganization cancelled",
                data={"attempts": attempt - 1},
            )
            return ReorganizeOutcome(tree=None, attempts=attempt - 1, messages=messages, error=err)

        _emit(trace, "ai_request", attempt=attempt, data={"model": provider.model, "messages": list(messages)})
        text = await collect_stream(
            provider.stream(messages=list(messages)),
            expected_len=len(layout_json),
            on_progress=on_progress,
        )
        _emit(trace, "ai_response", attempt=attempt, data={"text": text})

        try:
            candidate = decode(index, parse_compact(text))
            verify(reference, candidate)
        except (ParseFailure, NameNotFoundError, VerifyError) as e:
            last_error = e
            _emit(trace, "verify_failed", attempt=attempt, message=str(e), data=dict(e.data or {}))
            messages = messages + [
                {"role": "assistant", "content": text},
                {"role": "user", "content": correction_for(e)},
            ]
            if attempt < int(max_attempts):
                _emit(trace, "ai_retry", attempt=attempt)
            continue

        return ReorganizeOutcome(tree=candidate, attempts=attempt, messages=messages)

    err = RetryBudgetExhausted(
        code="reorganize.retry_exhausted",
        message=f"No valid layout after {int(max_attempts)} attempts",
        data={
            "attempts": int(max_attempts),
            "last_error": {"code": last_error.code, "message": last_error.message} if last_error else None,
        },
    )
    return ReorganizeOutcome(tree=None, attempts=int(max_attempts), messages=messages, error=err)
