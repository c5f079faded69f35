from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from launchtidy.codec.compact import encode
from launchtidy.intake.reorganizer import reorganize
from launchtidy.store.snapshot import Snapshot
from launchtidy.store.sqlite_store import LaunchpadStore
from launchtidy.store.sync import WriteSet, plan_write_set
from launchtidy.store.tree_builder import build_root
from launchtidy.tools import dock
from launchtidy.trace.trace_emitter import TraceEmitter
from launchtidy.trace.trace_store_jsonl import NullTraceStore, TraceStoreJSONL

from .errors import LaunchTidyError
from .model import RootFolder
from .runtime_context import RuntimeContext

Transform = Callable[[RootFolder, Snapshot], RootFolder]


@dataclass
class RunResult:
    run_id: str
    dry_run: bool
    tree: RootFolder
    write_set: WriteSet
    applied: bool = False
    dock: Optional[Dict[str, Any]] = None
    attempts: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "ok": True,
            "run_id": self.run_id,
            "dry_run": self.dry_run,
            "applied": self.applied,
            "layout": encode(self.tree),
            "write_set": self.write_set.summary(),
            "created": list(self.write_set.created),
        }
        if self.attempts is not None:
            out["attempts"] = self.attempts
        if self.dock is not None:
            out["dock"] = self.dock
        return out


class Kernel:
    """
    Run orchestration: Snapshot -> Tree -> Transform -> Verify -> Sync -> Store -> Dock.

    Hard rules:
    - dry-run by default; the store is written only when the context says so.
    - every write set is re-verified against the snapshot before it is applied.
    - trace every step.
    """

    def __init__(
        self,
        ctx: RuntimeContext,
        *,
        store: Optional[LaunchpadStore] = None,
        dock_runner: Optional[Callable[..., Any]] = None,
        trace_sink: Any = None,
    ) -> None:
        self._ctx = ctx
        self._store = store or LaunchpadStore(ctx.db_path, system_boundary=ctx.system_boundary)
        self._dock_runner = dock_runner
        if trace_sink is None:
            trace_sink = TraceStoreJSONL(ctx.trace_path) if ctx.trace_path is not None else NullTraceStore()
        self._trace = TraceEmitter(store=trace_sink, run_id=ctx.run_id)

    @property
    def trace(self) -> TraceEmitter:
        return self._trace

    def load(self) -> Tuple[Snapshot, RootFolder]:
        snapshot = self._store.read_snapshot()
        root = build_root(snapshot)
        self._trace.emit("snapshot_loaded", data=snapshot.summary())
        return snapshot, root

    def commit(self, snapshot: Snapshot, tree: RootFolder, *, attempts: Optional[int] = None) -> RunResult:
        ws = plan_write_set(snapshot, tree)
        self._trace.emit("write_planned", data={**ws.summary(), "created_ids": list(ws.created)})
        result = RunResult(run_id=self._ctx.run_id, dry_run=self._ctx.dry_run, tree=tree, write_set=ws, attempts=attempts)
        if self._ctx.dry_run:
            return result

        self._store.apply(ws)
        result.applied = True
        self._trace.emit("write_applied", data={"db_path": str(self._ctx.db_path), "items": len(ws.items)})

        if self._ctx.restart_dock:
            out = dock.restart({}, dry_run=False, runner=self._dock_runner)
            result.dock = out
            self._trace.emit("dock_restart", data=out)
        return result

    def _fail(self, e: LaunchTidyError) -> None:
        self._trace.emit("error", message=str(e), data={"code": e.code, "data": e.data or {}})
        self._trace.emit("run_finished", data={"ok": False, "dry_run": self._ctx.dry_run})

    def run_transform(self, name: str, transform: Transform) -> RunResult:
        self._trace.emit("run_started", message=name, data={"dry_run": self._ctx.dry_run})
        try:
            snapshot, root = self.load()
            tree = transform(root, snapshot)
            self._trace.emit("transform_applied", message=name, data={"layout": encode(tree)})
            result = self.commit(snapshot, tree)
        except LaunchTidyError as e:
            self._fail(e)
            raise
        self._trace.emit("run_finished", data={"ok": True, "dry_run": self._ctx.dry_run, "applied": result.applied})
        return result

    async def run_ai(
        self,
        instruction: str,
        *,
        provider: Any,
        max_attempts: int = 3,
        on_progress: Optional[Callable[[float], None]] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> RunResult:
        self._trace.emit("run_started", message="ai", data={"dry_run": self._ctx.dry_run, "instruction": instruction})
        try:
            snapshot, root = self.load()
            outcome = await reorganize(
                root,
                instruction,
                provider=provider,
                max_attempts=max_attempts,
                trace=self._trace,
                on_progress=on_progress,
                cancel=cancel,
            )
            if outcome.error is not None:
                raise outcome.error
            self._trace.emit("transform_applied", message="ai", attempt=outcome.attempts, data={"layout": encode(outcome.tree)})
            result = self.commit(snapshot, outcome.tree, attempts=outcome.attempts)
        except LaunchTidyError as e:
            self._fail(e)
            raise
        self._trace.emit("run_finished", data={"ok": True, "dry_run": self._ctx.dry_run, "applied": result.applied})
        return result

