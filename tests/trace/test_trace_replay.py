import json
import tempfile
import unittest
from pathlib import Path

from launchtidy.contract_store import shipped_contracts
from launchtidy.trace import NullTraceStore, Replay, TraceEmitter, TraceStoreJSONL


class TestTrace(unittest.TestCase):
    def test_emit_writes_schema_valid_lines(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "nested" / "trace.jsonl"
            emitter = TraceEmitter(TraceStoreJSONL(path), run_id="run_t")
            emitter.emit("run_started", data={"mode": "sort"})
            emitter.emit("ai_retry", attempt=2, message="应用 \"X\" 不存在")
            errs = shipped_contracts().validate_jsonl_file("trace_event.schema.json", path)
            self.assertEqual(errs, [])
            lines = path.read_text(encoding="utf-8").splitlines()
        self.assertEqual(len(lines), 2)
        second = json.loads(lines[1])
        self.assertEqual(second["attempt"], 2)
        self.assertIn("应用", lines[1])
        self.assertTrue(second["ts"].endswith("Z"))
        self.assertNotIn("data", second)

    def test_null_store_keeps_events(self) -> None:
        store = NullTraceStore()
        TraceEmitter(store, run_id="r").emit("error", message="boom")
        self.assertIsNone(store.path)
        self.assertEqual(store.events[0]["event_type"], "error")

    def test_replay_filters(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "trace.jsonl"
            a = TraceEmitter(TraceStoreJSONL(path), run_id="a")
            b = TraceEmitter(TraceStoreJSONL(path), run_id="b")
            for i in range(3):
                a.emit("ai_request", attempt=i + 1)
            b.emit("ai_request", attempt=1)
            b.emit("run_finished", data={"ok": True})

            replay = Replay(path)
            self.assertEqual(len(replay.select()), 5)
            self.assertEqual(len(replay.select(event_type="ai_request")), 4)
            self.assertEqual(len(replay.select(run_id="b")), 2)
            tail = replay.select(run_id="a", tail=2)
            self.assertEqual([e["attempt"] for e in tail], [2, 3])

    def test_replay_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            self.assertEqual(Replay(Path(td) / "none.jsonl").select(), [])


if __name__ == "__main__":
    unittest.main()
