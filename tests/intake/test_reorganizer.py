import asyncio
import json
import unittest

from launchtidy.core.errors import RetryBudgetExhausted, ValidationError
from launchtidy.core.model import App, Folder, Page, RootFolder, collect_apps
from launchtidy.intake.reorganizer import FORMAT_REMINDER, SYSTEM_PROMPT, reorganize
from launchtidy.intake.testing import EchoLayoutProvider, ScriptedProvider, last_user_message
from launchtidy.trace.trace_emitter import TraceEmitter
from launchtidy.trace.trace_store_jsonl import NullTraceStore


def _tree() -> RootFolder:
    return RootFolder(
        children=[
            Page(
                id=4,
                children=[
                    App(id=5, name="Safari"),
                    Folder(id=7, name="Work", children=[Page(id=8, children=[App(id=9, name="Mail"), App(id=10, name="Calendar")])]),
                ],
            ),
            Page(id=11, children=[App(id=12, name="Notes")]),
        ]
    )


GOOD = '[[["Work",["Mail","Calendar"]],"Notes"],["Safari"]]'


def _run(coro):
    return asyncio.run(coro)


class TestReorganize(unittest.TestCase):
    def test_first_attempt_success(self) -> None:
        provider = ScriptedProvider([GOOD])
        outcome = _run(reorganize(_tree(), "Put Safari on its own page", provider=provider))
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual([a.name for a in collect_apps(outcome.tree)], ["Mail", "Calendar", "Notes", "Safari"])
        messages = provider.calls[0]
        self.assertEqual([m["role"] for m in messages], ["system", "system", "user"])
        self.assertEqual(messages[0]["content"], SYSTEM_PROMPT)
        self.assertEqual(json.loads(messages[1]["content"]), [["Safari", ["Work", ["Mail", "Calendar"]]], ["Notes"]])
        self.assertEqual(messages[2]["content"], "Put Safari on its own page")

    def test_invalid_json_then_success_keeps_conversation(self) -> None:
        provider = ScriptedProvider(["Sure! Which layout do you prefer?", "```json\n" + GOOD + "\n```"])
        outcome = _run(reorganize(_tree(), "tidy", provider=provider))
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.attempts, 2)
        second = provider.calls[1]
        self.assertEqual([m["role"] for m in second], ["system", "system", "user", "assistant", "user"])
        self.assertEqual(second[3]["content"], "Sure! Which layout do you prefer?")
        self.assertIn("not valid layout JSON", second[4]["content"])
        self.assertIn(FORMAT_REMINDER, second[4]["content"])

    def test_verify_failure_feedback_names_the_apps(self) -> None:
        provider = ScriptedProvider(['[["Safari","Mail","Calendar"]]', '[["Safari","Safari","Mail","Calendar","Notes"]]', GOOD])
        outcome = _run(reorganize(_tree(), "one page", provider=provider))
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.attempts, 3)
        missing = last_user_message(provider.calls[1])
        self.assertIn('["Notes"]', missing)
        self.assertIn("missing", missing)
        dupes = last_user_message(provider.calls[2])
        self.assertIn('["Safari"]', dupes)

    def test_unknown_name_feedback(self) -> None:
        provider = ScriptedProvider(['[["Safari","Mail","Calendar","Notes","Chrome"]]', GOOD])
        outcome = _run(reorganize(_tree(), "x", provider=provider))
        self.assertTrue(outcome.ok)
        self.assertIn('"Chrome"', last_user_message(provider.calls[1]))

    def test_exhaustion_is_returned_not_raised(self) -> None:
        provider = ScriptedProvider(["nope"])
        store = NullTraceStore()
        outcome = _run(reorganize(_tree(), "x", provider=provider, max_attempts=3, trace=TraceEmitter(store, "r1")))
        self.assertFalse(outcome.ok)
        self.assertIsInstance(outcome.error, RetryBudgetExhausted)
        self.assertEqual(outcome.error.code, "reorganize.retry_exhausted")
        self.assertEqual(len(provider.calls), 3)
        # Each retry sees every earlier reply.
        self.assertEqual(len(provider.calls[2]), 7)
        types = [e["event_type"] for e in store.events]
        self.assertEqual(types.count("ai_request"), 3)
        self.assertEqual(types.count("ai_response"), 3)
        self.assertEqual(types.count("verify_failed"), 3)
        self.assertEqual(types.count("ai_retry"), 2)
        self.assertEqual([e.get("attempt") for e in store.events if e["event_type"] == "ai_request"], [1, 2, 3])

    def test_cancel_between_attempts(self) -> None:
        cancel = asyncio.Event()
        provider = ScriptedProvider(["nope"])

        async def go():
            task = reorganize(_tree(), "x", provider=provider, cancel=cancel, on_progress=lambda _f: cancel.set())
            return await task

        outcome = _run(go())
        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.error.code, "reorganize.cancelled")
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual(len(provider.calls), 1)

    def test_progress_is_monotonic_and_capped(self) -> None:
        seen = []
        outcome = _run(reorganize(_tree(), "same", provider=EchoLayoutProvider(), on_progress=seen.append))
        self.assertTrue(outcome.ok)
        self.assertTrue(seen)
        self.assertEqual(seen, sorted(seen))
        self.assertLessEqual(max(seen), 1.0)
        self.assertEqual(seen[-1], 1.0)

    def test_ambiguous_names_are_rejected_before_any_request(self) -> None:
        tree = RootFolder(children=[Page(children=[App(id=5, name="Notes"), App(id=6, name="Notes")])])
        provider = ScriptedProvider([GOOD])
        with self.assertRaises(ValidationError) as ctx:
            _run(reorganize(tree, "x", provider=provider))
        self.assertEqual(ctx.exception.code, "reorganize.ambiguous_names")
        self.assertEqual(provider.calls, [])

    def test_empty_instruction(self) -> None:
        with self.assertRaises(ValidationError):
            _run(reorganize(_tree(), "  ", provider=ScriptedProvider([GOOD])))


if __name__ == "__main__":
    unittest.main()
