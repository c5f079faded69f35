import subprocess
import unittest

from launchtidy.tools import dock


class _Runner:
    def __init__(self, returncode: int = 0, stderr: str = "") -> None:
        self.calls = []
        self._returncode = returncode
        self._stderr = stderr

    def __call__(self, argv, **kwargs):
        self.calls.append((argv, kwargs))
        return subprocess.CompletedProcess(argv, self._returncode, stdout="", stderr=self._stderr)


class TestDockRestart(unittest.TestCase):
    def test_dry_run_reports_expected_effects(self) -> None:
        runner = _Runner()
        out = dock.restart({}, dry_run=True, runner=runner)
        self.assertTrue(out["dry_run"])
        self.assertEqual(out["expected_effects"][0]["resources"], ["Dock"])
        self.assertEqual(runner.calls, [])

    def test_runs_killall(self) -> None:
        runner = _Runner()
        out = dock.restart({}, dry_run=False, runner=runner)
        self.assertEqual(runner.calls[0][0], ["killall", "Dock"])
        self.assertFalse(runner.calls[0][1]["check"])
        self.assertEqual(out["returncode"], 0)

    def test_failure_is_reported_not_raised(self) -> None:
        runner = _Runner(returncode=1, stderr="No matching processes\n")
        out = dock.restart({"process": "Finder"}, dry_run=False, runner=runner)
        self.assertEqual(runner.calls[0][0], ["killall", "Finder"])
        self.assertEqual(out["returncode"], 1)
        self.assertEqual(out["stderr"], "No matching processes")

    def test_rejects_bad_process(self) -> None:
        with self.assertRaises(ValueError):
            dock.restart({"process": ""}, dry_run=True)


if __name__ == "__main__":
    unittest.main()
