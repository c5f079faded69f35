import itertools
import unittest

from launchtidy.core.errors import VerifyError, VerifyKind
from launchtidy.core.model import App, Folder, Page, RootFolder
from launchtidy.core.verifier import verify


def _ref(*names: str) -> list:
    return [App(id=i + 1, name=n) for i, n in enumerate(names)]


def _tree(*names: str) -> RootFolder:
    return RootFolder(children=[Page(children=[App(id=0, name=n) for n in names])])


class TestVerifier(unittest.TestCase):
    def test_duplicate_reports_extra_occurrences(self) -> None:
        with self.assertRaises(VerifyError) as ctx:
            verify(_ref("A", "B", "C"), _tree("A", "A", "C"))
        self.assertEqual(ctx.exception.kind, VerifyKind.DUPLICATE)
        self.assertEqual(ctx.exception.code, "verify.duplicate_app")
        self.assertEqual(ctx.exception.names, ["A"])

    def test_missing_app_is_set_mismatch(self) -> None:
        with self.assertRaises(VerifyError) as ctx:
            verify(_ref("A", "B", "C"), _tree("A", "B"))
        self.assertEqual(ctx.exception.kind, VerifyKind.SET_MISMATCH)
        self.assertEqual(ctx.exception.missing, ["C"])
        self.assertEqual(ctx.exception.unexpected, [])

    def test_same_count_different_names_is_set_mismatch(self) -> None:
        with self.assertRaises(VerifyError) as ctx:
            verify(_ref("A", "B"), _tree("A", "X"))
        self.assertEqual(ctx.exception.missing, ["B"])
        self.assertEqual(ctx.exception.unexpected, ["X"])
        self.assertIn("X", ctx.exception.feedback())

    def test_apps_inside_folders_count(self) -> None:
        candidate = RootFolder(
            children=[Page(children=[Folder(name="F", children=[Page(children=[App(id=0, name="B")])]), App(id=0, name="A")])]
        )
        self.assertIsNone(verify(_ref("A", "B"), candidate))

    def test_soundness_over_small_universe(self) -> None:
        universe = ["A", "B", "C"]
        reference = _ref("A", "B", "C")
        for n in range(0, 5):
            for combo in itertools.product(universe + ["Z"], repeat=n):
                ok = set(combo) == set(universe) and len(set(combo)) == len(combo)
                try:
                    verify(reference, _tree(*combo))
                    passed = True
                except VerifyError:
                    passed = False
                self.assertEqual(passed, ok, combo)


if __name__ == "__main__":
    unittest.main()
