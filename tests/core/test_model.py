import unittest

from launchtidy.core.model import (
    App,
    Folder,
    ItemType,
    Page,
    RootFolder,
    collect_apps,
    find_by_name,
    item_type,
    to_dict,
    walk,
)


def _tree() -> RootFolder:
    return RootFolder(
        children=[
            Page(
                id=4,
                children=[
                    App(id=5, name="Safari", bundle_id="com.apple.Safari"),
                    Folder(id=7, name="Work", children=[Page(id=8, children=[App(id=9, name="Calendar"), App(id=10, name="Notes")])]),
                ],
            ),
            Page(id=11, children=[App(id=12, name="Terminal")]),
        ]
    )


class TestTreeModel(unittest.TestCase):
    def test_root_has_fixed_identity_and_name(self) -> None:
        root = RootFolder()
        self.assertEqual(root.id, 1)
        self.assertEqual(root.name, "root")
        self.assertEqual(item_type(root), ItemType.ROOT)

    def test_walk_is_pre_order_with_parent_index_and_depth(self) -> None:
        root = _tree()
        seen = [(item.kind, item.id, parent.id, index, depth) for item, parent, index, depth in walk(root)]
        self.assertEqual(
            seen,
            [
                ("page", 4, 1, 0, 0),
                ("app", 5, 4, 0, 1),
                ("folder", 7, 4, 1, 1),
                ("page", 8, 7, 0, 2),
                ("app", 9, 8, 0, 3),
                ("app", 10, 8, 1, 3),
                ("page", 11, 1, 1, 0),
                ("app", 12, 11, 0, 1),
            ],
        )

    def test_collect_apps_in_document_order(self) -> None:
        self.assertEqual([a.name for a in collect_apps(_tree())], ["Safari", "Calendar", "Notes", "Terminal"])

    def test_clone_is_deep(self) -> None:
        root = _tree()
        copy = root.clone()
        copy.children[0].children[0].name = "Changed"
        copy.children.pop()
        self.assertEqual(root.children[0].children[0].name, "Safari")
        self.assertEqual(len(root.children), 2)
        self.assertIsInstance(copy, RootFolder)

    def test_find_by_name_regex(self) -> None:
        root = _tree()
        self.assertEqual([a.name for a in find_by_name(root, "app", r"^[CN]")], ["Calendar", "Notes"])
        self.assertEqual([f.id for f in find_by_name(root, "folder", "Wor")], [7])
        with self.assertRaises(ValueError):
            find_by_name(root, "page", ".")

    def test_to_dict_keeps_identities(self) -> None:
        d = to_dict(_tree())
        self.assertEqual(d["kind"], "root")
        self.assertEqual(d["children"][0]["children"][1]["name"], "Work")
        self.assertEqual(d["children"][0]["children"][0]["bundle_id"], "com.apple.Safari")


if __name__ == "__main__":
    unittest.main()
