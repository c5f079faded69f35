from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Optional, Pattern, Tuple, Union

UNASSIGNED = 0
ROOT_ID = 1
ROOT_NAME = "root"


class ItemType(IntEnum):
    """
    `items.type` tags used by the Launchpad store.
    """

    ROOT = 1
    PAGE = 2
    FOLDER = 3
    APP = 4


@dataclass
class App:
    id: int
    name: str
    bundle_id: str = ""

    kind = "app"

    def clone(self) -> "App":
        return App(id=self.id, name=self.name, bundle_id=self.bundle_id)


@dataclass
class Page:
    id: int = UNASSIGNED
    children: List[Union[App, "Folder"]] = field(default_factory=list)

    kind = "page"

    @property
    def name(self) -> Optional[str]:
        return None

    def clone(self) -> "Page":
        return Page(id=self.id, children=[c.clone() for c in self.children])


@dataclass
class Folder:
    id: int = UNASSIGNED
    name: Optional[str] = None
    children: List[Page] = field(default_factory=list)

    kind = "folder"

    def clone(self) -> "Folder":
        return Folder(id=self.id, name=self.name, children=[p.clone() for p in self.children])


@dataclass
class RootFolder(Folder):
    id: int = ROOT_ID
    name: Optional[str] = ROOT_NAME

    def clone(self) -> "RootFolder":
        return RootFolder(id=self.id, name=self.name, children=[p.clone() for p in self.children])


Item = Union[App, Page, Folder]
Container = Union[Page, Folder]


def item_type(item: Item) -> ItemType:
    if isinstance(item, RootFolder):
        return ItemType.ROOT
    if isinstance(item, Folder):
        return ItemType.FOLDER
    if isinstance(item, Page):
        return ItemType.PAGE
    return ItemType.APP


def walk(container: Container, depth: int = 0) -> Iterator[Tuple[Item, Container, int, int]]:
    """
    Pre-order traversal yielding (item, parent, index_in_parent, depth).

    The parent is always yielded before its children, so identities assigned
    while iterating are visible to the children that follow.
    """
    for index, item in enumerate(container.children):
        yield item, container, index, depth
        if isinstance(item, (Page, Folder)):
            yield from walk(item, depth + 1)


def collect_apps(container: Container) -> List[App]:
    """
    Every App under `container`, in document order (depth-first, left to right).
    """
    return [item for item, _parent, _index, _depth in walk(container) if isinstance(item, App)]


def find_by_name(root: Container, kind: str, pattern: Union[str, Pattern[str]]) -> List[Item]:
    if kind not in ("app", "folder"):
        raise ValueError(f"kind must be 'app' or 'folder', got: {kind}")
    rx = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)
    found: List[Item] = []
    for item, _parent, _index, _depth in walk(root):
        if item.kind != kind:
            continue
        name = item.name
        if name and rx.search(name):
            found.append(item)
    return found


def to_dict(item: Item) -> Dict[str, Any]:
    """
    Full-fidelity JSON rendering (ids included), for inspection only.
    """
    if isinstance(item, App):
        return {"kind": "app", "id": item.id, "name": item.name, "bundle_id": item.bundle_id}
    if isinstance(item, Page):
        return {"kind": "page", "id": item.id, "children": [to_dict(c) for c in item.children]}
    return {
        "kind": "root" if isinstance(item, RootFolder) else "folder",
        "id": item.id,
        "name": item.name,
        "children": [to_dict(p) for p in item.children],
    }
