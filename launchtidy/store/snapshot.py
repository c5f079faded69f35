from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from launchtidy.core.model import ROOT_ID


@dataclass(frozen=True)
class RawItem:
    rowid: int
    uuid: str
    flags: Optional[int]
    type: int
    parent_id: int
    ordering: int


@dataclass(frozen=True)
class RawApp:
    item_id: int
    title: str
    bundleid: str
    storeid: Optional[str] = None
    category_id: Optional[int] = None
    moddate: Optional[float] = None
    bookmark: Optional[bytes] = None


@dataclass(frozen=True)
class RawGroup:
    item_id: int
    category_id: Optional[int] = None
    title: Optional[str] = None


@dataclass(frozen=True)
class RawImageCache:
    item_id: int
    size_big: int
    size_mini: int
    image_data: Optional[bytes] = None
    image_data_mini: Optional[bytes] = None


def detect_system_boundary(items: List[RawItem]) -> int:
    """
    Highest rowid among rows without a managed-items marker (`flags` is NULL).

    Rows the store shipped with never carry flags; rows written by the
    Dock or by this tool do.
    """
    unmanaged = [i.rowid for i in items if i.flags is None]
    return max([ROOT_ID] + unmanaged)


@dataclass
class Snapshot:
    """
    Typed read of the Launchpad store: four row sets plus indices by identity.
    """

    items: List[RawItem] = field(default_factory=list)
    apps: List[RawApp] = field(default_factory=list)
    groups: List[RawGroup] = field(default_factory=list)
    image_caches: List[RawImageCache] = field(default_factory=list)
    system_boundary: Optional[int] = None

    def __post_init__(self) -> None:
        self.item_map: Dict[int, RawItem] = {i.rowid: i for i in self.items}
        self.app_map: Dict[int, RawApp] = {a.item_id: a for a in self.apps}
        self.group_map: Dict[int, RawGroup] = {g.item_id: g for g in self.groups}
        self.image_cache_map: Dict[int, RawImageCache] = {c.item_id: c for c in self.image_caches}
        if self.system_boundary is None:
            self.system_boundary = detect_system_boundary(self.items)
        self._children: Dict[int, List[RawItem]] = {}
        for item in self.items:
            self._children.setdefault(item.parent_id, []).append(item)

    @property
    def max_identity(self) -> int:
        return max([ROOT_ID] + [i.rowid for i in self.items])

    def children_of(self, parent_id: int) -> List[RawItem]:
        return list(self._children.get(parent_id, []))

    def is_reserved(self, identity: int) -> bool:
        return 1 <= identity <= int(self.system_boundary or 0)

    def summary(self) -> Dict[str, int]:
        return {
            "items": len(self.items),
            "apps": len(self.apps),
            "groups": len(self.groups),
            "image_caches": len(self.image_caches),
            "system_boundary": int(self.system_boundary or 0),
            "max_identity": self.max_identity,
        }
