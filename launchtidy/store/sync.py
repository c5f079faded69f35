"""
Relational sync: diff a verified tree against a snapshot into a row-level write set.

The write set is a full replacement of the managed range (identities above the
system boundary): every managed item and title row that should exist after the
write is listed, the store deletes the range and reinserts it.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from launchtidy.core.errors import EncodeAssumptionViolation
from launchtidy.core.model import UNASSIGNED, App, Folder, Page, RootFolder, collect_apps, item_type, walk
from launchtidy.core.verifier import verify

from .snapshot import RawApp, RawGroup, RawImageCache, RawItem, Snapshot
from .tree_builder import build_root

TokenFactory = Callable[[], str]

# Slot 0 under the root is held by the store's own holding page.
ROOT_ORDERING_OFFSET = 1


def new_token() -> str:
    return str(uuid.uuid4()).upper()


@dataclass
class IdAllocator:
    """
    Explicit identity counter; every allocated id is strictly greater than the seed minus one.
    """

    next_id: int

    @classmethod
    def for_snapshot(cls, snapshot: Snapshot) -> "IdAllocator":
        return cls(next_id=snapshot.max_identity + 1)

    def allocate(self) -> int:
        value = self.next_id
        self.next_id += 1
        return value


@dataclass
class WriteSet:
    system_boundary: int
    items: List[RawItem] = field(default_factory=list)
    groups: List[RawGroup] = field(default_factory=list)
    apps: List[RawApp] = field(default_factory=list)
    image_caches: List[RawImageCache] = field(default_factory=list)
    created: List[int] = field(default_factory=list)
    updated: List[int] = field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        return {
            "system_boundary": self.system_boundary,
            "items": len(self.items),
            "groups": len(self.groups),
            "apps": len(self.apps),
            "image_caches": len(self.image_caches),
            "created": len(self.created),
            "updated": len(self.updated),
        }


def _identity_error(code: str, message: str, **data) -> EncodeAssumptionViolation:
    return EncodeAssumptionViolation(code=code, message=message, data=data)


def reattach_app_ids(tree: RootFolder, reference: List[App]) -> None:
    """
    Give unassigned Apps back their stored identity, matched by display name.

    Decoded trees carry id 0 for every App; the sync never creates Apps, so each
    one must map onto an existing row.
    """
    taken = {item.id for item, _p, _i, _d in walk(tree) if isinstance(item, App) and item.id != UNASSIGNED}
    pool: Dict[str, List[int]] = {}
    for app in reference:
        if app.id not in taken:
            pool.setdefault(app.name, []).append(app.id)
    for item, _parent, _index, _depth in walk(tree):
        if isinstance(item, App) and item.id == UNASSIGNED:
            ids = pool.get(item.name)
            if not ids:
                raise _identity_error(
                    "tree.identity_mismatch", f"App has no stored identity: {item.name}", name=item.name
                )
            item.id = ids.pop(0)


def _check_unique_ids(tree: RootFolder) -> None:
    seen = {tree.id}
    for item, _parent, _index, _depth in walk(tree):
        if item.id == UNASSIGNED:
            continue
        if item.id in seen:
            raise _identity_error("tree.duplicate_identity", f"Identity {item.id} appears more than once", id=item.id)
        seen.add(item.id)


def plan_write_set(
    snapshot: Snapshot,
    tree: RootFolder,
    *,
    allocator: Optional[IdAllocator] = None,
    token_factory: Optional[TokenFactory] = None,
) -> WriteSet:
    """
    Compute the rows that replace the managed range of the store.

    The tree is verified against the snapshot's own app set first; a failure
    here is fatal (VerifyError). The input tree is not mutated.
    """
    reference = collect_apps(build_root(snapshot))
    verify(reference, tree)

    allocator = allocator or IdAllocator.for_snapshot(snapshot)
    token_factory = token_factory or new_token
    boundary = int(snapshot.system_boundary or 0)

    work = tree.clone()
    reattach_app_ids(work, reference)
    _check_unique_ids(work)

    ws = WriteSet(
        system_boundary=boundary,
        apps=list(snapshot.apps),
        image_caches=list(snapshot.image_caches),
    )

    for item, parent, index, _depth in walk(work):
        if snapshot.is_reserved(item.id):
            continue
        ordering = index + ROOT_ORDERING_OFFSET if isinstance(parent, RootFolder) else index
        tag = int(item_type(item))
        stored = snapshot.item_map.get(item.id) if item.id != UNASSIGNED else None

        if stored is not None and stored.type != tag:
            raise _identity_error(
                "tree.identity_mismatch",
                f"Identity {item.id} is stored as type {stored.type}, tree has {item.kind}",
                id=item.id,
                stored_type=stored.type,
                kind=item.kind,
            )

        if stored is not None:
            ws.items.append(
                RawItem(
                    rowid=stored.rowid,
                    uuid=stored.uuid,
                    flags=stored.flags,
                    type=stored.type,
                    parent_id=parent.id,
                    ordering=ordering,
                )
            )
            ws.updated.append(stored.rowid)
            if isinstance(item, (Page, Folder)):
                old = snapshot.group_map.get(stored.rowid)
                ws.groups.append(
                    RawGroup(
                        item_id=stored.rowid,
                        category_id=old.category_id if old is not None else None,
                        title=item.name,
                    )
                )
            continue

        if isinstance(item, App):
            raise _identity_error(
                "tree.identity_mismatch", f"App identity {item.id} is not in the store", id=item.id, name=item.name
            )

        # New Page or Folder; children see the fresh id since the walk is pre-order.
        item.id = allocator.allocate()
        ws.items.append(
            RawItem(
                rowid=item.id,
                uuid=token_factory(),
                flags=0,
                type=tag,
                parent_id=parent.id,
                ordering=ordering,
            )
        )
        ws.groups.append(RawGroup(item_id=item.id, category_id=None, title=item.name))
        ws.created.append(item.id)

    return ws
