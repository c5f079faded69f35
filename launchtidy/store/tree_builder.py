from __future__ import annotations

from typing import Optional, Union

from launchtidy.core.errors import StoreInconsistency
from launchtidy.core.model import ROOT_ID, App, Folder, ItemType, Page, RootFolder

from .snapshot import RawItem, Snapshot

_GROUP_TAGS = (ItemType.ROOT, ItemType.PAGE, ItemType.FOLDER)


def _require_group(snapshot: Snapshot, row: RawItem):
    group = snapshot.group_map.get(row.rowid)
    if group is None:
        raise StoreInconsistency(
            code="store.missing_group",
            message=f"No group row for item {row.rowid}",
            data={"item_id": row.rowid, "type": row.type},
        )
    return group


def _children(snapshot: Snapshot, parent_id: int):
    rows = [r for r in snapshot.children_of(parent_id) if not snapshot.is_reserved(r.rowid)]
    rows.sort(key=lambda r: r.ordering)
    for row in rows:
        node = _build(snapshot, row)
        if node is not None:
            yield node


def _build(snapshot: Snapshot, row: RawItem) -> Optional[Union[App, Page, Folder]]:
    if row.type == ItemType.APP:
        app = snapshot.app_map.get(row.rowid)
        if app is None:
            raise StoreInconsistency(
                code="store.missing_app",
                message=f"No app row for item {row.rowid}",
                data={"item_id": row.rowid},
            )
        return App(id=row.rowid, name=app.title, bundle_id=app.bundleid or "")
    if row.type == ItemType.PAGE:
        _require_group(snapshot, row)
        return Page(id=row.rowid, children=list(_children(snapshot, row.rowid)))
    if row.type == ItemType.FOLDER:
        group = _require_group(snapshot, row)
        return Folder(id=row.rowid, name=group.title, children=list(_children(snapshot, row.rowid)))
    # Any other tag is store housekeeping.
    return None


def build_root(snapshot: Snapshot, root_id: int = ROOT_ID) -> RootFolder:
    """
    Rebuild the typed tree from flat rows.

    Children at or below the system boundary are left out, the rest are ordered
    by their stored `ordering`. A group-type row without a `groups` row means
    the store is inconsistent and the whole read is aborted.
    """
    row = snapshot.item_map.get(root_id)
    if row is None:
        raise StoreInconsistency(
            code="store.missing_root",
            message=f"Root item {root_id} not found",
            data={"item_id": root_id},
        )
    _require_group(snapshot, row)
    return RootFolder(id=root_id, children=list(_children(snapshot, root_id)))
