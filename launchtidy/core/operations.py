from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional

from pypinyin import lazy_pinyin

from .model import App, Folder, Item, Page, RootFolder, collect_apps, walk

GroupKey = Callable[[App], str]
SortKey = Callable[[Item], str]

GROUP_MODES = ("folder", "page")


def phonetic_key(name: Optional[str]) -> str:
    """
    Sort key for a display name: Han characters become pinyin, other text passes through.
    """
    if not name:
        return ""
    return "".join(lazy_pinyin(name)).casefold()


def name_sort_key(item: Item) -> str:
    # Pages have no name; they compare equal and keep their relative order.
    return phonetic_key(item.name)


def flatten(root: RootFolder) -> RootFolder:
    """
    Every App on a single Page; all Folder and Page structure is discarded.
    """
    apps = collect_apps(root.clone())
    return RootFolder(children=[Page(children=list(apps))])


def sort(root: RootFolder, key: Optional[SortKey] = None) -> RootFolder:
    """
    Sort the children of the Root and of every Page and Folder independently.
    """
    key = key or name_sort_key
    out = root.clone()
    out.children.sort(key=key)
    for item, _parent, _index, _depth in walk(out):
        if isinstance(item, (Page, Folder)):
            item.children.sort(key=key)
    return out


def group_by(root: RootFolder, key: GroupKey, mode: str = "folder") -> RootFolder:
    """
    Partition Apps into buckets by `key`.

    Buckets keep the order in which their key is first seen while scanning Apps
    in document order.
    - folder: one Page holding one Folder per bucket
    - page: one Page per bucket
    """
    if mode not in GROUP_MODES:
        raise ValueError(f"mode must be one of {GROUP_MODES}, got: {mode}")

    buckets: Dict[str, List[App]] = {}
    for app in collect_apps(root.clone()):
        buckets.setdefault(str(key(app)), []).append(app)

    if mode == "page":
        return RootFolder(children=[Page(children=list(apps)) for apps in buckets.values()])

    folders = [Folder(name=name, children=[Page(children=list(apps))]) for name, apps in buckets.items()]
    return RootFolder(children=[Page(children=list(folders))])


# ─── Group keys ──────────────────────────────────────────────────────────────


def by_first_letter(app: App) -> str:
    key = phonetic_key(app.name)
    first = key[:1].upper()
    return first if first.isalpha() else "#"


def by_bundle_vendor(app: App) -> str:
    parts = [p for p in (app.bundle_id or "").split(".") if p]
    if len(parts) >= 2:
        return parts[1]
    return parts[0] if parts else "other"


def by_color_class(color_map: Mapping[int, str]) -> GroupKey:
    def key(app: App) -> str:
        return str(color_map.get(app.id, "unknown"))

    return key
