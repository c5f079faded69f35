"""
Deterministic Launchpad store fixtures for tests and offline demos.
"""
from __future__ import annotations

import io
import os
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import List, Tuple

from PIL import Image

from launchtidy.core.model import ItemType

from .snapshot import RawApp, RawGroup, RawImageCache, RawItem, Snapshot

SCHEMA = """
CREATE TABLE items (
    rowid INTEGER PRIMARY KEY ASC,
    uuid VARCHAR,
    flags INTEGER,
    type INTEGER,
    parent_id INTEGER NOT NULL,
    ordering INTEGER
);
CREATE TABLE apps (
    item_id INTEGER PRIMARY KEY,
    title VARCHAR,
    bundleid VARCHAR,
    storeid VARCHAR,
    category_id INTEGER,
    moddate REAL,
    bookmark BLOB
);
CREATE TABLE groups (
    item_id INTEGER PRIMARY KEY,
    category_id INTEGER,
    title VARCHAR
);
CREATE TABLE image_cache (
    item_id INTEGER,
    size_big INTEGER,
    size_mini INTEGER,
    image_data BLOB,
    image_data_mini BLOB
);
CREATE TABLE dbinfo (
    key VARCHAR,
    value VARCHAR
);
"""

# Records the trigger-suspension flag seen by every row inserted into `items`.
TRIGGER_AUDIT = """
CREATE TABLE trigger_audit (
    item_id INTEGER,
    flag VARCHAR
);
CREATE TRIGGER audit_items_insert AFTER INSERT ON items
BEGIN
    INSERT INTO trigger_audit (item_id, flag)
    SELECT NEW.rowid, value FROM dbinfo WHERE key = 'ignore_items_update_triggers';
END;
"""

# Housekeeping rows use a tag the tree model does not know.
HOUSEKEEPING_TYPE = 6


def solid_png(rgb: Tuple[int, int, int], size: int = 4) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (size, size), rgb).save(buf, format="PNG")
    return buf.getvalue()


def _item(rowid, type_, parent_id, ordering, flags=0) -> RawItem:
    return RawItem(
        rowid=rowid,
        uuid=f"00000000-0000-0000-0000-{rowid:012d}",
        flags=flags,
        type=int(type_),
        parent_id=parent_id,
        ordering=ordering,
    )


def sample_snapshot() -> Snapshot:
    """
    A small store with three reserved rows (boundary = 3) and two managed pages.

        root(1)
          holding page(2)            reserved
          page(4): Safari(5) Mail(6) Work(7)[page(8): Calendar(9) Notes(10)]
          page(11): 微信(12) Terminal(13) <housekeeping 14>
    """
    items = [
        _item(1, ItemType.ROOT, 0, 0, flags=None),
        _item(2, ItemType.PAGE, 1, 0, flags=None),
        _item(3, HOUSEKEEPING_TYPE, 0, 0, flags=None),
        _item(4, ItemType.PAGE, 1, 1),
        _item(5, ItemType.APP, 4, 0),
        _item(6, ItemType.APP, 4, 1),
        _item(7, ItemType.FOLDER, 4, 2),
        _item(8, ItemType.PAGE, 7, 0),
        _item(9, ItemType.APP, 8, 0),
        _item(10, ItemType.APP, 8, 1),
        _item(11, ItemType.PAGE, 1, 2),
        _item(12, ItemType.APP, 11, 0),
        _item(13, ItemType.APP, 11, 1),
        _item(14, HOUSEKEEPING_TYPE, 11, 2),
    ]
    apps = [
        RawApp(item_id=5, title="Safari", bundleid="com.apple.Safari", moddate=1.5, bookmark=b"bm-safari"),
        RawApp(item_id=6, title="Mail", bundleid="com.apple.mail"),
        RawApp(item_id=9, title="Calendar", bundleid="com.apple.iCal"),
        RawApp(item_id=10, title="Notes", bundleid="com.apple.Notes"),
        RawApp(item_id=12, title="微信", bundleid="com.tencent.xinWeChat", storeid="836500024"),
        RawApp(item_id=13, title="Terminal", bundleid="com.apple.Terminal"),
    ]
    groups = [
        RawGroup(item_id=1),
        RawGroup(item_id=2, title="HOLDINGPAGE"),
        RawGroup(item_id=4),
        RawGroup(item_id=7, title="Work"),
        RawGroup(item_id=8),
        RawGroup(item_id=11),
    ]
    caches = [
        RawImageCache(item_id=5, size_big=4, size_mini=4, image_data=solid_png((20, 110, 230)), image_data_mini=solid_png((20, 110, 230))),
        RawImageCache(item_id=6, size_big=4, size_mini=4, image_data=solid_png((40, 140, 250)), image_data_mini=solid_png((40, 140, 250))),
        RawImageCache(item_id=12, size_big=4, size_mini=4, image_data=solid_png((40, 200, 60)), image_data_mini=solid_png((40, 200, 60))),
        RawImageCache(item_id=13, size_big=4, size_mini=4, image_data=solid_png((30, 30, 30)), image_data_mini=b"not an image"),
    ]
    return Snapshot(items=items, apps=apps, groups=groups, image_caches=caches)


def write_fixture_db(path: os.PathLike | str, snapshot: Snapshot | None = None) -> Path:
    """
    Create a Launchpad-shaped SQLite file at `path` holding `snapshot` (default: `sample_snapshot()`).
    """
    snapshot = snapshot or sample_snapshot()
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with closing(sqlite3.connect(str(p))) as conn:
        with conn:
            conn.executescript(SCHEMA)
            conn.execute("INSERT INTO dbinfo (key, value) VALUES ('ignore_items_update_triggers', 0)")
            conn.executemany(
                "INSERT INTO items (rowid, uuid, flags, type, parent_id, ordering) VALUES (?, ?, ?, ?, ?, ?)",
                [(i.rowid, i.uuid, i.flags, i.type, i.parent_id, i.ordering) for i in snapshot.items],
            )
            conn.executemany(
                "INSERT INTO apps (item_id, title, bundleid, storeid, category_id, moddate, bookmark) VALUES (?, ?, ?, ?, ?, ?, ?)",
                [(a.item_id, a.title, a.bundleid, a.storeid, a.category_id, a.moddate, a.bookmark) for a in snapshot.apps],
            )
            conn.executemany(
                "INSERT INTO groups (item_id, category_id, title) VALUES (?, ?, ?)",
                [(g.item_id, g.category_id, g.title) for g in snapshot.groups],
            )
            conn.executemany(
                "INSERT INTO image_cache (item_id, size_big, size_mini, image_data, image_data_mini) VALUES (?, ?, ?, ?, ?)",
                [(c.item_id, c.size_big, c.size_mini, c.image_data, c.image_data_mini) for c in snapshot.image_caches],
            )
            conn.executescript(TRIGGER_AUDIT)
    return p


def read_trigger_flag(path: os.PathLike | str) -> str:
    with closing(sqlite3.connect(str(path))) as conn:
        row = conn.execute("SELECT value FROM dbinfo WHERE key = 'ignore_items_update_triggers'").fetchone()
    return str(row[0]) if row else ""


def read_trigger_audit(path: os.PathLike | str) -> List[Tuple[int, str]]:
    """
    (item_id, suspension flag) for every `items` insert since the fixture was written.
    """
    with closing(sqlite3.connect(str(path))) as conn:
        rows = conn.execute("SELECT item_id, flag FROM trigger_audit ORDER BY rowid").fetchall()
    return [(int(item_id), str(flag)) for item_id, flag in rows]
