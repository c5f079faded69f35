from __future__ import annotations

import os
import sqlite3
import subprocess
from contextlib import closing
from pathlib import Path
from typing import Optional

from launchtidy.core.errors import StoreInconsistency, ValidationError

from .snapshot import RawApp, RawGroup, RawImageCache, RawItem, Snapshot
from .sync import WriteSet

LAUNCHPAD_DB_RELPATH = Path("com.apple.dock.launchpad") / "db" / "db"
TRIGGER_KEY = "ignore_items_update_triggers"


def default_db_path() -> Path:
    """
    Locate the Launchpad store under the per-user Darwin directory.
    """
    try:
        proc = subprocess.run(
            ["getconf", "DARWIN_USER_DIR"],
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise ValidationError(
            code="config.db_path_unavailable",
            message="Cannot locate the Launchpad database (getconf DARWIN_USER_DIR failed); pass --db",
            data={"error": str(e)},
        ) from e
    base = proc.stdout.strip()
    if not base:
        raise ValidationError(code="config.db_path_unavailable", message="getconf DARWIN_USER_DIR returned nothing; pass --db")
    return Path(base) / LAUNCHPAD_DB_RELPATH


class LaunchpadStore:
    """
    Storage collaborator over the Launchpad SQLite file.

    `read_snapshot()` reads all four row sets; `apply()` rewrites the managed
    range in a single transaction.
    """

    def __init__(self, db_path: os.PathLike | str, *, system_boundary: Optional[int] = None):
        self.db_path = Path(db_path)
        self.system_boundary = system_boundary

    def _connect(self) -> sqlite3.Connection:
        if not self.db_path.is_file():
            raise ValidationError(
                code="config.db_not_found",
                message=f"Launchpad database not found: {self.db_path}",
                data={"db_path": str(self.db_path)},
            )
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def read_snapshot(self) -> Snapshot:
        try:
            with closing(self._connect()) as conn:
                items = [
                    RawItem(
                        rowid=int(r["rowid"]),
                        uuid=r["uuid"],
                        flags=r["flags"],
                        type=int(r["type"]),
                        parent_id=int(r["parent_id"]),
                        ordering=int(r["ordering"] or 0),
                    )
                    for r in conn.execute("SELECT rowid, uuid, flags, type, parent_id, ordering FROM items ORDER BY rowid")
                ]
                apps = [
                    RawApp(
                        item_id=int(r["item_id"]),
                        title=r["title"],
                        bundleid=r["bundleid"],
                        storeid=r["storeid"],
                        category_id=r["category_id"],
                        moddate=r["moddate"],
                        bookmark=r["bookmark"],
                    )
                    for r in conn.execute(
                        "SELECT item_id, title, bundleid, storeid, category_id, moddate, bookmark FROM apps ORDER BY item_id"
                    )
                ]
                groups = [
                    RawGroup(item_id=int(r["item_id"]), category_id=r["category_id"], title=r["title"])
                    for r in conn.execute("SELECT item_id, category_id, title FROM groups ORDER BY item_id")
                ]
                caches = [
                    RawImageCache(
                        item_id=int(r["item_id"]),
                        size_big=r["size_big"],
                        size_mini=r["size_mini"],
                        image_data=r["image_data"],
                        image_data_mini=r["image_data_mini"],
                    )
                    for r in conn.execute(
                        "SELECT item_id, size_big, size_mini, image_data, image_data_mini FROM image_cache ORDER BY item_id"
                    )
                ]
        except sqlite3.Error as e:
            raise StoreInconsistency(
                code="store.read_failed",
                message=f"Failed to read Launchpad database: {e}",
                data={"db_path": str(self.db_path)},
            ) from e
        return Snapshot(
            items=items,
            apps=apps,
            groups=groups,
            image_caches=caches,
            system_boundary=self.system_boundary,
        )

    def apply(self, write_set: WriteSet) -> None:
        """
        Replace the managed range with `write_set`.

        Update triggers are suspended for the rewrite and restored before the
        commit. Any error rolls the whole rewrite back.
        """
        boundary = int(write_set.system_boundary)
        try:
            with closing(self._connect()) as conn:
                with conn:
                    conn.execute("UPDATE dbinfo SET value = 1 WHERE key = ?", (TRIGGER_KEY,))
                    conn.execute("DELETE FROM items WHERE rowid > ?", (boundary,))
                    conn.execute("DELETE FROM groups WHERE item_id > ?", (boundary,))
                    conn.executemany(
                        "INSERT INTO items (rowid, uuid, flags, type, parent_id, ordering) VALUES (?, ?, ?, ?, ?, ?)",
                        [
                            (i.rowid, i.uuid, i.flags, i.type, i.parent_id, i.ordering)
                            for i in write_set.items
                            if i.rowid > boundary
                        ],
                    )
                    conn.executemany(
                        "INSERT INTO groups (item_id, category_id, title) VALUES (?, ?, ?)",
                        [(g.item_id, g.category_id, g.title) for g in write_set.groups if g.item_id > boundary],
                    )
                    conn.execute("DELETE FROM apps")
                    conn.executemany(
                        "INSERT INTO apps (item_id, title, bundleid, storeid, category_id, moddate, bookmark) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?)",
                        [
                            (a.item_id, a.title, a.bundleid, a.storeid, a.category_id, a.moddate, a.bookmark)
                            for a in write_set.apps
                        ],
                    )
                    conn.execute("DELETE FROM image_cache")
                    conn.executemany(
                        "INSERT INTO image_cache (item_id, size_big, size_mini, image_data, image_data_mini) "
                        "VALUES (?, ?, ?, ?, ?)",
                        [
                            (c.item_id, c.size_big, c.size_mini, c.image_data, c.image_data_mini)
                            for c in write_set.image_caches
                        ],
                    )
                    conn.execute("UPDATE dbinfo SET value = 0 WHERE key = ?", (TRIGGER_KEY,))
        except sqlite3.Error as e:
            raise StoreInconsistency(
                code="store.write_failed",
                message=f"Failed to rewrite Launchpad database (rolled back): {e}",
                data={"db_path": str(self.db_path)},
            ) from e
