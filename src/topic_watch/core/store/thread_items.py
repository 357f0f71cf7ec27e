"""Persist thread item ids and names per revision, for permalink lookups."""

import sqlite3

from loguru import logger

from topic_watch.config import UNNAMED_HEADING_NAME
from topic_watch.core.identity.naming import fix_trailing_separator_id, timestamp_string
from topic_watch.models.subscription import StoredThreadItem
from topic_watch.models.thread_item import Comment, Heading, ThreadItemTree

_SELECT_ITEMS_SQL = """\
SELECT ii.itemid, it.itemname, ir.type, ir.page_title, ir.revision_id,
       pii.itemid, ir.heading_level
FROM item_revisions ir
JOIN items it ON it.id = ir.items_id
JOIN item_ids ii ON ii.id = ir.itemid_id
LEFT JOIN item_revisions pir ON pir.id = ir.parent_id
LEFT JOIN item_ids pii ON pii.id = pir.itemid_id
"""


def _get_or_insert(
    conn: sqlite3.Connection, table: str, key_column: str, values: dict[str, object]
) -> tuple[int, bool]:
    row = conn.execute(
        f"SELECT id FROM {table} WHERE {key_column} = ?", (values[key_column],)
    ).fetchone()
    if row is not None:
        return row[0], False
    columns = ", ".join(values)
    placeholders = ", ".join("?" * len(values))
    cursor = conn.execute(
        f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", tuple(values.values())
    )
    assert cursor.lastrowid is not None
    return cursor.lastrowid, True


class ThreadItemStore:
    """Thread items of stored revisions, queryable by name or id."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def insert_thread_items(
        self, revision_id: int, page_title: str, tree: ThreadItemTree
    ) -> bool:
        """Store every item of a revision. Storing the same revision again is a no-op.

        Returns:
            True if anything was inserted.
        """
        did_insert = False
        revision_row_ids: dict[int, int] = {}
        try:
            for index, item in enumerate(tree):
                itemid_id, inserted = _get_or_insert(
                    self.conn, "item_ids", "itemid", {"itemid": item.id}
                )
                did_insert |= inserted

                values: dict[str, object] = {"itemname": item.name}
                if isinstance(item, Comment):
                    values["timestamp"] = timestamp_string(item.timestamp)
                    values["author"] = item.author
                items_id, inserted = _get_or_insert(self.conn, "items", "itemname", values)
                did_insert |= inserted

                row = self.conn.execute(
                    "SELECT id FROM item_revisions WHERE itemid_id = ? AND revision_id = ?",
                    (itemid_id, revision_id),
                ).fetchone()
                if row is None:
                    heading_level = None
                    if isinstance(item, Heading) and not item.is_placeholder:
                        heading_level = item.heading_level
                    cursor = self.conn.execute(
                        """INSERT INTO item_revisions
                           (itemid_id, items_id, revision_id, page_title, type,
                            parent_id, heading_level)
                           VALUES (?, ?, ?, ?, ?, ?, ?)""",
                        (
                            itemid_id,
                            items_id,
                            revision_id,
                            page_title,
                            item.type,
                            # Parents come first in document order
                            None if item.parent is None else revision_row_ids[item.parent],
                            heading_level,
                        ),
                    )
                    assert cursor.lastrowid is not None
                    revision_row_ids[index] = cursor.lastrowid
                    did_insert = True
                else:
                    revision_row_ids[index] = row[0]
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

        logger.debug(
            "Stored {} thread items of revision {} ({})",
            len(tree), revision_id, "changed" if did_insert else "unchanged",
        )
        return did_insert

    def find_newest_revisions_by_name(self, item_name: str | list[str]) -> list[StoredThreadItem]:
        """Find items with the given name(s) in the newest revision of each page they appear on.

        Sections without comments all share one name, so it is never looked up.
        """
        names = [item_name] if isinstance(item_name, str) else list(item_name)
        names = [name for name in names if name != UNNAMED_HEADING_NAME]
        if not names:
            return []

        rows = self.conn.execute(
            _SELECT_ITEMS_SQL
            + f"WHERE it.itemname IN ({','.join('?' * len(names))}) "
            + """AND ir.revision_id = (
                     SELECT MAX(r2.revision_id) FROM item_revisions r2
                     WHERE r2.items_id = ir.items_id AND r2.page_title = ir.page_title
                 )
                 ORDER BY ir.page_title, ir.id""",
            names,
        ).fetchall()
        return [
            StoredThreadItem(
                item_id=row[0],
                item_name=row[1],
                type=row[2],
                page_title=row[3],
                revision_id=row[4],
                parent_id=row[5],
                heading_level=row[6],
            )
            for row in rows
        ]

    def find_newest_revisions_by_id(self, item_id: str) -> list[StoredThreadItem]:
        """Find items by id, following the id's name to the newest revisions.

        Looking up by name finds the item even when its id changed later, e.g.
        because it was moved on the page.
        """
        names = [
            row[0]
            for row in self.conn.execute(
                """SELECT DISTINCT it.itemname FROM item_ids ii
                   JOIN item_revisions ir ON ir.itemid_id = ii.id
                   JOIN items it ON it.id = ir.items_id
                   WHERE ii.itemid = ?""",
                (item_id,),
            ).fetchall()
        ]
        return self.find_newest_revisions_by_name(names)


def fix_trailing_separator_ids(conn: sqlite3.Connection) -> int:
    """Repair stored ids that have ``_`` before their end or their trailing timestamp.

    When the repaired id already exists, the revisions of the defective id are
    moved onto it.

    Returns:
        Number of ids repaired.
    """
    candidates = conn.execute(
        r"""SELECT id, itemid FROM item_ids
            WHERE itemid LIKE '_-%\_' ESCAPE '\'
               OR itemid LIKE '_-%\_-2%00' ESCAPE '\'
               OR itemid LIKE '_-%\_-2%00.000Z' ESCAPE '\'"""
    ).fetchall()

    total = 0
    try:
        for row_id, item_id in candidates:
            fixed = fix_trailing_separator_id(item_id)
            if fixed == item_id:
                # False positive of the LIKE patterns
                continue
            existing = conn.execute(
                "SELECT id FROM item_ids WHERE itemid = ?", (fixed,)
            ).fetchone()
            if existing is None:
                conn.execute("UPDATE item_ids SET itemid = ? WHERE id = ?", (fixed, row_id))
            else:
                conn.execute(
                    "UPDATE OR IGNORE item_revisions SET itemid_id = ? WHERE itemid_id = ?",
                    (existing[0], row_id),
                )
                conn.execute("DELETE FROM item_revisions WHERE itemid_id = ?", (row_id,))
                conn.execute("DELETE FROM item_ids WHERE id = ?", (row_id,))
            logger.debug("Repaired id {!r} -> {!r}", item_id, fixed)
            total += 1
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    return total
