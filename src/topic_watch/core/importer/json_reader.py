"""Read serialized thread items into a ThreadItemTree."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from bs4 import BeautifulSoup
from loguru import logger

from topic_watch.core.identity import naming
from topic_watch.errors import ThreadItemFormatError
from topic_watch.models.thread_item import Comment, Heading, ThreadItem, ThreadItemTree

_BLOCK_TAGS = [
    "blockquote", "br", "dd", "div", "dl", "dt", "h1", "h2", "h3", "h4", "h5", "h6",
    "li", "ol", "p", "pre", "table", "td", "th", "tr", "ul",
]


@dataclass
class _RawItem:
    data: dict[str, Any]
    parent: int | None
    level: int
    timestamp: datetime | None = None
    children: list[int] = field(default_factory=list)


def html_to_text(markup: str) -> str:
    """Visible text of an HTML fragment, with block elements separated by spaces."""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    for block in soup.find_all(_BLOCK_TAGS):
        block.insert_after(" ")
    return " ".join(soup.get_text().split())


def _plain_text(data_item: dict[str, Any], key: str) -> str:
    """Return a plain-text field, falling back to the item's rendered ``html``."""
    if key in data_item:
        value = data_item[key]
        if not isinstance(value, str):
            msg = f"Thread item {data_item.get('id')!r} has a non-string {key!r}"
            raise ThreadItemFormatError(msg)
        return value
    markup = data_item.get("html", "")
    if not isinstance(markup, str):
        msg = f"Thread item {data_item.get('id')!r} has a non-string 'html'"
        raise ThreadItemFormatError(msg)
    return html_to_text(markup)


def _int_field(raw: dict[str, Any], key: str, default: int) -> int:
    value = raw.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        msg = f"Thread item {raw.get('id')!r} has an invalid {key!r}: {value!r}"
        raise ThreadItemFormatError(msg) from e


def _extract_items(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, dict):
        if "discussiontoolspageinfo" in data:
            data = data["discussiontoolspageinfo"]
        data = data.get("threaditemshtml", data.get("threads"))
    if not isinstance(data, list):
        msg = "Expected a list of thread items"
        raise ThreadItemFormatError(msg)
    return data


def _flatten(top_level: list[dict[str, Any]]) -> list[_RawItem]:
    """Walk the nested replies depth-first, producing items in document order."""
    result: list[_RawItem] = []
    # (raw item, parent index, parent level)
    todo: list[tuple[Any, int | None, int]] = [(raw, None, 0) for raw in reversed(top_level)]
    while todo:
        raw, parent, parent_level = todo.pop()
        if not isinstance(raw, dict):
            msg = f"Thread item must be an object, got {type(raw).__name__}"
            raise ThreadItemFormatError(msg)

        item_type = raw.get("type")
        if item_type == "heading":
            level = 0
        elif item_type == "comment":
            level = _int_field(raw, "level", parent_level + 1)
        else:
            msg = f"Unknown thread item type {item_type!r}"
            raise ThreadItemFormatError(msg)

        timestamp = None
        if item_type == "comment":
            if not raw.get("author"):
                msg = f"Comment {raw.get('id')!r} has no author"
                raise ThreadItemFormatError(msg)
            if not isinstance(raw["author"], str):
                msg = f"Comment {raw.get('id')!r} has a non-string author"
                raise ThreadItemFormatError(msg)
            try:
                timestamp = naming.parse_timestamp(str(raw["timestamp"]))
            except (KeyError, ValueError) as e:
                msg = f"Comment {raw.get('id')!r} has no valid timestamp"
                raise ThreadItemFormatError(msg) from e

        index = len(result)
        result.append(_RawItem(data=raw, parent=parent, level=level, timestamp=timestamp))
        if parent is not None:
            result[parent].children.append(index)

        replies = raw.get("replies", [])
        if not isinstance(replies, list):
            msg = f"Replies of thread item {raw.get('id')!r} must be a list"
            raise ThreadItemFormatError(msg)
        todo.extend((reply, index, level) for reply in reversed(replies))
    return result


def _thread_start(raw_items: list[_RawItem], index: int) -> tuple[str, datetime] | None:
    """Oldest comment below an item, not descending into sub-sections."""
    oldest: tuple[str, datetime] | None = None
    todo = [
        child for child in raw_items[index].children if raw_items[child].data["type"] == "comment"
    ]
    while todo:
        item = raw_items[todo.pop()]
        assert item.timestamp is not None
        if oldest is None or item.timestamp < oldest[1]:
            oldest = (item.data["author"], item.timestamp)
        todo.extend(
            child for child in item.children if raw_items[child].data["type"] == "comment"
        )
    return oldest


def _parent_context(raw_items: list[_RawItem], item: _RawItem) -> str | None:
    if item.parent is None:
        return None
    parent = raw_items[item.parent]
    if parent.data["type"] == "heading":
        if parent.data.get("placeholderHeading"):
            return None
        return naming.heading_anchor(_plain_text(parent.data, "text")) or None
    assert parent.timestamp is not None
    return naming.comment_context(parent.data["author"], parent.timestamp)


def _compute_name(raw_items: list[_RawItem], index: int) -> str:
    item = raw_items[index]
    if item.data["type"] == "heading":
        return naming.heading_name(_thread_start(raw_items, index))
    assert item.timestamp is not None
    return naming.comment_name(item.data["author"], item.timestamp)


def _compute_id(raw_items: list[_RawItem], index: int, taken: set[str]) -> str:
    item = raw_items[index]
    if item.data["type"] == "heading":
        start = _thread_start(raw_items, index)
        base = naming.heading_id(
            _plain_text(item.data, "text"),
            start[1] if start else None,
            placeholder=bool(item.data.get("placeholderHeading")),
        )
    else:
        assert item.timestamp is not None
        base = naming.comment_id(
            item.data["author"], item.timestamp, _parent_context(raw_items, item)
        )
    return naming.disambiguate_id(base, taken)


def parse_thread_items(data: Any) -> ThreadItemTree:
    """Parse serialized thread items into a tree.

    Accepts the ``discussiontoolspageinfo`` API response, a dict with a
    ``threaditemshtml`` list, or the list itself. Each entry is a heading whose
    comments (and sub-headings) are nested under ``replies``. Items without a
    ``name`` or ``id`` get them computed.

    Raises:
        ThreadItemFormatError: The data does not describe a valid tree.
    """
    raw_items = _flatten(_extract_items(data))

    taken: set[str] = set()
    items: list[ThreadItem] = []
    for index, raw in enumerate(raw_items):
        data_item = raw.data
        for key in ("id", "name"):
            if data_item.get(key) is not None and not isinstance(data_item[key], str):
                msg = f"Thread item {key} must be a string, got {data_item[key]!r}"
                raise ThreadItemFormatError(msg)
        name = data_item.get("name") or _compute_name(raw_items, index)

        item_id = data_item.get("id")
        if item_id and not naming.is_well_formed_id(item_id):
            fixed = naming.fix_trailing_separator_id(item_id)
            logger.warning("Repairing malformed thread item id {!r} -> {!r}", item_id, fixed)
            item_id = fixed
        if not item_id:
            item_id = _compute_id(raw_items, index, taken)
        taken.add(item_id)

        if data_item["type"] == "heading":
            items.append(
                Heading(
                    id=item_id,
                    name=name,
                    level=raw.level,
                    parent=raw.parent,
                    heading_level=_int_field(data_item, "headingLevel", 2),
                    text=_plain_text(data_item, "text"),
                    is_placeholder=bool(data_item.get("placeholderHeading", False)),
                )
            )
        else:
            assert raw.timestamp is not None
            items.append(
                Comment(
                    id=item_id,
                    name=name,
                    level=raw.level,
                    parent=raw.parent,
                    author=data_item["author"],
                    timestamp=raw.timestamp,
                    body_text=_plain_text(data_item, "bodyText"),
                )
            )

    return ThreadItemTree(items=tuple(items))


def load_thread_items(path: Path) -> ThreadItemTree:
    """Read a JSON file of serialized thread items."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        msg = f"{path} is not valid JSON: {e}"
        raise ThreadItemFormatError(msg) from e
    return parse_thread_items(data)
