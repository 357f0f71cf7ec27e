"""Names and ids for thread items.

Names identify "the same" item across revisions and may repeat within a page:

- comments: ``c-<author>-<timestamp>``
- headings: ``h-<author>-<timestamp>`` of the oldest comment directly in the
  section, or ``h-`` when the section has no comments of its own

Ids are unique within a page and are what gets persisted for permalinks:

- headings: ``h-<anchor>[-<timestamp>]``
- comments: ``c-<author>-<timestamp>[-<parent context>]``

followed by ``-<n>`` when the same id was already taken on the page.
Whitespace becomes ``_``, and separators are trimmed from both ends of every
component, so an id never has ``_`` right before its trailing ``-<timestamp>``.
Ids persisted before that rule existed can be repaired with
:func:`fix_trailing_separator_id`.
"""

import re
from collections.abc import Container
from datetime import UTC, datetime

from topic_watch.config import (
    COMMENT_TIMESTAMP_GRANULARITY,
    TIMESTAMP_FORMAT_SWITCH_TIME,
    UNNAMED_HEADING_NAME,
)

_TIMESTAMP_PATTERN = r"(?:[0-9]{14}|[0-9-]{10}T[0-9:]{6}00\.000Z)"

_ID_RE = re.compile(r"^[hc]-\S*$")
_DEFECTIVE_ID_RE = re.compile(rf"^([hc]-.*)_(-{_TIMESTAMP_PATTERN})?$")

_ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.000Z"
_COMPACT_FORMAT = "%Y%m%d%H%M%S"


def _escape(text: str) -> str:
    return re.sub(r"\s+", "_", text.strip()).strip("_")


def truncate_timestamp(
    timestamp: datetime, granularity: int = COMMENT_TIMESTAMP_GRANULARITY
) -> datetime:
    """Convert to UTC and drop everything below ``granularity`` seconds.

    Naive datetimes are taken to be UTC.
    """
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    seconds = int(timestamp.timestamp())
    return datetime.fromtimestamp(seconds - seconds % granularity, tz=UTC)


def timestamp_string(timestamp: datetime) -> str:
    """Format a comment timestamp the way names and ids embed it."""
    truncated = truncate_timestamp(timestamp)
    if truncated < TIMESTAMP_FORMAT_SWITCH_TIME:
        return truncated.strftime(_ISO_FORMAT)
    return truncated.strftime(_COMPACT_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a compact (``20220801123400``) or ISO 8601 timestamp into UTC."""
    if re.fullmatch(r"[0-9]{14}", value):
        return datetime.strptime(value, _COMPACT_FORMAT).replace(tzinfo=UTC)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        msg = f"Unrecognised timestamp {value!r}"
        raise ValueError(msg) from None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def comment_name(author: str, timestamp: datetime) -> str:
    return f"c-{_escape(author)}-{timestamp_string(timestamp)}"


def heading_name(thread_start: tuple[str, datetime] | None) -> str:
    """Name a heading after the oldest comment directly in its section.

    Args:
        thread_start: Author and timestamp of that comment, None if the
            section holds only sub-sections.
    """
    if thread_start is None:
        return UNNAMED_HEADING_NAME
    author, timestamp = thread_start
    return f"h-{_escape(author)}-{timestamp_string(timestamp)}"


def heading_anchor(text: str) -> str:
    return _escape(text)


def heading_id(text: str, thread_start: datetime | None, *, placeholder: bool = False) -> str:
    parts = [] if placeholder else [heading_anchor(text)]
    if thread_start is not None:
        parts.append(timestamp_string(thread_start))
    return "h-" + "-".join(part for part in parts if part)


def comment_id(author: str, timestamp: datetime, parent_context: str | None = None) -> str:
    item_id = f"c-{_escape(author)}-{timestamp_string(timestamp)}"
    if parent_context:
        item_id += f"-{parent_context}"
    return item_id


def comment_context(author: str, timestamp: datetime) -> str:
    """Return the part of a reply's id that refers to its parent comment."""
    return f"{_escape(author)}-{timestamp_string(timestamp)}"


def disambiguate_id(item_id: str, taken: Container[str]) -> str:
    """Append the lowest free ``-<n>`` suffix if ``item_id`` is already taken."""
    if item_id not in taken:
        return item_id
    number = 1
    while f"{item_id}-{number}" in taken:
        number += 1
    return f"{item_id}-{number}"


def is_well_formed_id(item_id: str) -> bool:
    """Check an id against the persisted format, rejecting the trailing-``_`` shape."""
    return bool(_ID_RE.match(item_id)) and not _DEFECTIVE_ID_RE.match(item_id)


def fix_trailing_separator_id(item_id: str) -> str:
    """Remove ``_`` left before the end of an id or before its trailing timestamp.

    Ids that are not defective are returned unchanged.
    """
    fixed = item_id
    while True:
        candidate = _DEFECTIVE_ID_RE.sub(r"\1\2", fixed)
        if candidate == fixed:
            return fixed
        fixed = candidate
