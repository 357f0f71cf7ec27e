"""Compute topic notification events from two revisions of a discussion page."""

import re
from collections.abc import Collection

from loguru import logger

from topic_watch.config import SNIPPET_LENGTH
from topic_watch.core.diff.matcher import find_added_comments
from topic_watch.core.diff.topics import check_heading_ancestry, resolve_topic
from topic_watch.models.notification import EventKey, NotificationEvent
from topic_watch.models.thread_item import ThreadItemTree

# Whitespace, hyphens, tildes and dashes left between a comment body and its signature
_TRAILING_SEPARATOR_RE = re.compile(r"[\s\-~\u2010-\u2015\u2043\u2060]+$")


def make_snippet(body_text: str, length: int = SNIPPET_LENGTH) -> str:
    """Plain-text preview of a comment body, without the signature separator."""
    text = _TRAILING_SEPARATOR_RE.sub("", body_text.strip())
    if len(text) <= length:
        return text
    return text[: length - 1].rstrip() + "…"


def diff_thread_trees(
    old: ThreadItemTree,
    new: ThreadItemTree,
    editor: str | None,
    *,
    existing_keys: Collection[EventKey] = (),
    revision_id: int | None = None,
    mentioned_users: frozenset[str] = frozenset(),
    page_title: str | None = None,
) -> list[NotificationEvent]:
    """Find comments added by ``editor`` and describe them as notification events.

    Args:
        old: Thread items of the previous revision.
        new: Thread items of the revision being processed.
        editor: User who saved ``new``. Only their comments are reported; None
            (e.g. a deleted user) reports nothing.
        existing_keys: Keys of events already queued in the same batch; matching
            events are not emitted again.
        revision_id: Passed through to the events.
        mentioned_users: Passed through to the events.
        page_title: Passed through to the events.

    Returns:
        Events in the document order of ``new``.

    Raises:
        ThreadTreeError: Either tree is malformed, or a comment of ``new`` has no
            heading among its ancestors. No events are returned.
    """
    added = find_added_comments(old, new)
    check_heading_ancestry(new)
    if editor is None:
        logger.debug("Revision {} has no attributable editor, skipping", revision_id)
        return []

    events: list[NotificationEvent] = []
    for entry in added:
        comment = entry.comment
        if comment.author != editor:
            logger.debug(
                "Ignoring {} by {}, edit was made by {}", comment.id, comment.author, editor
            )
            continue

        heading = resolve_topic(new, comment)
        if heading is None:
            continue

        event = NotificationEvent(
            topic_name=heading.name,
            comment_id=comment.id,
            comment_name=comment.name,
            body_snippet=make_snippet(comment.body_text),
            topic_display_title=heading.text,
            author=comment.author,
            revision_id=revision_id,
            mentioned_users=mentioned_users,
            page_title=page_title,
        )
        if event.key in existing_keys:
            logger.debug("Event for {} already queued", comment.id)
            continue
        events.append(event)

    return events
