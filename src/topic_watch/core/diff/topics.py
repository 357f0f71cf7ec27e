"""Find the subscribable topic a comment belongs to."""

from topic_watch.config import SUBSCRIBABLE_HEADING_LEVEL, UNNAMED_HEADING_NAME
from topic_watch.errors import ThreadTreeError
from topic_watch.models.thread_item import Comment, Heading, ThreadItemTree


def is_topic_heading(heading: Heading) -> bool:
    return heading.is_placeholder or heading.heading_level == SUBSCRIBABLE_HEADING_LEVEL


def resolve_topic(tree: ThreadItemTree, comment: Comment) -> Heading | None:
    """Return the nearest level-2 (or placeholder) heading above a comment.

    Returns None when no ancestor heading qualifies, e.g. a section nested only
    under level 3 headings, or when the topic heading has no distinguishable
    name and so cannot be subscribed to.

    Raises:
        ThreadTreeError: The comment has no heading among its ancestors at all.
    """
    seen_heading = False
    for ancestor in tree.ancestors(comment):
        if not isinstance(ancestor, Heading):
            continue
        seen_heading = True
        if is_topic_heading(ancestor):
            if ancestor.name == UNNAMED_HEADING_NAME:
                return None
            return ancestor

    if not seen_heading:
        msg = f"Comment {comment.id!r} is not under any heading"
        raise ThreadTreeError(msg)
    return None


def check_heading_ancestry(tree: ThreadItemTree) -> None:
    """Raise ThreadTreeError unless every comment has a heading among its ancestors."""
    for comment in tree.comments:
        if not any(isinstance(a, Heading) for a in tree.ancestors(comment)):
            msg = f"Comment {comment.id!r} is not under any heading"
            raise ThreadTreeError(msg)
