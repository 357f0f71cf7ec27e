"""Match comments between two revisions by (topic name, comment name)."""

from dataclasses import dataclass

from loguru import logger

from topic_watch.errors import BucketMismatchError, ThreadTreeError
from topic_watch.models.thread_item import Comment, Heading, ThreadItemTree

# topic name -> comment name -> comments in document order
CommentGrouping = dict[str, dict[str, list[Comment]]]


@dataclass(frozen=True)
class AddedComment:
    """A comment judged new in the later revision, with its grouping topic name."""

    topic_name: str
    comment: Comment


def _opens_scope(heading: Heading) -> bool:
    return heading.is_placeholder or heading.heading_level <= 2


def group_comments_by_topic_and_name(tree: ThreadItemTree) -> CommentGrouping:
    """Group the comments of a tree into buckets.

    A comment belongs to the scope of the closest preceding heading of level 1-2
    (or the placeholder heading). Deeper headings only open a scope when no scope
    was opened before them.

    Raises:
        ThreadTreeError: A comment comes before any heading.
    """
    grouping: CommentGrouping = {}
    topic_name: str | None = None
    for item in tree:
        if isinstance(item, Heading):
            if topic_name is None or _opens_scope(item):
                topic_name = item.name
        else:
            if topic_name is None:
                msg = f"Comment {item.id!r} is not preceded by any heading"
                raise ThreadTreeError(msg)
            grouping.setdefault(topic_name, {}).setdefault(item.name, []).append(item)
    return grouping


def select_added(
    new_comments: list[Comment], old_comments: list[Comment], *, topic_name: str = ""
) -> list[Comment]:
    """Pick the comments of one bucket that were added in the new revision.

    Exactly ``len(new) - len(old)`` comments are picked (none if that is not
    positive). Comments whose id does not occur in the old bucket are preferred,
    then comments that come later in the page. The result is in document order.

    Raises:
        BucketMismatchError: The selection came out with the wrong size.
    """
    added_count = len(new_comments) - len(old_comments)
    if added_count <= 0:
        return []

    old_ids = {comment.id for comment in old_comments}
    # Latest first within each preference group
    candidates = [c for c in reversed(new_comments) if c.id not in old_ids]
    candidates += [c for c in reversed(new_comments) if c.id in old_ids]
    chosen = {comment.id for comment in candidates[:added_count]}
    selected = [comment for comment in new_comments if comment.id in chosen]

    if len(selected) != added_count:
        comment_name = new_comments[0].name
        logger.error(
            "Bucket ({!r}, {!r}): selected {} comments, expected {}",
            topic_name, comment_name, len(selected), added_count,
        )
        raise BucketMismatchError(topic_name, comment_name, added_count, len(selected))
    return selected


def find_added_comments(old: ThreadItemTree, new: ThreadItemTree) -> list[AddedComment]:
    """Return the comments of ``new`` that are not in ``old``, in document order."""
    old_grouping = group_comments_by_topic_and_name(old)
    new_grouping = group_comments_by_topic_and_name(new)

    added: list[AddedComment] = []
    for topic_name, buckets in new_grouping.items():
        old_buckets = old_grouping.get(topic_name, {})
        for comment_name, new_comments in buckets.items():
            selected = select_added(
                new_comments, old_buckets.get(comment_name, []), topic_name=topic_name
            )
            added.extend(AddedComment(topic_name=topic_name, comment=c) for c in selected)

    added.sort(key=lambda a: new.position(a.comment))
    logger.debug("Found {} added comments", len(added))
    return added
