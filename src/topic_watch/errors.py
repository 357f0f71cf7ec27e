"""Exceptions raised by the diff engine and its readers."""


class TopicWatchError(Exception):
    """Base class for topic-watch errors."""


class ThreadTreeError(TopicWatchError):
    """A thread item tree violates a structural invariant.

    Raised when a comment cannot be placed under any heading. This points at a
    defect in whatever produced the tree, so the diff is aborted instead of
    emitting partial results.
    """


class BucketMismatchError(ThreadTreeError):
    """The matcher selected a different number of comments than were added."""

    def __init__(self, topic_name: str, comment_name: str, expected: int, selected: int) -> None:
        self.topic_name = topic_name
        self.comment_name = comment_name
        self.expected = expected
        self.selected = selected
        super().__init__(
            f"Selected {selected} comments instead of {expected} "
            f"for bucket ({topic_name!r}, {comment_name!r})"
        )


class ThreadItemFormatError(TopicWatchError, ValueError):
    """Serialized thread items could not be read."""
