"""Notification events produced from revision diffs."""

from dataclasses import dataclass


@dataclass(frozen=True)
class EventKey:
    """Identity of a queued event within one dispatch batch."""

    topic_name: str
    comment_name: str


@dataclass(frozen=True)
class NotificationEvent:
    """A new comment in a subscribable topic."""

    topic_name: str
    comment_id: str
    comment_name: str
    body_snippet: str
    topic_display_title: str
    author: str
    revision_id: int | None = None
    mentioned_users: frozenset[str] = frozenset()
    page_title: str | None = None

    @property
    def key(self) -> EventKey:
        return EventKey(topic_name=self.topic_name, comment_name=self.comment_name)


@dataclass(frozen=True)
class MentionEvent:
    """An @mention notification queued by another pipeline for the same edit."""

    topic_name: str
    comment_name: str
    mentioned_users: frozenset[str]
    revision_id: int | None = None

    @property
    def key(self) -> EventKey:
        return EventKey(topic_name=self.topic_name, comment_name=self.comment_name)


QueuedEvent = NotificationEvent | MentionEvent
