"""Topic subscription records."""

from dataclasses import dataclass
from enum import IntEnum


class SubscriptionState(IntEnum):
    UNSUBSCRIBED = 0
    SUBSCRIBED = 1


@dataclass(frozen=True)
class SubscriptionItem:
    """A user's subscription to a topic, keyed by the topic's heading name."""

    user: str
    topic_name: str
    page_title: str
    section: str
    state: SubscriptionState
    created: int | None = None
    notified: int | None = None

    @property
    def is_muted(self) -> bool:
        return self.state == SubscriptionState.UNSUBSCRIBED


@dataclass(frozen=True)
class StoredThreadItem:
    """A thread item as persisted for permalink lookups."""

    item_id: str
    item_name: str
    type: str
    page_title: str
    revision_id: int
    parent_id: str | None
    heading_level: int | None = None
