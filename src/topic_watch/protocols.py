"""Protocols for dependency injection in the event dispatcher."""

from typing import Any, Protocol, runtime_checkable

from topic_watch.models.revision import RevisionInfo


@runtime_checkable
class ApiProtocol(Protocol):
    """Protocol for wiki API clients."""

    def get_revision(self, revision_id: int) -> RevisionInfo:
        """Return metadata of a revision."""
        ...

    def get_page_props(self, page_title: str) -> dict[str, Any]:
        """Return the page properties of a page."""
        ...

    def get_thread_items(self, page_title: str, revision_id: int) -> dict[str, Any]:
        """Return the serialized thread items of a revision."""
        ...


@runtime_checkable
class SubscriptionStoreProtocol(Protocol):
    """Protocol for the store behind topic subscriptions."""

    def subscribers_of(
        self, topic_name: str, limit: int | None = None, offset: int = 0
    ) -> list[str]:
        """Return a page of the users subscribed to a topic."""
        ...

    def record_notified(self, user: str | None, topic_name: str) -> bool:
        """Record that subscribers of a topic were notified."""
        ...
