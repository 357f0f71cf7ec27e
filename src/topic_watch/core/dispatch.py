"""Generate topic notifications for a saved revision and find who receives them."""

from collections.abc import Iterable

import requests
from loguru import logger

from topic_watch.config import NOTIFY_BATCH_SIZE
from topic_watch.core.cache import PagePropsCache
from topic_watch.core.diff.engine import diff_thread_trees
from topic_watch.core.importer.json_reader import parse_thread_items
from topic_watch.errors import ThreadItemFormatError
from topic_watch.models.notification import EventKey, MentionEvent, NotificationEvent, QueuedEvent
from topic_watch.models.revision import RevisionInfo
from topic_watch.models.thread_item import ThreadItemTree
from topic_watch.protocols import ApiProtocol, SubscriptionStoreProtocol


def is_available_for_page(api: ApiProtocol, revision: RevisionInfo, cache: PagePropsCache) -> bool:
    """Check whether a page is a discussion page.

    Talk namespaces always are; other pages opt in with the ``newsectionlink``
    page property.
    """
    if revision.is_talk_namespace:
        return True
    props = cache.get(revision.page_title)
    if props is None:
        props = api.get_page_props(revision.page_title)
        cache.set(revision.page_title, props)
    return "newsectionlink" in props


def load_revision_tree(
    api: ApiProtocol, page_title: str, revision_id: int
) -> ThreadItemTree | None:
    """Fetch and parse the thread items of a revision; None if that fails."""
    try:
        return parse_thread_items(api.get_thread_items(page_title, revision_id))
    except (ThreadItemFormatError, RuntimeError, requests.RequestException) as e:
        logger.warning("Could not load thread items of revision {}: {}", revision_id, e)
        return None


def existing_event_keys(events: Iterable[QueuedEvent]) -> set[EventKey]:
    return {event.key for event in events}


def mentioned_users(events: Iterable[QueuedEvent]) -> frozenset[str]:
    users: set[str] = set()
    for event in events:
        if isinstance(event, MentionEvent):
            users |= event.mentioned_users
    return frozenset(users)


def generate_events_for_revision(
    api: ApiProtocol,
    revision_id: int,
    events: list[QueuedEvent],
    *,
    cache: PagePropsCache,
) -> list[NotificationEvent]:
    """Diff a revision against its parent and queue events for new comments.

    Args:
        api: API client used to look up and parse both revisions.
        revision_id: The revision that was just saved.
        events: Events already queued for this edit (e.g. mentions). New events
            are appended to it.
        cache: Page properties cache for the current request.

    Returns:
        The events that were appended.
    """
    revision = api.get_revision(revision_id)
    if revision.parent_id is None:
        # Page creation, nothing to compare with
        logger.debug("Revision {} has no parent revision, skipping", revision_id)
        return []

    if not is_available_for_page(api, revision, cache):
        logger.debug("{} is not a discussion page, skipping", revision.page_title)
        return []

    old_tree = load_revision_tree(api, revision.page_title, revision.parent_id)
    new_tree = load_revision_tree(api, revision.page_title, revision_id)
    if old_tree is None or new_tree is None:
        return []

    new_events = diff_thread_trees(
        old_tree,
        new_tree,
        revision.user,
        existing_keys=existing_event_keys(events),
        revision_id=revision_id,
        mentioned_users=mentioned_users(events),
        page_title=revision.page_title,
    )
    logger.info(
        "Revision {} of {}: {} new comment events",
        revision_id, revision.page_title, len(new_events),
    )
    events.extend(new_events)
    return new_events


def locate_subscribed_users(
    store: SubscriptionStoreProtocol,
    event: NotificationEvent,
    batch_size: int = NOTIFY_BATCH_SIZE,
) -> list[str]:
    """Return the users to notify about an event and record the notification.

    Subscribers are read from the store ``batch_size`` at a time. The comment's
    author and users already mentioned in the same edit are left out.
    """
    users: list[str] = []
    offset = 0
    while True:
        batch = store.subscribers_of(event.topic_name, limit=batch_size, offset=offset)
        users.extend(batch)
        if len(batch) < batch_size:
            break
        offset += batch_size
    store.record_notified(None, event.topic_name)
    excluded = event.mentioned_users | {event.author}
    return [user for user in users if user not in excluded]
