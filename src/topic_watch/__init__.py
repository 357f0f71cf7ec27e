"""Topic subscriptions for wiki discussion pages: revision diffs and comment identity."""

from topic_watch.api import MediaWikiApi
from topic_watch.core.diff.engine import diff_thread_trees
from topic_watch.core.importer.json_reader import load_thread_items, parse_thread_items
from topic_watch.models.notification import NotificationEvent
from topic_watch.models.thread_item import Comment, Heading, ThreadItem, ThreadItemTree
from topic_watch.protocols import ApiProtocol, SubscriptionStoreProtocol

__all__ = [
    "ApiProtocol",
    "Comment",
    "Heading",
    "MediaWikiApi",
    "NotificationEvent",
    "SubscriptionStoreProtocol",
    "ThreadItem",
    "ThreadItemTree",
    "diff_thread_trees",
    "load_thread_items",
    "parse_thread_items",
]
