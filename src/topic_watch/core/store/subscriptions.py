"""SQLite-backed topic subscriptions."""

import sqlite3
import time

from loguru import logger

from topic_watch.config import USER_SUBSCRIPTION_LIMIT
from topic_watch.models.subscription import SubscriptionItem, SubscriptionState


def _now_ms() -> int:
    return int(time.time() * 1000)


class SubscriptionStore:
    """Subscriptions of users to topics, keyed by topic (heading) name.

    Every write is committed on the same connection the reads use, so a
    notification recorded with :meth:`record_notified` is visible to the next
    :meth:`subscribers_of` call.
    """

    def __init__(self, conn: sqlite3.Connection, *, read_only: bool = False) -> None:
        self.conn = conn
        self.read_only = read_only

    def _fetch(
        self,
        *,
        user: str | None = None,
        topic_names: list[str] | None = None,
        state: SubscriptionState | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[SubscriptionItem]:
        if topic_names is not None and not topic_names:
            return []

        where: list[str] = []
        params: list[str | int] = []
        if user is not None:
            where.append("user = ?")
            params.append(user)
        if topic_names is not None:
            where.append(f"item IN ({','.join('?' * len(topic_names))})")
            params.extend(topic_names)
        if state is not None:
            where.append("state = ?")
            params.append(int(state))

        query = (
            "SELECT user, item, page_title, section, state, created, notified FROM subscriptions"
        )
        if where:
            query += " WHERE " + " AND ".join(where)
        query += " ORDER BY user, item"
        if limit is not None or offset:
            # SQLite needs a LIMIT before OFFSET; -1 means no limit
            query += " LIMIT ? OFFSET ?"
            params.extend([limit if limit is not None else -1, offset])

        return [
            SubscriptionItem(
                user=row[0],
                topic_name=row[1],
                page_title=row[2],
                section=row[3],
                state=SubscriptionState(row[4]),
                created=row[5],
                notified=row[6],
            )
            for row in self.conn.execute(query, params).fetchall()
        ]

    def subscriptions_for_user(
        self,
        user: str,
        topic_names: list[str] | None = None,
        state: SubscriptionState | None = None,
    ) -> list[SubscriptionItem]:
        if not user:
            return []
        return self._fetch(user=user, topic_names=topic_names, state=state)

    def subscriptions_for_topic(
        self, topic_name: str, state: SubscriptionState | None = None
    ) -> list[SubscriptionItem]:
        return self._fetch(topic_names=[topic_name], state=state)

    def subscribers_of(
        self, topic_name: str, limit: int | None = None, offset: int = 0
    ) -> list[str]:
        """Return the users actively subscribed to a topic, ordered by user name."""
        items = self._fetch(
            topic_names=[topic_name],
            state=SubscriptionState.SUBSCRIBED,
            limit=limit,
            offset=offset,
        )
        return [item.user for item in items]

    def _user_exceeds_limit(self, user: str) -> bool:
        count = self.conn.execute(
            "SELECT COUNT(*) FROM subscriptions WHERE user = ?", (user,)
        ).fetchone()[0]
        if count >= USER_SUBSCRIPTION_LIMIT // 2:
            logger.warning("User {} has {} subscriptions, approaching the limit", user, count)
        return count >= USER_SUBSCRIPTION_LIMIT

    def add_subscription(
        self, user: str, topic_name: str, page_title: str, section: str = ""
    ) -> bool:
        """Subscribe a user to a topic, or re-enable a muted subscription.

        Returns:
            True if a row was written.
        """
        if self.read_only or not user:
            return False
        if self._user_exceeds_limit(user):
            return False
        cursor = self.conn.execute(
            """INSERT INTO subscriptions (user, item, page_title, section, state, created)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT (user, item) DO UPDATE SET state = excluded.state""",
            (user, topic_name, page_title, section, int(SubscriptionState.SUBSCRIBED), _now_ms()),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def remove_subscription(self, user: str, topic_name: str) -> bool:
        """Mute a user's subscription to a topic. The row is kept."""
        if self.read_only or not user:
            return False
        cursor = self.conn.execute(
            "UPDATE subscriptions SET state = ? WHERE user = ? AND item = ?",
            (int(SubscriptionState.UNSUBSCRIBED), user, topic_name),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def record_notified(self, user: str | None, topic_name: str) -> bool:
        """Update the notified timestamp of a topic's subscriptions.

        Muted subscriptions are updated too. With ``user`` None, every
        subscription to the topic is updated.
        """
        if self.read_only:
            return False
        query = "UPDATE subscriptions SET notified = ? WHERE item = ?"
        params: list[str | int] = [_now_ms(), topic_name]
        if user is not None:
            query += " AND user = ?"
            params.append(user)
        cursor = self.conn.execute(query, params)
        self.conn.commit()
        return cursor.rowcount > 0
