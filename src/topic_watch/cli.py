"""CLI for topic-watch (diff revisions, generate events, manage subscriptions)."""

import json
import sqlite3
from dataclasses import asdict
from pathlib import Path
from typing import Annotated, Any

import requests
import typer
from loguru import logger

from topic_watch.api import MediaWikiApi
from topic_watch.config import DEFAULT_API_URL, resolve_data_directory
from topic_watch.core.cache import PagePropsCache
from topic_watch.core.database.schema import get_schema_version, migrate_schema
from topic_watch.core.diff.engine import diff_thread_trees
from topic_watch.core.dispatch import generate_events_for_revision, locate_subscribed_users
from topic_watch.core.importer.json_reader import load_thread_items
from topic_watch.core.store.subscriptions import SubscriptionStore
from topic_watch.core.store.thread_items import ThreadItemStore
from topic_watch.errors import ThreadItemFormatError, ThreadTreeError
from topic_watch.logging_config import configure_logging
from topic_watch.models.notification import EventKey, NotificationEvent, QueuedEvent
from topic_watch.models.subscription import SubscriptionState

app = typer.Typer(help="topic-watch: notifications for new comments in subscribed topics.")

_DEFAULT_DATA_DIR = resolve_data_directory()
_DB_FILENAME = "topic-watch.db"

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Subscription database directory"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    log_file: Annotated[
        Path | None,
        typer.Option("--log-file", help="Also write debug logs to this file"),
    ] = None,
) -> None:
    configure_logging(verbose=verbose, log_file=log_file)


def _open_db(data_dir: Path | None, *, create: bool = False) -> sqlite3.Connection:
    """Open (and migrate) the database, raising if it doesn't exist and create is False."""
    dst = data_dir or _DEFAULT_DATA_DIR
    db_path = dst / _DB_FILENAME
    if not db_path.exists():
        if not create:
            logger.error("Database not found: {}. Run 'init' first.", db_path)
            raise typer.Exit(1)
        dst.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    migrate_schema(conn)
    return conn


def _event_to_json(event: NotificationEvent) -> dict[str, Any]:
    data = asdict(event)
    data["mentioned_users"] = sorted(event.mentioned_users)
    return data


def _echo_events(events: list[NotificationEvent], output_json: bool) -> None:
    if output_json:
        typer.echo(json.dumps([_event_to_json(e) for e in events], indent=2, ensure_ascii=False))
        return
    typer.echo(f"{len(events)} new comments:\n")
    for event in events:
        typer.echo(f"  [{event.topic_display_title}] {event.author}: {event.body_snippet[:80]}")
        typer.echo(f"    topic={event.topic_name}  id={event.comment_id}")


def _read_existing_keys(path: Path) -> set[EventKey]:
    """Read ``[{"topic_name": ..., "comment_name": ...}, ...]`` from a JSON file."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return {
            EventKey(topic_name=d["topic_name"], comment_name=d["comment_name"]) for d in data
        }
    except (ValueError, KeyError, TypeError) as e:
        logger.error("Invalid event keys file {}: {!r}", path, e)
        raise typer.Exit(1) from e


@app.command()
def init(data_dir: DataDirOption = None) -> None:
    """Create or upgrade the database."""
    conn = _open_db(data_dir, create=True)
    try:
        typer.echo(f"Database ready (schema version {get_schema_version(conn)})")
    finally:
        conn.close()


@app.command()
def diff(
    old: Path = typer.Argument(..., help="Thread items JSON of the previous revision"),
    new: Path = typer.Argument(..., help="Thread items JSON of the new revision"),
    editor: Annotated[
        str | None,
        typer.Option("--editor", "-e", help="User who saved the new revision"),
    ] = None,
    existing_keys: Annotated[
        Path | None,
        typer.Option("--existing-keys", "-k", help="JSON file with already queued event keys"),
    ] = None,
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Show the notification events for comments added between two revisions."""
    try:
        old_tree = load_thread_items(old)
        new_tree = load_thread_items(new)
        keys = _read_existing_keys(existing_keys) if existing_keys else set()
        events = diff_thread_trees(old_tree, new_tree, editor, existing_keys=keys)
    except (OSError, ThreadItemFormatError, ThreadTreeError) as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e
    _echo_events(events, output_json)


@app.command()
def events(
    revision_id: int = typer.Argument(..., help="Revision to generate events for"),
    api_url: str = typer.Option(DEFAULT_API_URL, "--api-url", help="Action API endpoint"),
    cache: bool = typer.Option(False, "--cache", help="Cache API responses on disk"),
    notify: bool = typer.Option(
        False, "--notify", "-n", help="Look up subscribers and record the notification"
    ),
    data_dir: DataDirOption = None,
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Generate notification events for a saved revision."""
    api = MediaWikiApi(api_url, from_cache=cache)
    queued: list[QueuedEvent] = []
    try:
        new_events = generate_events_for_revision(
            api, revision_id, queued, cache=PagePropsCache()
        )
    except (ThreadTreeError, RuntimeError, requests.RequestException) as e:
        logger.error("Revision {}: {}", revision_id, e)
        raise typer.Exit(1) from e
    _echo_events(new_events, output_json)

    if not notify:
        return
    conn = _open_db(data_dir)
    try:
        store = SubscriptionStore(conn)
        for event in new_events:
            users = locate_subscribed_users(store, event)
            typer.echo(f"  {event.comment_id}: notify {', '.join(users) or 'nobody'}")
    finally:
        conn.close()


@app.command()
def subscribe(
    user: str = typer.Argument(..., help="User name"),
    topic: str = typer.Argument(..., help="Topic name (h-<author>-<timestamp>)"),
    page: str = typer.Option(..., "--page", "-p", help="Page the topic is on"),
    section: str = typer.Option("", "--section", "-s", help="Section title"),
    data_dir: DataDirOption = None,
) -> None:
    """Subscribe a user to a topic."""
    conn = _open_db(data_dir, create=True)
    try:
        if not SubscriptionStore(conn).add_subscription(user, topic, page, section):
            typer.echo(f"Could not subscribe {user} to {topic}.")
            raise typer.Exit(1)
        typer.echo(f"Subscribed {user} to {topic}")
    finally:
        conn.close()


@app.command()
def unsubscribe(
    user: str = typer.Argument(..., help="User name"),
    topic: str = typer.Argument(..., help="Topic name"),
    data_dir: DataDirOption = None,
) -> None:
    """Mute a user's subscription to a topic."""
    conn = _open_db(data_dir)
    try:
        if not SubscriptionStore(conn).remove_subscription(user, topic):
            typer.echo(f"{user} is not subscribed to {topic}.")
            raise typer.Exit(1)
        typer.echo(f"Unsubscribed {user} from {topic}")
    finally:
        conn.close()


@app.command()
def subscribers(
    topic: str = typer.Argument(..., help="Topic name"),
    data_dir: DataDirOption = None,
) -> None:
    """List users subscribed to a topic."""
    conn = _open_db(data_dir)
    try:
        users = SubscriptionStore(conn, read_only=True).subscribers_of(topic)
        typer.echo(f"{len(users)} subscribers:\n")
        for user in users:
            typer.echo(f"  {user}")
    finally:
        conn.close()


@app.command()
def subscriptions(
    user: str = typer.Argument(..., help="User name"),
    all_states: bool = typer.Option(False, "--all", "-a", help="Include muted subscriptions"),
    data_dir: DataDirOption = None,
) -> None:
    """List a user's subscriptions."""
    conn = _open_db(data_dir)
    try:
        state = None if all_states else SubscriptionState.SUBSCRIBED
        items = SubscriptionStore(conn, read_only=True).subscriptions_for_user(user, state=state)
        typer.echo(f"{len(items)} subscriptions:\n")
        for item in items:
            muted = "  (muted)" if item.is_muted else ""
            typer.echo(f"  [{item.page_title}] {item.section or item.topic_name}{muted}")
            typer.echo(f"    topic={item.topic_name}")
    finally:
        conn.close()


@app.command()
def persist(
    revision_id: int = typer.Argument(..., help="Revision the thread items belong to"),
    page: str = typer.Argument(..., help="Page title"),
    items_file: Path = typer.Argument(..., help="Thread items JSON of the revision"),
    data_dir: DataDirOption = None,
) -> None:
    """Store the thread item ids and names of a revision."""
    try:
        tree = load_thread_items(items_file)
    except (OSError, ThreadItemFormatError) as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e

    conn = _open_db(data_dir, create=True)
    try:
        changed = ThreadItemStore(conn).insert_thread_items(revision_id, page, tree)
        typer.echo(
            f"Stored {len(tree)} thread items of revision {revision_id}"
            + ("" if changed else " (already stored)")
        )
    finally:
        conn.close()


@app.command()
def find(
    name_or_id: str = typer.Argument(..., help="Thread item name or id"),
    data_dir: DataDirOption = None,
) -> None:
    """Find where a thread item was last seen."""
    conn = _open_db(data_dir)
    try:
        store = ThreadItemStore(conn)
        found = store.find_newest_revisions_by_name(name_or_id)
        if not found:
            found = store.find_newest_revisions_by_id(name_or_id)
        if not found:
            typer.echo(f"Thread item '{name_or_id}' not found.")
            raise typer.Exit(1)
        for item in found:
            typer.echo(f"  [{item.page_title}] revision {item.revision_id}  id={item.item_id}")
    finally:
        conn.close()
