"""Configuration constants for topic-watch."""

from datetime import UTC, datetime
from pathlib import Path

# Action API endpoint used when --api-url is not passed.
DEFAULT_API_URL: str = "https://en.wikipedia.org/w/api.php"

# Cache prefix, used only when --cache is passed.
API_CACHE_PREFIX: str = "/tmp/topic-watch-cache/cache-"

# Directory with the subscription database. First directory which is found is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/topic-watch").expanduser(),
    Path("~/.topic-watch").expanduser(),
]

# Comment timestamps are truncated to this many seconds before they are used in
# names and ids. Must match the parser that produced the thread items.
COMMENT_TIMESTAMP_GRANULARITY: int = 60

# Timestamps before this instant are written in ISO form, later ones in the
# compact 14-digit form.
TIMESTAMP_FORMAT_SWITCH_TIME: datetime = datetime(2022, 7, 12, tzinfo=UTC)

# Name shared by every heading whose section has no comments of its own.
UNNAMED_HEADING_NAME: str = "h-"

# Only headings of this level can be subscribed to.
SUBSCRIBABLE_HEADING_LEVEL: int = 2

# Plain-text preview length for notifications.
SNIPPET_LENGTH: int = 150

# Maximum number of subscriptions stored for each user.
USER_SUBSCRIPTION_LIMIT: int = 5000

# Subscribers fetched per notification event.
NOTIFY_BATCH_SIZE: int = 500


def resolve_data_directory() -> Path:
    """Return the first existing data directory, or the first candidate."""
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]
