"""Wiki Action API client with optional caching."""

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

import requests

from topic_watch.config import API_CACHE_PREFIX, DEFAULT_API_URL
from topic_watch.models.revision import RevisionInfo

USER_AGENT = "topic-watch/0.1 (discussion topic subscriptions)"


class MediaWikiApi:
    """Read-only Action API client with caching."""

    def __init__(self, api_url: str = DEFAULT_API_URL, *, from_cache: bool = False) -> None:
        self.api_url = api_url
        self.from_cache = from_cache
        self.sess = requests.Session()
        self.sess.headers["User-Agent"] = USER_AGENT
        self.logger = logging.getLogger("api")

        self.api_cache_prefix: str | None = API_CACHE_PREFIX

        if not self.from_cache:
            self.api_cache_prefix = None

        self.logger.debug(
            f"API ready: {self.api_url!r}, "
            f"from_cache {self.from_cache!r}, api_cache_prefix {self.api_cache_prefix!r}"
        )

        if self.api_cache_prefix:
            Path(self.api_cache_prefix).parent.mkdir(parents=True, exist_ok=True)

    def call(self, params: dict[str, Any]) -> dict[str, Any]:
        """Invoke the API with the given query parameters, return json."""
        params = {"format": "json", "formatversion": "2", **params}
        name_last = json.dumps(params, sort_keys=True, separators=(",", ":"))
        if len(name_last) > 64:
            name_last = hashlib.sha1(name_last.encode("utf-8")).hexdigest()

        log_name: str | None = None
        if self.api_cache_prefix:
            log_name = self.api_cache_prefix + name_last.replace("/", "--")

            if self.from_cache and Path(log_name).exists():
                self.logger.debug(f"Filled from cache: {log_name!r}")
                with open(log_name, encoding="utf-8") as f:
                    return json.load(f)  # type: ignore[no-any-return]

        self.logger.debug(f"Making request: {params.get('action')!r} {repr(params)[:64]}")

        r = self.sess.get(self.api_url, params=params)
        r.raise_for_status()
        rv: dict[str, Any] = r.json()
        if "error" in rv:
            error = rv["error"]
            msg = f"API call failed: {params!r} -> ({error.get('code')!r}, {error.get('info')!r})"
            raise RuntimeError(msg)
        if self.api_cache_prefix and log_name:
            with open(log_name, "w", encoding="utf-8") as f:
                f.write(r.text)

        return rv

    def get_revision(self, revision_id: int) -> RevisionInfo:
        """Look up the page, parent revision and user of a revision."""
        rv = self.call(
            {
                "action": "query",
                "prop": "revisions",
                "revids": revision_id,
                "rvprop": "ids|user",
            }
        )
        query = rv.get("query", {})
        pages = query.get("pages", [])
        if query.get("badrevids") or not pages or not pages[0].get("revisions"):
            msg = f"Revision {revision_id} not found"
            raise RuntimeError(msg)

        page = pages[0]
        revision = page["revisions"][0]
        return RevisionInfo(
            revision_id=revision["revid"],
            page_title=page["title"],
            namespace=page["ns"],
            # 0 for the first revision of a page
            parent_id=revision.get("parentid") or None,
            # Missing when the user name is hidden
            user=revision.get("user"),
        )

    def get_page_props(self, page_title: str) -> dict[str, Any]:
        rv = self.call({"action": "query", "prop": "pageprops", "titles": page_title})
        pages = rv.get("query", {}).get("pages", [])
        if not pages:
            return {}
        props: dict[str, Any] = pages[0].get("pageprops", {})
        return props

    def get_thread_items(self, page_title: str, revision_id: int) -> dict[str, Any]:
        """Fetch the thread items the wiki's discussion parser found in a revision."""
        return self.call(
            {
                "action": "discussiontoolspageinfo",
                "page": page_title,
                "oldid": revision_id,
                "prop": "threaditemshtml",
            }
        )
