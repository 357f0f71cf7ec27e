"""Request-scoped cache of page properties."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class PagePropsCache:
    """Page properties looked up while handling one request.

    Create one per request (or per backfill batch) and pass it to the functions
    that need it; entries are never invalidated, so do not keep it longer.
    """

    _props: dict[str, dict[str, Any]] = field(default_factory=dict)
    hits: int = 0

    def get(self, page_title: str) -> dict[str, Any] | None:
        props = self._props.get(page_title)
        if props is not None:
            self.hits += 1
        return props

    def set(self, page_title: str, props: dict[str, Any]) -> None:
        self._props[page_title] = props

    def __contains__(self, page_title: object) -> bool:
        return page_title in self._props
