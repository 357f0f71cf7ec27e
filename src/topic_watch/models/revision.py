"""Page revision metadata."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RevisionInfo:
    """A saved revision of a wiki page."""

    revision_id: int
    page_title: str
    namespace: int
    parent_id: int | None
    user: str | None

    @property
    def is_talk_namespace(self) -> bool:
        return self.namespace > 0 and self.namespace % 2 == 1
