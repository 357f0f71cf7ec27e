"""Thread items: the headings and comments of one parsed page revision."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar

from topic_watch.errors import ThreadItemFormatError


@dataclass(frozen=True)
class _ThreadItemBase:
    """Fields shared by headings and comments.

    ``name`` is meant to be equal for the same logical item in two revisions and
    may repeat within one tree. ``id`` is unique within one tree but can change
    between revisions when an earlier item with the same name disappears.
    ``parent`` is the index of the enclosing item in the owning tree.
    """

    id: str
    name: str
    level: int
    parent: int | None


@dataclass(frozen=True)
class Heading(_ThreadItemBase):
    """A section heading, or the placeholder for comments above the first heading."""

    type: ClassVar[str] = "heading"

    heading_level: int
    text: str = ""
    is_placeholder: bool = False


@dataclass(frozen=True)
class Comment(_ThreadItemBase):
    """A signed comment."""

    type: ClassVar[str] = "comment"

    author: str
    timestamp: datetime
    body_text: str = ""


ThreadItem = Heading | Comment


@dataclass(frozen=True)
class ThreadItemTree:
    """All thread items of one page revision, in document order.

    The tree owns its items; items refer to their parent by position in
    ``items``, and a parent always comes before its children.
    """

    items: tuple[ThreadItem, ...]
    _positions: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        positions: dict[str, int] = {}
        for index, item in enumerate(self.items):
            if item.id in positions:
                msg = f"Duplicate thread item id {item.id!r}"
                raise ThreadItemFormatError(msg)
            if item.parent is not None and not 0 <= item.parent < index:
                msg = f"Thread item {item.id!r} has invalid parent index {item.parent!r}"
                raise ThreadItemFormatError(msg)
            if isinstance(item, Comment) and not item.author:
                msg = f"Comment {item.id!r} has no author"
                raise ThreadItemFormatError(msg)
            positions[item.id] = index
        object.__setattr__(self, "_positions", positions)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[ThreadItem]:
        return iter(self.items)

    @property
    def comments(self) -> tuple[Comment, ...]:
        return tuple(item for item in self.items if isinstance(item, Comment))

    @property
    def headings(self) -> tuple[Heading, ...]:
        return tuple(item for item in self.items if isinstance(item, Heading))

    def position(self, item: ThreadItem) -> int:
        """Return the document-order index of an item of this tree."""
        try:
            return self._positions[item.id]
        except KeyError:
            msg = f"Thread item {item.id!r} does not belong to this tree"
            raise ValueError(msg) from None

    def find_by_id(self, item_id: str) -> ThreadItem | None:
        index = self._positions.get(item_id)
        return None if index is None else self.items[index]

    def parent_of(self, item: ThreadItem) -> ThreadItem | None:
        return None if item.parent is None else self.items[item.parent]

    def ancestors(self, item: ThreadItem) -> Iterator[ThreadItem]:
        """Yield the ancestors of an item, nearest first."""
        parent = self.parent_of(item)
        while parent is not None:
            yield parent
            parent = self.parent_of(parent)

    def children(self, item: ThreadItem) -> tuple[ThreadItem, ...]:
        """Return the direct replies (and sub-headings) of an item."""
        index = self.position(item)
        return tuple(child for child in self.items if child.parent == index)
