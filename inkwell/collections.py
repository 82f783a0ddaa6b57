from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .site import Post


def sort_by_date(posts: Iterable[Post]) -> list[Post]:
    """Sort posts newest first; posts sharing a date are ordered by id, descending."""
    return sorted(posts, key=lambda p: (p.date, p.id), reverse=True)


@dataclass(frozen=True)
class TagCount:
    """A tag and the number of posts carrying it."""

    tag: str
    count: int


class TagIndex(Mapping[str, list["Post"]]):
    """Mapping of tag name to the posts declaring it, in load order.

    A tag only exists once a post declaring it has been added, so every
    value is a non-empty list.
    """

    def __init__(self, posts: Iterable[Post] = ()):
        self._mapping: dict[str, list[Post]] = {}
        for post in posts:
            self.add(post)

    def add(self, post: Post) -> None:
        for tag in post.tags:
            self._mapping.setdefault(tag, []).append(post)

    def __getitem__(self, key: str) -> list[Post]:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def sorted_posts(self, tag: str) -> list[Post]:
        return sort_by_date(self._mapping[tag])

    def counts(self) -> list[TagCount]:
        """Return tag counts, most used first, then alphabetically."""
        counts = [TagCount(tag, len(posts)) for tag, posts in self._mapping.items()]
        return sorted(counts, key=lambda c: (-c.count, c.tag))

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TagIndex({len(self._mapping)} tags)"
