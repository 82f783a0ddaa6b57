"""Link resolution for Inkwell.

The link table maps source-relative identifiers to output paths, so post
bodies can reference another post ("01-test") or a file inside it
("01-test/img.png") without knowing the URL the path format produces.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable, Iterator, Mapping

from .protocols import Filesystem
from .site import Post


class LinkTable(Mapping[str, str]):
    """Mapping of post ids and post resources to output paths."""

    def __init__(self) -> None:
        self._links: dict[str, str] = {}

    def register(self, post_id: str, path: str, names: Iterable[str] = ()) -> None:
        """Register a post and the files of its source directory.

        Args:
            post_id: Directory id of the post.
            path: Resolved output path of the post.
            names: Entry names found in the post's source directory.
        """
        self._links[post_id] = path
        for name in names:
            self._links[f"{post_id}/{name}"] = posixpath.join(path, name)

    def resolve(self, ref: str, scope: str | None = None) -> str:
        """Resolve a reference, preferring the current post's own resources.

        Args:
            ref: Post id, or "post-id/resource".
            scope: Id of the post doing the lookup; "scope/ref" is tried first.

        Returns:
            The output path, or an empty string when nothing matches.
        """
        if scope:
            local = self._links.get(f"{scope}/{ref}")
            if local is not None:
                return local
        return self._links.get(ref, "")

    def __getitem__(self, key: str) -> str:
        return self._links[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._links)

    def __len__(self) -> int:
        return len(self._links)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"LinkTable({len(self._links)} links)"


def build_links(fs: Filesystem, posts: Iterable[Post]) -> LinkTable:
    """Build the link table for a set of valid posts.

    Must run after every post's metadata is loaded, since the output path is
    derived from it.

    Args:
        fs: Source filesystem.
        posts: Valid posts of the site.

    Returns:
        A populated LinkTable.

    Raises:
        PathResolutionError: If a post's path can't be computed.
    """
    links = LinkTable()
    for post in posts:
        links.register(post.id, post.path, fs.read_dir(post.src_dir))
    return links
