"""Domain model for Inkwell.

A Site owns every valid Post of one build together with the tag index and
the site metadata. Posts keep a read-only reference back to their Site to
reach the path format, the site root and the chronological ordering; they
never modify it.

Derived values (paths, permalinks, neighbours) are computed on access. The
only cached value is the chronological ordering, which the Site invalidates
whenever a post is added; a Site is discarded at the end of each build.
"""

from __future__ import annotations

import posixpath
from datetime import datetime
from typing import TYPE_CHECKING, Any

from jinja2 import Environment, StrictUndefined, Template, TemplateError

from .collections import TagCount, TagIndex, sort_by_date
from .errors import MissingImageError, PathResolutionError
from .html_utils import join_root_url
from .images import Image

if TYPE_CHECKING:
    from .content import PostMeta, SiteMeta

# Separate from the page template environment: formats are tiny, strict
# templates evaluated against a single post or tag.
_FORMAT_ENV = Environment(undefined=StrictUndefined, autoescape=False)

FORMATTED_DATE = "%a %b %d, %Y"


def _compile_format(source: str, name: str) -> Template:
    try:
        return _FORMAT_ENV.from_string(source)
    except TemplateError as exc:
        message = f"Could not parse {name}: {exc}"
        if "{{." in source.replace(" ", ""):
            message += (
                "; formats use Jinja2 variables such as "
                "'/{{ date_path }}/{{ slug }}', not '{{.Field}}'"
            )
        raise PathResolutionError(message) from exc


class Post:
    """A single post of the site.

    Attributes:
        id: Directory name of the post, unique within the site.
        src_dir: Source directory of the post.
        meta: Parsed post metadata.
        date: Post date, parsed with the site date format at load time.
        body: Rendered HTML body (empty until the post is rendered).
        snippet: Rendered HTML before the break marker, if any.
        images: Images declared in the post metadata, by key.
    """

    def __init__(
        self,
        id: str,
        src_dir: str,
        meta: PostMeta,
        date: datetime,
        site: Site,
    ):
        self.id = id
        self.src_dir = src_dir
        self.meta = meta
        self.date = date
        self.body = ""
        self.snippet = ""
        self.images: dict[str, Image] = {}
        self._site = site

    @property
    def date_path(self) -> str:
        return self.date.strftime(self._site.meta.date_format)

    @property
    def formatted_date(self) -> str:
        return self.date.strftime(FORMATTED_DATE)

    @property
    def slug(self) -> str:
        return self.meta.slug.lower()

    @property
    def title(self) -> str:
        return self.meta.title

    @property
    def tags(self) -> list[str]:
        return self.meta.tags

    @property
    def metadata(self) -> dict[str, Any]:
        return self.meta.metadata

    def has_metadata(self, key: str) -> bool:
        return key in self.meta.metadata

    @property
    def path(self) -> str:
        """Output path of the post, rendered from the site path format.

        Computed on every access.

        Raises:
            PathResolutionError: If the path format fails to render.
        """
        return self._site.post_path(self)

    @property
    def permalink(self) -> str:
        return f"{self._site.root}{self.path}"

    @property
    def url(self) -> str:
        return join_root_url(self._site.root, self.path)

    def _resolve(self, ref: str, base: str) -> str:
        if ref.startswith("/"):
            return ref
        return posixpath.join(base, ref)

    @property
    def scripts(self) -> list[str]:
        base = self.path
        return [self._resolve(ref, base) for ref in self.meta.scripts]

    @property
    def styles(self) -> list[str]:
        base = self.path
        return [self._resolve(ref, base) for ref in self.meta.styles]

    def image(self, key: str) -> Image:
        """Return a declared image by key.

        Raises:
            MissingImageError: If the post declares no such image.
        """
        if key not in self.images:
            raise MissingImageError(
                f"Could not get image with key {key} from post", self.src_dir
            )
        return self.images[key]

    def image_if_exists(self, key: str) -> Image | None:
        return self.images.get(key)

    def image_list(self, *keys: str) -> list[Image]:
        """Return the images for the given keys, skipping unknown keys."""
        return [self.images[key] for key in keys if key in self.images]

    def has_image(self, key: str) -> bool:
        return key in self.images

    @property
    def next(self) -> Post | None:
        """The post immediately newer than this one."""
        return self._site.next_post(self)

    @property
    def prev(self) -> Post | None:
        """The post immediately older than this one."""
        return self._site.prev_post(self)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Post({self.id!r})"


class Site:
    """The aggregate of all valid posts, tags and site metadata of a build.

    Attributes:
        meta: Site metadata.
        posts: Posts keyed by directory id.
        tags: Tag index built as posts are added.
        rendered: Time the build started.
    """

    def __init__(self, meta: SiteMeta, rendered: datetime | None = None):
        self.meta = meta
        self.posts: dict[str, Post] = {}
        self.tags = TagIndex()
        self.rendered = rendered or datetime.now()
        self._path_template: Template | None = None
        self._tags_template: Template | None = None
        self._by_date: list[Post] | None = None

    def add_post(self, post: Post) -> None:
        self.posts[post.id] = post
        self.tags.add(post)
        self._by_date = None

    @property
    def title(self) -> str:
        return self.meta.title

    @property
    def root(self) -> str:
        return self.meta.root

    @property
    def author(self) -> str:
        return self.meta.author

    @property
    def email(self) -> str:
        return self.meta.email

    @property
    def metadata(self) -> dict[str, Any]:
        return self.meta.metadata

    def post_path(self, post: Post) -> str:
        if self._path_template is None:
            self._path_template = _compile_format(self.meta.path_format, "path format")
        try:
            return self._path_template.render(
                post=post,
                id=post.id,
                slug=post.slug,
                title=post.title,
                date=post.date,
                date_path=post.date_path,
            )
        except TemplateError as exc:
            raise PathResolutionError(
                f"Could not get path for post {post.id}: {exc}", post.src_dir
            ) from exc

    def tag_path(self, tag: str) -> str:
        if self._tags_template is None:
            self._tags_template = _compile_format(self.meta.tags_format, "tags format")
        try:
            return self._tags_template.render(tag=tag)
        except TemplateError as exc:
            raise PathResolutionError(f"Could not get path for tag {tag}: {exc}") from exc

    @property
    def posts_by_date(self) -> list[Post]:
        """All posts, newest first; equal dates are ordered by id, descending."""
        if self._by_date is None:
            self._by_date = sort_by_date(self.posts.values())
        return list(self._by_date)

    @property
    def recent_posts(self) -> list[Post]:
        return self.posts_by_date[: max(self.meta.recent_count, 0)]

    @property
    def tag_counts(self) -> list[TagCount]:
        return self.tags.counts()

    def _index(self, posts: list[Post], post: Post | None) -> int:
        for i, candidate in enumerate(posts):
            if candidate is post:
                return i
        return -1

    def next_post(self, post: Post) -> Post | None:
        posts = self.posts_by_date
        i = self._index(posts, post)
        if i > 0:
            return posts[i - 1]
        return None

    def prev_post(self, post: Post) -> Post | None:
        posts = self.posts_by_date
        i = self._index(posts, post)
        if i != -1 and i < len(posts) - 1:
            return posts[i + 1]
        return None

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Site({self.title!r}, {len(self.posts)} posts)"
