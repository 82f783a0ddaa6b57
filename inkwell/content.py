"""Content loading for Inkwell.

This module reads the site configuration and the per-post metadata from the
source tree, validates them and populates a Site with the valid posts.

Key pieces:
- SiteMeta, PostMeta, ImageMeta: dataclasses mirroring config.yaml and
  posts/<id>/meta.yaml.
- load_site_meta: reads config.yaml (fatal when missing).
- load_post_meta: reads and validates one meta.yaml.
- load_posts: discovers post directories and adds every valid post to the
  site. Invalid posts are reported and skipped; discovery always continues
  with the next directory.
- create_post: writes the skeleton of a new post.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import yaml

from .errors import (
    ImageMetadataError,
    InvalidPostDateError,
    InvalidPostError,
    MissingConfigError,
    MissingRequiredFieldError,
)
from .filesystem import is_dir, read_text, write_text
from .images import Image
from .protocols import Filesystem
from .site import Post, Site

META_FILENAME = "meta.yaml"
BODY_FILENAME = "body.md"

DEFAULT_PATH_FORMAT = "/{{ date_path }}/{{ slug }}"
DEFAULT_DATE_FORMAT = "%Y-%m-%d"
DEFAULT_TAGS_FORMAT = "/tags/{{ tag }}"
DEFAULT_RECENT_COUNT = 5

_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class MetaLoader(yaml.SafeLoader):
    """SafeLoader that keeps timestamps as plain strings.

    Post dates are parsed with the site's own date format, so YAML must not
    turn "2012-09-07" into a date object first.
    """


MetaLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _text_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, (str, int, float)):
        return [str(value)]
    return [str(item) for item in value if item is not None]


def _mapping(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}


@dataclass
class SiteMeta:
    """Site-wide metadata loaded from config.yaml.

    Attributes:
        title: Site title.
        root: Root URL, e.g. "https://example.com".
        author: Site author.
        email: Author email.
        path_format: Template producing a post's output path.
        date_format: strftime pattern used for post dates.
        tags_format: Template producing a tag page's output path.
        recent_count: Number of posts returned by Site.recent_posts.
        metadata: Any additional user metadata.
    """

    title: str = ""
    root: str = ""
    author: str = ""
    email: str = ""
    path_format: str = DEFAULT_PATH_FORMAT
    date_format: str = DEFAULT_DATE_FORMAT
    tags_format: str = DEFAULT_TAGS_FORMAT
    recent_count: int = DEFAULT_RECENT_COUNT
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> SiteMeta:
        return cls(
            title=_text(data.get("title")),
            root=_text(data.get("root")),
            author=_text(data.get("author")),
            email=_text(data.get("email")),
            path_format=_text(data.get("path_format")) or DEFAULT_PATH_FORMAT,
            date_format=_text(data.get("date_format")) or DEFAULT_DATE_FORMAT,
            tags_format=_text(data.get("tags_format")) or DEFAULT_TAGS_FORMAT,
            recent_count=int(data.get("recent_count", DEFAULT_RECENT_COUNT)),
            metadata=_mapping(data.get("metadata")),
        )


@dataclass
class ImageMeta:
    """An image declared in a post's metadata.

    Attributes:
        src: Image file, relative to the post directory.
        variants: Alternative renditions (e.g. "thumb") by key, as file names.
        metadata: Free-form metadata such as alt text.
    """

    src: str
    variants: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> ImageMeta:
        variants = {}
        for key, variant in _mapping(data.get("variants")).items():
            src = _mapping(variant).get("src")
            if src:
                variants[str(key)] = str(src)
        return cls(
            src=_text(data.get("src")),
            variants=variants,
            metadata=_mapping(data.get("metadata")),
        )


@dataclass
class PostMeta:
    """Metadata of a single post, loaded from meta.yaml.

    Attributes:
        tags: Tags of the post, in source order without duplicates.
        title: Post title (required).
        date: Post date as written, in the site date format (required).
        slug: URL-friendly identifier (required).
        scripts: Script references; relative ones resolve against the post path.
        styles: Stylesheet references; relative ones resolve against the post path.
        images: Declared images by key.
        metadata: Any additional user metadata.
    """

    title: str = ""
    date: str = ""
    slug: str = ""
    tags: list[str] = field(default_factory=list)
    scripts: list[str] = field(default_factory=list)
    styles: list[str] = field(default_factory=list)
    images: dict[str, ImageMeta] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> PostMeta:
        return cls(
            title=_text(data.get("title")).strip(),
            date=_text(data.get("date")).strip(),
            slug=_text(data.get("slug")).strip(),
            tags=list(dict.fromkeys(_text_list(data.get("tags")))),
            scripts=_text_list(data.get("scripts")),
            styles=_text_list(data.get("styles")),
            images={
                str(key): ImageMeta.from_mapping(_mapping(value))
                for key, value in _mapping(data.get("images")).items()
            },
            metadata=_mapping(data.get("metadata")),
        )

    def validate(self, source_path: str | None = None) -> None:
        """Check the required fields.

        Raises:
            MissingRequiredFieldError: For the first empty required field.
        """
        for name in ("date", "slug", "title"):
            if not getattr(self, name):
                raise MissingRequiredFieldError(name, source_path)


def _load_yaml(fs: Filesystem, path: str) -> Any:
    return yaml.load(read_text(fs, path), Loader=MetaLoader)


def load_site_meta(fs: Filesystem, config_path: str) -> SiteMeta:
    """Load the site configuration.

    Args:
        fs: Source filesystem.
        config_path: Path of config.yaml.

    Returns:
        SiteMeta with defaults applied for missing keys.

    Raises:
        MissingConfigError: If the file is missing, unreadable or not a mapping.
    """
    try:
        data = _load_yaml(fs, config_path)
    except OSError as exc:
        raise MissingConfigError(f"Could not read site config: {exc}", config_path) from exc
    except yaml.YAMLError as exc:
        raise MissingConfigError(f"Invalid site config: {exc}", config_path) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MissingConfigError("Site config must be a mapping", config_path)
    try:
        return SiteMeta.from_mapping(data)
    except (TypeError, ValueError) as exc:
        raise MissingConfigError(f"Invalid site config: {exc}", config_path) from exc


def load_post_meta(fs: Filesystem, path: str) -> PostMeta:
    """Load and validate a post's meta.yaml.

    Args:
        fs: Source filesystem.
        path: Path of the meta.yaml file.

    Returns:
        Validated PostMeta.

    Raises:
        MissingRequiredFieldError: If date, slug or title is empty.
        InvalidPostError: If the file can't be read or parsed.
    """
    try:
        data = _load_yaml(fs, path)
    except OSError as exc:
        raise InvalidPostError(f"Could not read post meta: {exc}", path) from exc
    except yaml.YAMLError as exc:
        raise InvalidPostError(f"Invalid post meta: {exc}", path) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidPostError("Post meta must be a mapping", path)
    meta = PostMeta.from_mapping(data)
    meta.validate(path)
    return meta


def parse_post_date(
    meta: PostMeta, date_format: str, source_path: str | None = None
) -> datetime:
    """Parse a post's date with the site date format.

    Raises:
        InvalidPostDateError: If the date doesn't match the format.
    """
    try:
        return datetime.strptime(meta.date, date_format)
    except ValueError as exc:
        raise InvalidPostDateError(
            f"Post date {meta.date!r} does not match {date_format!r}", source_path
        ) from exc


def _load_images(fs: Filesystem, post: Post) -> dict[str, Image]:
    images: dict[str, Image] = {}
    if not post.meta.images:
        return images
    dst_dir = post.path
    for key, image_meta in post.meta.images.items():
        try:
            images[key] = Image.load(fs, image_meta, post.src_dir, dst_dir)
        except ImageMetadataError as exc:
            print(f"Skipping image {key} of post {post.id}: {exc}")
    return images


def load_posts(fs: Filesystem, posts_root: str, site: Site) -> list[Post]:
    """Discover post directories and add every valid post to the site.

    Non-directory entries are ignored. A directory whose metadata is missing
    or invalid is reported and skipped; later directories are still loaded.

    Args:
        fs: Source filesystem.
        posts_root: Directory holding one sub-directory per post.
        site: Site receiving the posts.

    Returns:
        The loaded posts, in directory-name order.
    """
    try:
        names = fs.read_dir(posts_root)
    except OSError:
        print(f"Posts directory not found {posts_root}")
        return []
    loaded: list[Post] = []
    for post_id in names:
        src_dir = posixpath.join(posts_root, post_id)
        if not is_dir(fs, src_dir):
            continue
        meta_path = posixpath.join(src_dir, META_FILENAME)
        try:
            meta = load_post_meta(fs, meta_path)
            date = parse_post_date(meta, site.meta.date_format, meta_path)
        except InvalidPostError as exc:
            print(f"Invalid post at {meta_path}: {exc.message}")
            continue
        post = Post(post_id, src_dir, meta, date, site)
        post.images = _load_images(fs, post)
        site.add_post(post)
        loaded.append(post)
    return loaded


NEW_POST_BODY = """This is the post snippet.

<!--BREAK-->

This is content after the break.
"""


def list_post_ids(fs: Filesystem, posts_root: str) -> list[str]:
    """Return the ids of the directories under posts_root holding a valid post.

    Raises:
        FileNotFoundError: If the posts root doesn't exist.
    """
    ids = []
    for post_id in fs.read_dir(posts_root):
        src_dir = posixpath.join(posts_root, post_id)
        if not is_dir(fs, src_dir):
            continue
        try:
            load_post_meta(fs, posixpath.join(src_dir, META_FILENAME))
        except InvalidPostError:
            continue
        ids.append(post_id)
    return ids


def create_post(fs: Filesystem, posts_root: str, post_id: str, meta: PostMeta) -> str:
    """Write a new post directory with its meta.yaml and a starter body.md.

    Args:
        fs: Source filesystem.
        posts_root: Directory holding the posts.
        post_id: Directory name of the new post.
        meta: Metadata to write.

    Returns:
        The new post's directory.

    Raises:
        FileExistsError: If the post directory already exists.
    """
    src_dir = posixpath.join(posts_root, post_id)
    if is_dir(fs, src_dir):
        raise FileExistsError(f"Post directory already exists: {src_dir}")
    fs.makedirs(src_dir)
    data = {"date": meta.date, "slug": meta.slug, "title": meta.title, "tags": meta.tags}
    write_text(
        fs,
        posixpath.join(src_dir, META_FILENAME),
        yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True),
    )
    write_text(fs, posixpath.join(src_dir, BODY_FILENAME), NEW_POST_BODY)
    return src_dir
