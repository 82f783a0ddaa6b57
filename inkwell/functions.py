"""Template functions for Inkwell.

Post bodies are compiled as Jinja templates whose globals come from a
PostFunctions registry bound to the post being rendered, so calls such as
``{{ link("01-test/img.png") }}`` or ``{{ include("snippet.html") }}``
resolve against that post without any data context.

The value helpers (textcontent, timeformat, toyaml, tojson) do not depend
on a post and are installed on every template environment as both globals
and filters.
"""

from __future__ import annotations

import dataclasses
import json
import posixpath
from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any

import yaml
from jinja2 import Environment, TemplateError
from markupsafe import Markup

from .errors import TemplateRenderError
from .filesystem import read_text
from .html_utils import strip_tags
from .images import Image, ImageData, load_image_data
from .links import LinkTable
from .protocols import Filesystem
from .site import Post


def to_plain(value: Any) -> Any:
    """Convert a value into plain mappings, lists and scalars.

    Dataclasses become dicts, images become their main ImageData plus
    variants, and dates become ISO strings.
    """
    if isinstance(value, Markup):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_plain(dataclasses.asdict(value))
    if isinstance(value, Image):
        return {
            **to_plain(value.data),
            "variants": to_plain(value.variants),
            "metadata": to_plain(value.metadata),
        }
    if isinstance(value, Mapping):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_plain(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def textcontent(html: str) -> str:
    """Return the text of an HTML fragment with all tags removed.

    Entities such as ``&amp;`` are unescaped and runs of whitespace collapse
    to a single space, so the result is ready for a summary or meta tag.
    """
    return strip_tags(html)


def timeformat(value: datetime, pattern: str) -> str:
    """Format a date with a strftime pattern."""
    return value.strftime(pattern)


def toyaml(value: Any) -> str:
    """Serialize a value as a YAML document."""
    return yaml.safe_dump(
        to_plain(value), default_flow_style=False, sort_keys=False, allow_unicode=True
    )


def tojson(value: Any) -> str:
    """Serialize a value as compact JSON."""
    return json.dumps(to_plain(value), ensure_ascii=False)


def make_slice(*items: Any) -> list[Any]:
    return list(items)


def make_map(*pairs: Any) -> dict[Any, Any]:
    """Build a dict from alternating keys and values.

    Raises:
        TemplateRenderError: If an odd number of arguments is given.
    """
    if len(pairs) % 2:
        raise TemplateRenderError("map needs an even number of arguments")
    return dict(zip(pairs[::2], pairs[1::2]))


VALUE_HELPERS: dict[str, Callable[..., Any]] = {
    "textcontent": textcontent,
    "timeformat": timeformat,
    "toyaml": toyaml,
    "tojson": tojson,
}


def install_helpers(env: Environment) -> None:
    """Install the value helpers as globals and filters of an environment."""
    env.globals.update(VALUE_HELPERS)
    env.filters.update(VALUE_HELPERS)


class PostFunctions:
    """Functions available to a post body while it is rendered.

    Attributes:
        fs: Source filesystem.
        post: The post being rendered.
        links: Link table of the current build.
        env: Environment holding the shared templates, used by yamltemplate.
    """

    def __init__(
        self,
        fs: Filesystem,
        post: Post,
        links: LinkTable,
        env: Environment,
    ):
        self.fs = fs
        self.post = post
        self.links = links
        self.env = env

    def link(self, ref: str) -> str:
        """Resolve a post id or post resource to its output path."""
        return self.links.resolve(ref, scope=self.post.id)

    def include(self, ref: str) -> str:
        """Return the raw text of a file in the post directory.

        Unreadable files are replaced by an inline error marker so the post
        still renders.
        """
        path = posixpath.join(self.post.src_dir, ref)
        try:
            return read_text(self.fs, path)
        except (OSError, UnicodeDecodeError):
            return f"[[ERROR: Could not read {path}]]"

    def imagemeta(self, ref: str) -> ImageData:
        """Return the dimensions and output path of an image in the post directory.

        Raises:
            ImageMetadataError: If the image can't be read.
        """
        return load_image_data(
            self.fs,
            posixpath.join(self.post.src_dir, ref),
            posixpath.join(self.post.path, ref),
        )

    def image(self, key: str) -> Image:
        return self.post.image(key)

    def yamltemplate(self, ref: Any) -> dict[str, Any]:
        """Render a macro or named template and parse its output as YAML.

        Args:
            ref: A macro (any callable) or the name of a shared template.

        Returns:
            The parsed mapping.

        Raises:
            TemplateRenderError: If rendering fails or the output is not a
                YAML mapping.
        """
        try:
            if callable(ref):
                output = str(ref())
            else:
                output = self.env.get_template(str(ref)).render()
        except TemplateError as exc:
            raise TemplateRenderError(
                f"Could not render yaml template {ref}: {exc}", self.post.src_dir
            ) from exc
        try:
            data = yaml.safe_load(output)
        except yaml.YAMLError as exc:
            raise TemplateRenderError(
                f"Invalid yaml from template {ref}: {exc}", self.post.src_dir
            ) from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise TemplateRenderError(
                f"Yaml template {ref} must produce a mapping", self.post.src_dir
            )
        return data

    def as_globals(self) -> dict[str, Callable[..., Any]]:
        """Return the registry as a mapping for Jinja globals."""
        return {
            **VALUE_HELPERS,
            "link": self.link,
            "include": self.include,
            "imagemeta": self.imagemeta,
            "image": self.image,
            "yamltemplate": self.yamltemplate,
            "slice": make_slice,
            "map": make_map,
        }
