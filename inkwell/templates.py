"""Template composition and rendering for Inkwell.

Every file in the templates directory is loaded into a single Jinja2
environment. Two names are special: the post template renders a post page
and the tags template renders a tag page. All other files are shared
templates; one of them is the layout, which the post, tags and misc
templates implicitly extend so their ``{% block %}`` definitions fill in
the layout's blocks.

Key pieces:
- compose_templates: builds a TemplateSet from the templates directory.
- TemplateSet: renders post bodies, post pages, tag pages and misc templates.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from typing import Any

from jinja2 import DictLoader, Environment, Template, TemplateSyntaxError

from .errors import (
    InkwellError,
    MissingPostTemplateError,
    TemplateParseError,
    TemplateRenderError,
)
from .filesystem import is_dir, read_text
from .functions import PostFunctions, install_helpers
from .protocols import Filesystem
from .site import Post, Site

_EXTENDS_RE = re.compile(r"{%-?\s*extends\s")


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TemplateNotFound":
        return f"Template not found: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"


def _parse_error(exc: TemplateSyntaxError, source_path: str) -> TemplateParseError:
    return TemplateParseError(
        f"Template syntax error on line {exc.lineno}: {exc.message}",
        source_path,
        exc.lineno,
    )


def _new_environment(sources: dict[str, str]) -> Environment:
    env = Environment(loader=DictLoader(sources), autoescape=False)
    install_helpers(env)
    return env


def extend_layout(source: str, layout: str | None) -> str:
    """Make a template extend the layout unless it already extends something.

    The extends tag is prepended on the first line so error line numbers
    still match the source file.
    """
    if not layout or _EXTENDS_RE.search(source):
        return source
    return f'{{% extends "{layout}" %}}{source}'


@dataclass
class TemplateSet:
    """The composed templates of one build.

    Attributes:
        env: Environment holding every template by file name.
        templates_root: Directory the templates were read from.
        layout: Name of the layout template, if any.
        post: Name of the post template, if any.
        tags: Name of the tags template, if any.
    """

    env: Environment
    templates_root: str = ""
    layout: str | None = None
    post: str | None = None
    tags: str | None = None

    def _source_path(self, name: str) -> str:
        return posixpath.join(self.templates_root, name)

    def _render(self, template: Template, context: dict[str, Any], source_path: str) -> str:
        try:
            return template.render(**context)
        except InkwellError:
            raise
        except TemplateSyntaxError as exc:
            raise _parse_error(exc, exc.filename or source_path) from exc
        except Exception as exc:
            raise TemplateRenderError(_format_error_message(exc), source_path) from exc

    def render_body(self, source: str, functions: PostFunctions) -> str:
        """Render a post body against the post's function registry.

        The body sees the shared templates (for imports) and the registry
        globals, but no data context.

        Args:
            source: Raw markdown body.
            functions: Registry bound to the post being rendered.

        Returns:
            The body with every template expression evaluated.

        Raises:
            TemplateParseError: If the body is not a valid template.
            TemplateRenderError: If rendering fails.
        """
        source_path = posixpath.join(functions.post.src_dir, "body.md")
        try:
            template = self.env.from_string(source, globals=functions.as_globals())
        except TemplateSyntaxError as exc:
            raise _parse_error(exc, source_path) from exc
        return self._render(template, {}, source_path)

    def render_post_page(self, post: Post, site: Site) -> str:
        """Render a post page; an empty template set renders nothing."""
        if self.post is None:
            return ""
        template = self.env.get_template(self.post)
        return self._render(
            template, {"post": post, "site": site}, self._source_path(self.post)
        )

    def render_tags_page(self, tag: str, posts: list[Post], site: Site) -> str:
        if self.tags is None:
            return ""
        template = self.env.get_template(self.tags)
        return self._render(
            template,
            {"tag": tag, "posts": posts, "site": site},
            self._source_path(self.tags),
        )

    def render_misc(self, source: str, site: Site, source_path: str) -> str:
        """Render a standalone *.tmpl file from the source tree against the site.

        Args:
            source: Template text.
            site: Site of the current build.
            source_path: Path of the template, used in error messages.

        Returns:
            Rendered text.
        """
        try:
            template = self.env.from_string(extend_layout(source, self.layout))
        except TemplateSyntaxError as exc:
            raise _parse_error(exc, source_path) from exc
        return self._render(template, {"site": site}, source_path)


def compose_templates(
    fs: Filesystem,
    templates_root: str,
    post_name: str = "post.tmpl",
    tags_name: str = "tags.tmpl",
    root_name: str = "root.tmpl",
) -> TemplateSet:
    """Load and compose the templates directory.

    The layout is ``root_name`` when present, else the first shared template
    by name. Without any shared template the post template itself serves as
    the layout for the tags and misc templates.

    Args:
        fs: Source filesystem.
        templates_root: Directory holding the templates.
        post_name: File name of the post template.
        tags_name: File name of the tags template.
        root_name: Preferred file name of the layout template.

    Returns:
        The composed TemplateSet. A missing templates directory yields an
        empty set, whose post and tag pages render empty.

    Raises:
        MissingPostTemplateError: If the directory has no post template.
        TemplateParseError: If any template fails to compile.
    """
    try:
        names = fs.read_dir(templates_root)
    except OSError:
        print(f"Templates directory not found {templates_root}")
        return TemplateSet(env=_new_environment({}), templates_root=templates_root)

    sources: dict[str, str] = {}
    for name in names:
        path = posixpath.join(templates_root, name)
        if is_dir(fs, path):
            continue
        sources[name] = read_text(fs, path)

    if post_name not in sources:
        raise MissingPostTemplateError(
            f"Missing post template {post_name}", templates_root
        )

    shared = sorted(name for name in sources if name not in (post_name, tags_name))
    if root_name in shared:
        layout = root_name
    elif shared:
        layout = shared[0]
    else:
        layout = post_name

    if layout != post_name:
        sources[post_name] = extend_layout(sources[post_name], layout)
    tags = tags_name if tags_name in sources else None
    if tags is not None:
        sources[tags_name] = extend_layout(sources[tags_name], layout)

    env = _new_environment(sources)
    for name in sources:
        try:
            env.get_template(name)
        except TemplateSyntaxError as exc:
            raise _parse_error(exc, posixpath.join(templates_root, name)) from exc

    return TemplateSet(
        env=env,
        templates_root=templates_root,
        layout=layout,
        post=post_name,
        tags=tags,
    )
