"""Site building functionality for Inkwell.

This module contains the core logic for building a static site from a
source tree. Every build starts from an empty BuildContext, loads the site
configuration and posts, resolves links and renders posts, tag pages and the
remaining source files into the output tree.

Key functions:
- build_site: Main function to build the entire site.
- load_options: Loads build options from inkwell.yaml.
"""

from __future__ import annotations

import dataclasses
import posixpath
import subprocess
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from .content import BODY_FILENAME, load_posts, load_site_meta
from .errors import BuildHookError
from .filesystem import copy_file, is_dir, normalize_path, read_text, write_text
from .functions import PostFunctions
from .links import LinkTable, build_links
from .protocols import Filesystem
from .renderers import MarkdownRenderer, extract_snippet
from .site import Post, Site
from .templates import TemplateSet, compose_templates
from .utils import is_template, strip_template_suffix

OPTIONS_FILENAME = "inkwell.yaml"

# Files in a post directory that are inputs, not resources to publish.
_POST_SOURCE_SUFFIXES = (".md", ".yaml")


@dataclass
class BuildOptions:
    """Paths and settings of a build.

    The posts, templates, static and config paths are relative to ``src``.

    Attributes:
        src: Source root.
        dst: Output root.
        posts: Directory holding one sub-directory per post.
        templates: Directory holding the shared templates.
        static: Directory of files copied verbatim.
        config: Site configuration file.
        post_template: File name of the post template.
        tags_template: File name of the tags template.
        root_template: File name of the preferred layout template.
        before: Shell command run before every build.
        port: Port of the development server.
        ws_port: Port of the live reload websocket server (port + 1 if unset).
    """

    src: str = "src"
    dst: str = "dst"
    posts: str = "posts"
    templates: str = "templates"
    static: str = "static"
    config: str = "config.yaml"
    post_template: str = "post.tmpl"
    tags_template: str = "tags.tmpl"
    root_template: str = "root.tmpl"
    before: str = ""
    port: int = 4000
    ws_port: int | None = None

    @property
    def posts_path(self) -> str:
        return posixpath.join(self.src, self.posts)

    @property
    def templates_path(self) -> str:
        return posixpath.join(self.src, self.templates)

    @property
    def static_path(self) -> str:
        return posixpath.join(self.src, self.static)

    @property
    def config_path(self) -> str:
        return posixpath.join(self.src, self.config)

    def with_overrides(self, **overrides: Any) -> BuildOptions:
        """Return a copy with every non-None override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **values)


DEFAULT_OPTIONS = BuildOptions()


def load_options(project_root: Path) -> BuildOptions:
    """Load build options from inkwell.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        BuildOptions with defaults applied; unknown keys are ignored.
    """
    options_path = project_root / OPTIONS_FILENAME
    options = DEFAULT_OPTIONS
    if options_path.exists():
        with open(options_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                known = {opt.name for opt in dataclasses.fields(BuildOptions)}
                options = options.with_overrides(
                    **{k: v for k, v in loaded.items() if k in known}
                )
    return options


@dataclass
class BuildContext:
    """State of a single build, discarded when the build ends.

    Attributes:
        fs: Filesystem holding both the source and the output tree.
        options: Build options.
        site: Site populated by the load stage.
        templates: Composed templates.
        links: Link table built once every post is loaded.
        renderer: Markdown renderer for post bodies.
    """

    fs: Filesystem
    options: BuildOptions
    site: Site
    templates: TemplateSet
    links: LinkTable = field(default_factory=LinkTable)
    renderer: MarkdownRenderer = field(default_factory=MarkdownRenderer)


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        site: The site that was rendered.
        output_dir: Directory where the site was built.
        links: Link table of the build.
    """

    site: Site
    output_dir: str
    links: LinkTable


def run_before_hook(command: str, cwd: Path | None = None) -> None:
    """Run the pre-build shell command.

    Raises:
        BuildHookError: If the command can't be started or exits non-zero.
    """
    print(f"Running pre-build command: {command}")
    try:
        result = subprocess.run(
            command, shell=True, cwd=cwd, capture_output=True, text=True
        )
    except OSError as exc:
        raise BuildHookError(f"Could not run {command!r}: {exc}") from exc
    if result.stdout:
        print(result.stdout.rstrip())
    if result.returncode != 0:
        detail = result.stderr.strip() or f"exit status {result.returncode}"
        raise BuildHookError(f"Command {command!r} failed: {detail}")


def build_site(
    fs: Filesystem,
    options: BuildOptions = DEFAULT_OPTIONS,
    now: datetime | None = None,
    cwd: Path | None = None,
) -> BuildResult:
    """Build the entire static site.

    Stages run in order and any fatal error aborts the remaining ones.
    Output already written is left in place.

    Args:
        fs: Filesystem holding the source and output trees.
        options: Build options.
        now: Build timestamp exposed as ``site.rendered``.
        cwd: Working directory of the pre-build command.

    Returns:
        BuildResult with the rendered site.

    Raises:
        InkwellError: For every fatal build error.
    """
    if options.before:
        run_before_hook(options.before, cwd)
    fs.makedirs(options.dst)
    meta = load_site_meta(fs, options.config_path)
    templates = compose_templates(
        fs,
        options.templates_path,
        options.post_template,
        options.tags_template,
        options.root_template,
    )
    ctx = BuildContext(
        fs=fs, options=options, site=Site(meta, rendered=now), templates=templates
    )
    posts = load_posts(fs, options.posts_path, ctx.site)
    ctx.links = build_links(fs, posts)
    render_posts(ctx)
    render_tags(ctx)
    render_misc(ctx)
    return BuildResult(site=ctx.site, output_dir=options.dst, links=ctx.links)


def _copy_tree(fs: Filesystem, src: str, dst: str, skip_suffixes: tuple[str, ...] = ()) -> None:
    """Copy a directory recursively, leaving out files with the given suffixes."""
    fs.makedirs(dst)
    for name in fs.read_dir(src):
        src_path = posixpath.join(src, name)
        dst_path = posixpath.join(dst, name)
        if is_dir(fs, src_path):
            _copy_tree(fs, src_path, dst_path, skip_suffixes)
        elif not name.endswith(skip_suffixes):
            copy_file(fs, src_path, dst_path)


def _output_path(options: BuildOptions, path: str) -> str:
    return posixpath.join(options.dst, path.lstrip("/"))


def render_post(ctx: BuildContext, post: Post) -> None:
    """Render one post and publish its resources.

    A post without a body file renders with an empty body.
    """
    fs = ctx.fs
    try:
        source = read_text(fs, posixpath.join(post.src_dir, BODY_FILENAME))
    except FileNotFoundError:
        source = ""

    dst_dir = _output_path(ctx.options, post.path)
    _copy_tree(fs, post.src_dir, dst_dir, _POST_SOURCE_SUFFIXES)

    if source:
        functions = PostFunctions(fs, post, ctx.links, ctx.templates.env)
        body = ctx.templates.render_body(source, functions)
        post.body = ctx.renderer.render(body)
        post.snippet = extract_snippet(post.body)

    page = ctx.templates.render_post_page(post, ctx.site)
    write_text(fs, posixpath.join(dst_dir, "index.html"), page)


def render_posts(ctx: BuildContext) -> None:
    for post_id in sorted(ctx.site.posts):
        render_post(ctx, ctx.site.posts[post_id])


def render_tags(ctx: BuildContext) -> None:
    """Render one page per tag; without a tags template nothing is written."""
    if ctx.templates.tags is None:
        return
    for tag in sorted(ctx.site.tags):
        posts = ctx.site.tags.sorted_posts(tag)
        page = ctx.templates.render_tags_page(tag, posts, ctx.site)
        dst_dir = _output_path(ctx.options, ctx.site.tag_path(tag))
        ctx.fs.makedirs(dst_dir)
        write_text(ctx.fs, posixpath.join(dst_dir, "index.html"), page)


def _render_template_file(ctx: BuildContext, src: str, dst: str) -> None:
    output = ctx.templates.render_misc(read_text(ctx.fs, src), ctx.site, src)
    write_text(ctx.fs, strip_template_suffix(dst), output)


def render_misc(ctx: BuildContext) -> None:
    """Render or copy every other file of the source tree, breadth first.

    The posts and templates directories, the site config and the output
    directory are skipped. ``*.tmpl`` files are rendered against the site;
    everything else is copied verbatim. A missing static root is logged and
    the rest of the source tree is still processed.

    Raises:
        OSError: If a path other than the static root can't be read.
    """
    fs = ctx.fs
    options = ctx.options
    skipped = {
        normalize_path(path)
        for path in (
            options.posts_path,
            options.templates_path,
            options.config_path,
            options.dst,
        )
    }
    try:
        fs.stat(options.static_path)
    except FileNotFoundError:
        print(f"Static directory not found {options.static_path}")
        skipped.add(normalize_path(options.static_path))

    queue = deque([""])
    while queue:
        rel_dir = queue.popleft()
        src_dir = posixpath.join(options.src, rel_dir) if rel_dir else options.src
        for name in fs.read_dir(src_dir):
            src_path = posixpath.join(src_dir, name)
            if normalize_path(src_path) in skipped:
                continue
            rel_path = posixpath.join(rel_dir, name) if rel_dir else name
            dst_path = posixpath.join(options.dst, rel_path)
            if fs.stat(src_path).is_dir:
                fs.makedirs(dst_path)
                queue.append(rel_path)
            elif is_template(name):
                _render_template_file(ctx, src_path, dst_path)
            else:
                copy_file(fs, src_path, dst_path)
