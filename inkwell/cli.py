"""Command-line interface for Inkwell.

This module defines the CLI commands using Click framework.
It provides commands for building sites, running the development server and
creating posts.

Commands:
- build: Build the site into the output directory (optionally watching).
- serve: Run development server with live reload.
- new-post: Create a new post interactively.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import click
import questionary

from . import __version__
from .build import BuildOptions, build_site, load_options
from .content import PostMeta, create_post, list_post_ids, load_site_meta
from .errors import InkwellError
from .filesystem import RealFilesystem
from .utils import slugify
from .watcher import Watcher


@click.group()
@click.version_option(version=__version__, prog_name="inkwell")
def cli():
    """Inkwell static site generator."""


def _report_failure(exc: InkwellError) -> None:
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    if exc.source_path:
        click.echo(click.style(f"  File: {exc.source_path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


def _build_once(fs: RealFilesystem, options: BuildOptions, project_root: Path) -> None:
    result = build_site(fs, options, cwd=project_root)
    click.echo(f"Built {len(result.site.posts)} posts into {result.output_dir}")


@cli.command()
@click.option("--src", help="Path to src files.")
@click.option("--dst", help="Build output directory.")
@click.option("--config", help="Site config file, relative to src.")
@click.option("--posts", help="Posts directory, relative to src.")
@click.option("--templates", help="Templates directory, relative to src.")
@click.option("--static", help="Static files directory, relative to src.")
@click.option("--post-template", help="File name of the post template.")
@click.option("--tags-template", help="File name of the tags template.")
@click.option("--root-template", help="File name of the layout template.")
@click.option("--before", help="Shell command to run before every build.")
@click.option("--watch", is_flag=True, help="Rebuild whenever the source changes.")
def build(watch: bool, **overrides: str | None):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    options = load_options(project_root).with_overrides(**overrides)
    fs = RealFilesystem(project_root)

    try:
        if watch:
            watcher = Watcher(
                fs.real_path(options.src),
                lambda: _build_once(fs, options, project_root),
                ignore=[fs.real_path(options.dst)],
            )
            try:
                watcher.run()
            except KeyboardInterrupt:
                watcher.stop()
        else:
            _build_once(fs, options, project_root)
    except InkwellError as exc:
        _report_failure(exc)
        raise SystemExit(1) from None


@cli.command()
@click.option("--addr", default="", help="Address to bind the dev server to.")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides inkwell.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides inkwell.yaml ws_port)",
)
def serve(addr: str, port: int | None, ws_port: int | None):
    """Build, watch and serve the site with live reload."""
    project_root = Path.cwd()
    from .server import DevServer

    server = DevServer(
        project_root, load_options(project_root), addr=addr, http_port=port, ws_port=ws_port
    )
    try:
        server.start()
    except InkwellError as exc:
        _report_failure(exc)
        raise SystemExit(1) from None


@cli.command("new-post")
def new_post():
    """Create a new post interactively."""
    project_root = Path.cwd()
    options = load_options(project_root)
    fs = RealFilesystem(project_root)

    try:
        site_meta = load_site_meta(fs, options.config_path)
    except InkwellError as exc:
        raise click.ClickException(str(exc)) from None
    try:
        existing = list_post_ids(fs, options.posts_path)
    except FileNotFoundError:
        raise click.ClickException(
            f"Posts directory not found: {options.posts_path}"
        ) from None

    click.echo("Existing posts:")
    click.echo("---------------")
    for post_id in existing:
        click.echo(f"  {post_id}")
    click.echo()

    title = _ask(
        questionary.text(
            "Title:",
            validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
            style=_questionary_style(),
        )
    ).strip()
    slug = _ask(
        questionary.text(
            "URL slug:", default=slugify(title), style=_questionary_style()
        )
    ).strip()
    post_id = _ask(
        questionary.text(
            "Directory name:",
            default=_next_post_id(existing, slug),
            validate=lambda x: len(x.strip()) > 0 or "Directory name cannot be empty",
            style=_questionary_style(),
        )
    ).strip()
    tags = _ask(
        questionary.text("Tags (space separated):", style=_questionary_style())
    ).split()

    date = datetime.now().strftime(site_meta.date_format)
    click.echo(f"Using date: {date}")
    meta = PostMeta(title=title, date=date, slug=slug, tags=list(dict.fromkeys(tags)))
    try:
        src_dir = create_post(fs, options.posts_path, post_id, meta)
    except FileExistsError as exc:
        raise click.ClickException(str(exc)) from None
    click.echo(f"Created {src_dir}")


def _ask(question):
    """Ask a questionary question, aborting when the user cancels."""
    answer = question.ask()
    if answer is None:
        raise click.Abort()
    return answer


def _next_post_id(existing: list[str], slug: str) -> str:
    """Suggest a directory name numbered after the existing posts."""
    numbers = []
    for post_id in existing:
        prefix = post_id.split("-", 1)[0]
        if prefix.isdigit():
            numbers.append(int(prefix))
    number = max(numbers, default=0) + 1
    return f"{number:02d}-{slug}" if slug else f"{number:02d}"


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()
