"""Inkwell static site generator.

This package builds a blog-style static site from a source tree of posts
(a meta.yaml plus a markdown body per post), Jinja2 templates and static
files, and can keep rebuilding it while the source changes.

The main entry point is the CLI module, which provides commands for
building sites, running the development server and creating posts.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
