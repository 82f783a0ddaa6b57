"""Utility functions for Inkwell.

Small string and path helpers shared across modules.

Key functions:
    slugify: Convert a title to a URL slug.
    strip_template_suffix: Output name for a rendered *.tmpl file.
"""

from __future__ import annotations

import posixpath
import re

TEMPLATE_SUFFIX = ".tmpl"


def slugify(text: str) -> str:
    """Convert free text to a lowercase URL slug.

    Examples:
        >>> slugify("Hello, World!")
        'hello-world'
    """
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", text)
    return cleaned.strip("-").lower()


def is_template(path: str) -> bool:
    """Check if a path is a template rendered into the output tree."""
    return path.endswith(TEMPLATE_SUFFIX)


def strip_template_suffix(path: str) -> str:
    """Return the output path for a rendered template.

    The .tmpl suffix is dropped; a path left without any extension gets
    .html.

    Examples:
        >>> strip_template_suffix("dst/index.tmpl")
        'dst/index.html'

        >>> strip_template_suffix("dst/feed.xml.tmpl")
        'dst/feed.xml'
    """
    stripped = path[: -len(TEMPLATE_SUFFIX)] if is_template(path) else path
    if not posixpath.splitext(stripped)[1]:
        stripped = f"{stripped}.html"
    return stripped
