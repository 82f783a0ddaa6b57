"""Error types for Inkwell.

Every error raised by the build pipeline derives from InkwellError, which
carries a human-readable message and, where known, the source path that
caused it. The pipeline decides per stage whether an error is fatal:

- InvalidPostError (and its subclasses): the offending post is skipped.
- ImageMetadataError, TemplateRenderError, TemplateParseError,
  MissingPostTemplateError, MissingConfigError, PathResolutionError,
  BuildHookError: the build is aborted.
- WatchRegistrationError: the watch loop stops.
"""

from __future__ import annotations


class InkwellError(Exception):
    """Base class for errors raised by Inkwell.

    Attributes:
        message: Human-readable error message.
        source_path: Path of the source file involved, if any.
    """

    def __init__(self, message: str, source_path: str | None = None):
        self.message = message
        self.source_path = source_path
        if source_path:
            super().__init__(f"{source_path}: {message}")
        else:
            super().__init__(message)


class MissingConfigError(InkwellError):
    """The site configuration file is missing or unreadable."""


class InvalidPostError(InkwellError):
    """A post directory does not describe a valid post."""


class MissingRequiredFieldError(InvalidPostError):
    """Post metadata lacks one of the required fields."""

    def __init__(self, field: str, source_path: str | None = None):
        self.field = field
        super().__init__(f"Post meta must include {field}", source_path)


class InvalidPostDateError(InvalidPostError):
    """Post date does not match the site date format."""


class MissingPostTemplateError(InkwellError):
    """The templates directory has no post template."""


class TemplateParseError(InkwellError):
    """A template could not be compiled."""

    def __init__(
        self,
        message: str,
        source_path: str | None = None,
        lineno: int | None = None,
    ):
        self.lineno = lineno
        super().__init__(message, source_path)


class TemplateRenderError(InkwellError):
    """A template failed while rendering."""


class PathResolutionError(InkwellError):
    """A post or tag path could not be computed from its format template."""


class ImageMetadataError(InkwellError):
    """Image dimensions could not be read."""


class MissingImageError(InkwellError):
    """A post has no declared image with the requested key."""


class BuildHookError(InkwellError):
    """The pre-build command failed."""


class WatchRegistrationError(InkwellError):
    """Filesystem watches could not be registered."""
