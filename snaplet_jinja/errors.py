"""Exceptions raised by the snaplet and templating layers.

Startup errors (everything except TemplateNotFoundError) are raised while
the application initializes and abort boot. TemplateNotFoundError is the
only request-time error this package raises itself; errors from splices
and from Jinja2's runtime propagate unchanged.
"""

from collections.abc import Iterable
from pathlib import Path


class TemplatingError(Exception):
    """Base class for every error raised by this package."""


class SnapletConfigurationError(TemplatingError):
    """Application wiring is missing or inconsistent."""


class TemplateDirectoryError(TemplatingError):
    """A template root does not exist or is not a directory."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"Template directory does not exist: {self.path}")


class TemplateSyntaxError(TemplatingError):
    """A template file failed to parse."""

    def __init__(self, name: str, filename: str | None, lineno: int, message: str):
        self.name = name
        self.filename = filename
        self.lineno = lineno
        self.message = message
        where = filename or name
        super().__init__(f"{where}:{lineno}: {message}")


class DuplicateTemplateError(TemplatingError):
    """Two registrations produced the same template name."""

    def __init__(self, names: Iterable[str], path: Path | str | None = None):
        self.names = tuple(sorted(names))
        self.path = Path(path) if path is not None else None
        listed = ", ".join(self.names)
        source = f" (from {self.path})" if self.path is not None else ""
        super().__init__(f"Duplicate template registration{source}: {listed}")


class TemplateNotFoundError(TemplatingError):
    """A template the caller requires is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Template {name!r} not found.")
