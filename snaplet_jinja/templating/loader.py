"""Template discovery and the Jinja2 environment built over it.

Template directories are scanned once, at registration time, into a
table of ``name -> TemplateSource``. The table is immutable once built:
reloading from disk builds a new table and a new environment rather than
invalidating entries in place.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Literal

import jinja2

from snaplet_jinja.core.logger import get_logger
from snaplet_jinja.errors import (
    DuplicateTemplateError,
    TemplateDirectoryError,
    TemplateSyntaxError,
)

logger = get_logger(__name__)

DuplicatePolicy = Literal["error", "override"]


def normalize_name(name: str) -> str:
    """Collapse a template name or URL prefix to ``a/b/c`` form."""
    parts: list[str] = []
    for part in name.replace("\\", "/").split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if parts:
                parts.pop()
            continue
        parts.append(part)
    return "/".join(parts)


@dataclass(frozen=True)
class TemplateDirectory:
    """One (URL prefix, filesystem path) registration."""

    prefix: str
    path: Path
    duplicate_policy: DuplicatePolicy | None = None

    @classmethod
    def create(
        cls,
        prefix: str,
        path: Path | str,
        duplicate_policy: DuplicatePolicy | None = None,
    ) -> "TemplateDirectory":
        return cls(
            prefix=normalize_name(prefix),
            path=Path(path),
            duplicate_policy=duplicate_policy,
        )


@dataclass(frozen=True)
class TemplateSource:
    name: str
    path: Path
    text: str


def _template_name(relative: PurePosixPath, prefix: str, suffixes: tuple[str, ...]) -> str | None:
    """Registered name for a file, or None if it isn't a template."""
    filename = relative.name
    for suffix in suffixes:
        if filename.endswith(suffix) and len(filename) > len(suffix):
            stem = relative.as_posix()[: -len(suffix)]
            return normalize_name(f"{prefix}/{stem}")
    return None


def scan_directory(
    directory: TemplateDirectory, suffixes: tuple[str, ...]
) -> list[TemplateSource]:
    """Read every template file below ``directory.path``.

    Raises:
        TemplateDirectoryError: The path is missing or not a directory.
        DuplicateTemplateError: Two files map to the same name
            (e.g. ``index.html`` and ``index.tpl``).
    """
    root = directory.path
    if not root.is_dir():
        raise TemplateDirectoryError(root)

    sources: dict[str, TemplateSource] = {}
    clashes: set[str] = set()
    for file_path in sorted(root.rglob("*")):
        if not file_path.is_file():
            continue
        relative = PurePosixPath(file_path.relative_to(root).as_posix())
        name = _template_name(relative, directory.prefix, suffixes)
        if name is None:
            continue
        if name in sources:
            clashes.add(name)
            continue
        sources[name] = TemplateSource(
            name=name,
            path=file_path,
            text=file_path.read_text(encoding="utf-8"),
        )

    if clashes:
        raise DuplicateTemplateError(clashes, root)
    return list(sources.values())


def merge_sources(
    table: Mapping[str, TemplateSource],
    sources: Iterable[TemplateSource],
    policy: DuplicatePolicy,
    origin: Path | None = None,
) -> dict[str, TemplateSource]:
    """Return a new table with ``sources`` added to ``table``."""
    sources = list(sources)
    duplicates = {source.name for source in sources if source.name in table}
    if duplicates and policy == "error":
        raise DuplicateTemplateError(duplicates, origin)
    if duplicates:
        logger.warning(
            "templates.duplicate_overridden",
            names=sorted(duplicates),
            path=str(origin) if origin else None,
        )

    merged = dict(table)
    for source in sources:
        merged[source.name] = source
    return merged


class TableLoader(jinja2.BaseLoader):
    """Serve templates from an immutable name -> source table."""

    def __init__(self, table: Mapping[str, TemplateSource]):
        self.table = table

    def get_source(self, environment, template):
        source = self.table.get(template)
        if source is None:
            raise jinja2.TemplateNotFound(template)
        return source.text, str(source.path), lambda: True

    def list_templates(self):
        return sorted(self.table)


class SnapletEnvironment(jinja2.Environment):
    """Environment resolving include/extends names relative to the caller.

    ``{% include "nav" %}`` inside ``docs/index`` finds ``docs/nav`` when it
    exists and falls back to the root-level ``nav`` otherwise. A leading
    slash always means the root.
    """

    loader: TableLoader

    def join_path(self, template: str, parent: str) -> str:
        if template.startswith("/"):
            return normalize_name(template)
        directory = parent.rpartition("/")[0]
        if directory:
            candidate = normalize_name(f"{directory}/{template}")
            if candidate in self.loader.table:
                return candidate
        return normalize_name(template)


def build_environment(
    table: Mapping[str, TemplateSource],
    *,
    autoescape: bool = True,
    strict_undefined: bool = False,
) -> SnapletEnvironment:
    return SnapletEnvironment(
        loader=TableLoader(table),
        autoescape=autoescape,
        undefined=jinja2.StrictUndefined if strict_undefined else jinja2.Undefined,
        auto_reload=False,
    )


def check_syntax(environment: jinja2.Environment, sources: Iterable[TemplateSource]) -> None:
    """Compile each source so syntax errors surface at startup, not per request.

    Compiling also catches unknown filters and tests, which Jinja2 reports
    as TemplateAssertionError (a TemplateSyntaxError subclass).
    """
    for source in sources:
        try:
            environment.compile(source.text, source.name, str(source.path))
        except jinja2.TemplateSyntaxError as exc:
            raise TemplateSyntaxError(
                name=source.name,
                filename=exc.filename or str(source.path),
                lineno=exc.lineno,
                message=exc.message or str(exc),
            ) from exc
