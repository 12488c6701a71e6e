"""Immutable template engine state.

Every transform returns a new TemplateState. The Jinja2 environment is
carried over unchanged while the template table stays the same and is
rebuilt when the table changes, so scoped copies (extra splices, a
different content type) share compiled templates with the original.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import jinja2

from snaplet_jinja.core.config import Settings
from snaplet_jinja.templating.loader import (
    DuplicatePolicy,
    SnapletEnvironment,
    TemplateDirectory,
    TemplateSource,
    build_environment,
    check_syntax,
    merge_sources,
    normalize_name,
    scan_directory,
)

if TYPE_CHECKING:
    from snaplet_jinja.templating.splices import BoundSplice

DEFAULT_CONTENT_TYPE = "text/html; charset=utf-8"


@dataclass(frozen=True)
class TemplateState:
    directories: tuple[TemplateDirectory, ...] = ()
    table: Mapping[str, TemplateSource] = field(default_factory=dict)
    splices: Mapping[str, BoundSplice] = field(default_factory=dict)
    default_content_type: str = DEFAULT_CONTENT_TYPE
    not_found_template: str | None = None
    suffixes: tuple[str, ...] = (".html", ".tpl")
    duplicate_policy: DuplicatePolicy = "error"
    autoescape: bool = True
    strict_undefined: bool = False
    environment: SnapletEnvironment = field(default=None, compare=False, repr=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.environment is None:
            object.__setattr__(self, "environment", self._build_environment(self.table))

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> TemplateState:
        options: dict[str, Any] = {
            "default_content_type": settings.default_content_type,
            "not_found_template": settings.not_found_template or None,
            "suffixes": settings.suffixes,
            "duplicate_policy": settings.duplicate_templates,
            "autoescape": settings.autoescape,
            "strict_undefined": settings.strict_undefined,
        }
        options.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**options)

    def _build_environment(self, table: Mapping[str, TemplateSource]) -> SnapletEnvironment:
        return build_environment(
            table,
            autoescape=self.autoescape,
            strict_undefined=self.strict_undefined,
        )

    # ── Queries ──────────────────────────────────────────────

    @property
    def template_names(self) -> list[str]:
        return sorted(self.table)

    def has_template(self, name: str) -> bool:
        return normalize_name(name) in self.table

    def lookup(self, name: str) -> jinja2.Template | None:
        """Compiled template for ``name``, or None when it isn't registered."""
        name = normalize_name(name)
        if name not in self.table:
            return None
        return self.environment.get_template(name)

    # ── Transforms ───────────────────────────────────────────

    def add_directory(
        self,
        prefix: str,
        path: Path | str,
        duplicate_policy: DuplicatePolicy | None = None,
    ) -> TemplateState:
        """Register every template below ``path`` under ``prefix``.

        Raises:
            TemplateDirectoryError: ``path`` is not a directory.
            DuplicateTemplateError: A name is already registered and the
                policy is ``"error"``.
            TemplateSyntaxError: A new template fails to parse.
        """
        directory = TemplateDirectory.create(prefix, path, duplicate_policy)
        table, added = self._merge_directory(self.table, directory)
        environment = self._build_environment(table)
        check_syntax(environment, added)
        return replace(
            self,
            directories=self.directories + (directory,),
            table=table,
            environment=environment,
        )

    def reload(self) -> TemplateState:
        """Re-read every registered directory from disk, in registration order.

        The table is rebuilt from ``directories`` alone; entries added to
        ``table`` by other means are not kept.
        """
        table: dict[str, TemplateSource] = {}
        for directory in self.directories:
            table, _ = self._merge_directory(table, directory)
        environment = self._build_environment(table)
        check_syntax(environment, table.values())
        return replace(self, table=table, environment=environment)

    def _merge_directory(
        self, table: Mapping[str, TemplateSource], directory: TemplateDirectory
    ) -> tuple[dict[str, TemplateSource], list[TemplateSource]]:
        sources = scan_directory(directory, self.suffixes)
        policy = directory.duplicate_policy or self.duplicate_policy
        return merge_sources(table, sources, policy, directory.path), sources

    def bind_splices(self, splices: Mapping[str, BoundSplice]) -> TemplateState:
        return replace(self, splices={**self.splices, **splices})

    def with_content_type(self, content_type: str) -> TemplateState:
        return replace(self, default_content_type=content_type)

    def with_not_found_template(self, name: str | None) -> TemplateState:
        return replace(self, not_found_template=normalize_name(name) if name else None)
