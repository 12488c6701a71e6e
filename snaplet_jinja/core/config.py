"""Templating configuration using pydantic-settings."""

from functools import cached_property, lru_cache
from typing import Literal, Self

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Templating settings loaded from HEIST_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HEIST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Content type written by render() when the caller doesn't pick one
    default_content_type: str = "text/html; charset=utf-8"

    # Comma-separated list of file suffixes treated as templates
    # The suffix is stripped from the registered template name
    template_suffixes: str = ".html,.tpl"

    # What happens when two directories register the same template name
    #   error:    abort startup with DuplicateTemplateError
    #   override: the later registration wins (logged as a warning)
    duplicate_templates: Literal["error", "override"] = "error"

    # Rendered with status 404 by the serve route when a path has no template
    not_found_template: str = ""

    autoescape: bool = True
    strict_undefined: bool = False  # Raise on undefined template variables

    debug: bool = False  # Logs render misses at info level

    @model_validator(mode="after")
    def validate_config(self) -> Self:
        if not self.suffixes:
            raise ValueError("HEIST_TEMPLATE_SUFFIXES must name at least one suffix.")
        if not self.default_content_type.strip():
            raise ValueError("HEIST_DEFAULT_CONTENT_TYPE must not be empty.")
        return self

    @cached_property
    def suffixes(self) -> tuple[str, ...]:
        """Normalised suffixes, each with a leading dot, longest first."""
        suffixes: list[str] = []
        for suffix in self.template_suffixes.split(","):
            suffix = suffix.strip()
            if not suffix:
                continue
            if not suffix.startswith("."):
                suffix = f".{suffix}"
            if suffix not in suffixes:
                suffixes.append(suffix)
        return tuple(sorted(suffixes, key=len, reverse=True))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this in tests to reset settings between test cases.
    After clearing, the next get_settings() call will create
    a fresh Settings instance with current environment variables.
    """
    get_settings.cache_clear()
