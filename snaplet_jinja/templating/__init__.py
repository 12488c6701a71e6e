"""Jinja2 templates as a snaplet.

Initialization time:
    heist_init, heist_init_at, add_templates, add_templates_at,
    add_splices, modify_template_state

Request time:
    render, render_as, serve, serve_single, render_with_splices,
    with_splices, heist_local, with_template_state, clear_cache
"""

from snaplet_jinja.templating.handlers import (
    bound_splices,
    heist_local,
    render,
    render_as,
    render_with_splices,
    scoped_state,
    serve,
    serve_single,
    template_name_for_path,
    with_splices,
    with_template_state,
)
from snaplet_jinja.templating.initializers import (
    add_splices,
    add_templates,
    add_templates_at,
    heist_init,
    heist_init_at,
    modify_template_state,
)
from snaplet_jinja.templating.splices import SpliceContext
from snaplet_jinja.templating.state import TemplateState
from snaplet_jinja.templating.templates import (
    HasTemplates,
    Templates,
    clear_cache,
    templates_of,
)

__all__ = [
    "HasTemplates",
    "SpliceContext",
    "TemplateState",
    "Templates",
    "add_splices",
    "add_templates",
    "add_templates_at",
    "bound_splices",
    "clear_cache",
    "heist_init",
    "heist_init_at",
    "heist_local",
    "modify_template_state",
    "render",
    "render_as",
    "render_with_splices",
    "scoped_state",
    "serve",
    "serve_single",
    "template_name_for_path",
    "templates_of",
    "with_splices",
    "with_template_state",
]
