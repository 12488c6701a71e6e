"""Share one Jinja2 template engine across the snaplets of a FastAPI app."""

from snaplet_jinja.core.lens import Lens
from snaplet_jinja.errors import (
    DuplicateTemplateError,
    SnapletConfigurationError,
    TemplateDirectoryError,
    TemplateNotFoundError,
    TemplateSyntaxError,
    TemplatingError,
)
from snaplet_jinja.snaplet import (
    AppBase,
    Initializer,
    Snaplet,
    SnapletInit,
    create_app,
    get_base,
    make_snaplet,
)
from snaplet_jinja.templating import (
    HasTemplates,
    SpliceContext,
    TemplateState,
    Templates,
    add_splices,
    add_templates,
    add_templates_at,
    bound_splices,
    clear_cache,
    heist_init,
    heist_init_at,
    heist_local,
    modify_template_state,
    render,
    render_as,
    render_with_splices,
    scoped_state,
    serve,
    serve_single,
    with_splices,
    with_template_state,
)

__version__ = "0.1.0"

__all__ = [
    "AppBase",
    "DuplicateTemplateError",
    "HasTemplates",
    "Initializer",
    "Lens",
    "Snaplet",
    "SnapletConfigurationError",
    "SnapletInit",
    "SpliceContext",
    "TemplateDirectoryError",
    "TemplateNotFoundError",
    "TemplateState",
    "TemplateSyntaxError",
    "Templates",
    "TemplatingError",
    "add_splices",
    "add_templates",
    "add_templates_at",
    "bound_splices",
    "clear_cache",
    "create_app",
    "get_base",
    "heist_init",
    "heist_init_at",
    "heist_local",
    "make_snaplet",
    "modify_template_state",
    "render",
    "render_as",
    "render_with_splices",
    "scoped_state",
    "serve",
    "serve_single",
    "with_splices",
    "with_template_state",
]
