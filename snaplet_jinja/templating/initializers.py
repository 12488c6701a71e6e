"""Initialization-time template operations.

These run while the snaplet tree initializes, before any request is
served. Any error they raise aborts application boot.
"""

from pathlib import Path
from typing import Any

from snaplet_jinja.core.config import Settings, get_settings
from snaplet_jinja.core.logger import get_logger
from snaplet_jinja.errors import TemplatingError
from snaplet_jinja.snaplet import Initializer, SnapletInit
from snaplet_jinja.templating.handlers import serve_endpoint
from snaplet_jinja.templating.loader import DuplicatePolicy
from snaplet_jinja.templating.splices import SpliceBindings, splice_table
from snaplet_jinja.templating.state import TemplateState
from snaplet_jinja.templating.templates import StateTransform, Templates, templates_of

logger = get_logger(__name__)


def heist_init(
    template_dir: str = "templates",
    *,
    default_content_type: str | None = None,
    serve: bool = True,
    settings: Settings | None = None,
) -> SnapletInit[Templates]:
    """Templates snaplet loading ``template_dir`` below its own filesystem root.

    With ``serve`` set, every template is also reachable by URL under the
    snaplet's root URL (``index`` for directory paths).
    """

    def run(init: Initializer[Templates]) -> Templates:
        return _init_worker(init, init.file_path / template_dir, default_content_type, serve, settings)

    return SnapletInit(
        name="heist",
        description="Jinja2 templates shared by every snaplet",
        run=run,
    )


def heist_init_at(
    template_path: Path | str,
    *,
    default_content_type: str | None = None,
    serve: bool = True,
    settings: Settings | None = None,
) -> SnapletInit[Templates]:
    """Like heist_init(), but with an explicit template directory."""
    path = Path(template_path).expanduser().resolve()

    def run(init: Initializer[Templates]) -> Templates:
        return _init_worker(init, path, default_content_type, serve, settings)

    return SnapletInit(
        name="heist",
        description="Jinja2 templates shared by every snaplet",
        run=run,
    )


def _init_worker(
    init: Initializer[Templates],
    path: Path,
    default_content_type: str | None,
    serve: bool,
    settings: Settings | None,
) -> Templates:
    settings = settings or get_settings()
    state = TemplateState.from_settings(settings, default_content_type=default_content_type)
    try:
        state = state.add_directory("", path)
    except TemplatingError:
        logger.error("templates.load_failed", path=str(path), exc_info=True)
        raise
    logger.info("templates.loaded", prefix="", path=str(path), count=len(state.table))

    if serve:
        endpoint = serve_endpoint(init.lens)
        routes = [("/{path:path}", endpoint)]
        if init.root_url != "/":
            routes.insert(0, ("", endpoint))
        init.add_routes(routes, catch_all=True)
    return Templates(state)


def add_templates(
    init: Initializer[Any],
    prefix: str,
    *,
    duplicate_policy: DuplicatePolicy | None = None,
) -> None:
    """Register the calling snaplet's ``templates/`` directory under ``prefix``."""
    add_templates_at(init, prefix, init.snaplet_file_path("templates"), duplicate_policy=duplicate_policy)


def add_templates_at(
    init: Initializer[Any],
    prefix: str,
    path: Path | str,
    *,
    duplicate_policy: DuplicatePolicy | None = None,
) -> None:
    """Register templates found at an explicit ``path`` under ``prefix``."""
    templates = templates_of(init.base)
    path = Path(path)
    try:
        state = templates.modify(lambda s: s.add_directory(prefix, path, duplicate_policy))
    except TemplatingError:
        logger.error("templates.load_failed", prefix=prefix, path=str(path), exc_info=True)
        raise
    logger.info("templates.loaded", prefix=prefix, path=str(path), count=len(state.table))


def add_splices(init: Initializer[Any], splices: SpliceBindings) -> None:
    """Bind splices into the shared state for every render.

    Each splice receives a SpliceContext whose ``local`` is the value of the
    snaplet that ``init`` belongs to.
    """
    table = splice_table(splices, init.lens)
    templates_of(init.base).modify(lambda state: state.bind_splices(table))


def modify_template_state(init: Initializer[Any], transform: StateTransform) -> None:
    """Apply an arbitrary transform to the shared state.

    Only registered directories survive clear_cache(): templates placed in
    ``table`` directly by ``transform`` are dropped on the next reload.
    """
    templates_of(init.base).modify(transform)
