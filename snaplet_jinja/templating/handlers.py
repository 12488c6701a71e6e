"""Request-time template operations.

Every function takes the current Request and reaches the shared engine
through the application's accessor (HasTemplates). Render functions
return None when the template doesn't exist so the caller can fall back
to something else; serve_single() is the exception and raises.
"""

import inspect
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from fastapi import HTTPException, Request
from starlette.responses import Response

from snaplet_jinja.core.config import get_settings
from snaplet_jinja.core.lens import Lens
from snaplet_jinja.core.logger import get_logger
from snaplet_jinja.errors import TemplateNotFoundError
from snaplet_jinja.snaplet import get_base
from snaplet_jinja.templating.splices import SpliceBindings, render_state, splice_table
from snaplet_jinja.templating.state import TemplateState
from snaplet_jinja.templating.templates import StateTransform, Templates, templates_of

logger = get_logger(__name__)

R = TypeVar("R")

Handler = Callable[[], Awaitable[R] | R]


def _render(
    request: Request,
    templates: Templates,
    name: str,
    content_type: str | None = None,
) -> Response | None:
    state = templates.state
    body = render_state(state, name, request=request, base=get_base(request))
    if body is None:
        log = logger.info if get_settings().debug else logger.debug
        log("template.not_found", template=name, path=request.url.path)
        return None
    # Starlette would append a charset to text/* media types
    return Response(content=body, headers={"content-type": content_type or state.default_content_type})


def render(request: Request, name: str) -> Response | None:
    """Render ``name`` with the engine's default content type."""
    return _render(request, templates_of(get_base(request)), name)


def render_as(request: Request, content_type: str, name: str) -> Response | None:
    """Render ``name`` with ``content_type`` instead of the default."""
    return _render(request, templates_of(get_base(request)), name, content_type)


def template_name_for_path(path: str) -> str | None:
    """Template name a request path maps to, or None if it must not be served.

    Directory paths map to their ``index`` template. Paths climbing out
    with ``..`` and underscore-prefixed segments (partials, layouts) are
    never served.
    """
    if path == "" or path.endswith("/"):
        path = f"{path}index"
    segments = [segment for segment in path.split("/") if segment and segment != "."]
    if not segments:
        return None
    if any(segment == ".." or segment.startswith("_") for segment in segments):
        return None
    return "/".join(segments)


def _request_path(request: Request) -> str:
    # Routes mounted under a prefix capture the remainder as {path:path}
    path = request.path_params.get("path")
    if path is None:
        path = request.url.path
    return path


def _serve(request: Request, templates: Templates) -> Response | None:
    name = template_name_for_path(_request_path(request))
    if name is None:
        return None
    return _render(request, templates, name)


def serve(request: Request) -> Response | None:
    """Render the template named by the request path, like serving a static file."""
    return _serve(request, templates_of(get_base(request)))


def serve_single(request: Request, name: str) -> Response:
    """Render ``name``, which the caller expects to exist.

    Raises:
        TemplateNotFoundError: ``name`` isn't registered.
    """
    response = render(request, name)
    if response is None:
        raise TemplateNotFoundError(name)
    return response


@contextmanager
def scoped_state(request: Request, transform: StateTransform) -> Iterator[TemplateState]:
    """Use a transformed copy of the engine state until the block exits."""
    with templates_of(get_base(request)).scoped(transform) as state:
        yield state


def bound_splices(
    request: Request, splices: SpliceBindings, lens: Lens[Any, Any] | None = None
):
    """Bind ``splices`` for the current task until the block exits."""
    table = splice_table(splices, lens)
    return scoped_state(request, lambda state: state.bind_splices(table))


async def _run(handler: Handler[R]) -> R:
    result = handler()
    if inspect.isawaitable(result):
        result = await result
    return result


async def heist_local(request: Request, transform: StateTransform, handler: Handler[R]) -> R:
    """Run ``handler`` against ``transform(state)``; other requests never see it."""
    with scoped_state(request, transform):
        return await _run(handler)


async def with_splices(request: Request, splices: SpliceBindings, handler: Handler[R]) -> R:
    """Run ``handler`` with ``splices`` bound, removing them afterwards."""
    with bound_splices(request, splices):
        return await _run(handler)


def render_with_splices(
    request: Request, name: str, splices: SpliceBindings
) -> Response | None:
    with bound_splices(request, splices):
        return render(request, name)


def with_template_state(target: Request | Any, fn: Callable[[TemplateState], R]) -> R:
    """Call ``fn`` with the state the current task sees.

    ``target`` is either a Request or the application base value.
    """
    base = get_base(target) if isinstance(target, Request) else target
    return fn(templates_of(base).state)


def serve_endpoint(lens: Lens[Any, Templates]) -> Callable[[Request], Response]:
    """Route endpoint serving templates by path for the snaplet at ``lens``.

    Misses render the configured not-found template with status 404, or
    raise a plain 404 when there is none.
    """

    def serve_templates(request: Request) -> Response:
        templates = lens.get(get_base(request))
        response = _serve(request, templates)
        if response is not None:
            return response

        state = templates.state
        if state.not_found_template:
            body = render_state(
                state,
                state.not_found_template,
                request=request,
                base=get_base(request),
            )
            if body is not None:
                return Response(
                    content=body,
                    status_code=404,
                    headers={"content-type": state.default_content_type},
                )
        raise HTTPException(status_code=404)

    return serve_templates
