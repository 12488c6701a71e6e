"""Pytest configuration and shared fixtures.

This module provides:
- A throwaway site on disk laid out like a real snaplet tree
- A small application (base value + blog snaplet) wired with heist_init()
- httpx AsyncClient over ASGITransport for full-stack route tests
"""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from httpx import ASGITransport, AsyncClient
from starlette.responses import Response

from snaplet_jinja import (
    Initializer,
    Lens,
    Snaplet,
    SpliceContext,
    TemplateNotFoundError,
    Templates,
    add_splices,
    add_templates,
    create_app,
    heist_init,
    heist_local,
    make_snaplet,
    render,
    render_as,
    render_with_splices,
    serve_single,
    with_splices,
)
from snaplet_jinja.core.config import clear_settings_cache

# =============================================================================
# Site on disk
# =============================================================================

SITE_FILES = {
    "snaplets/heist/templates/index.html": "<h1>Home</h1>",
    "snaplets/heist/templates/about.html": "<p>About {{ site_name() }}</p>",
    "snaplets/heist/templates/greet.html": "<p>{{ greeting() if greeting is defined else 'no greeting' }}</p>",
    "snaplets/heist/templates/_partial.html": "<aside>partial</aside>",
    "snaplets/heist/templates/nav.html": "<nav>root nav</nav>",
    "snaplets/heist/templates/docs/index.html": '<h1>Docs</h1>{% include "nav" %}',
    "snaplets/heist/templates/docs/nav.html": "<nav>docs nav</nav>",
    "snaplets/heist/templates/feed.tpl": "<rss>feed</rss>",
    "snaplets/heist/templates/notes.txt": "not a template",
    "snaplets/blog/templates/index.html": (
        "{% for post in recent_posts(1) %}<li>{{ post }}</li>{% endfor %}"
    ),
}


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Write ``files`` (relative path -> text) below ``root``."""
    for relative, text in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


@pytest.fixture(autouse=True)
def _clear_settings():
    """Settings are cached process-wide; reset them around every test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def site(tmp_path: Path) -> Path:
    return write_tree(tmp_path, SITE_FILES)


# =============================================================================
# Application
# =============================================================================


class Blog:
    def __init__(self):
        self.posts = ["Newest post", "Older post"]


class App:
    """Base value: one templates snaplet, one blog snaplet."""

    def __init__(self):
        self.heist: Snaplet[Templates] | None = None
        self.blog: Snaplet[Blog] | None = None

    def templates_lens(self) -> Lens:
        return Lens.attribute("heist")


def recent_posts(ctx: SpliceContext, limit: int = 5) -> list[str]:
    return ctx.local.posts[:limit]


@make_snaplet("blog", "Blog snaplet", factory=Blog)
def blog_init(init: Initializer[Blog]) -> None:
    add_templates(init, "blog")
    add_splices(init, [("recent_posts", recent_posts)])


def page(request: Request, name: str) -> Response:
    response = render(request, name)
    if response is None:
        return PlainTextResponse("fallback", status_code=404)
    return response


def page_as(request: Request, name: str) -> Response:
    response = render_as(request, request.query_params["ct"], name)
    if response is None:
        return PlainTextResponse("fallback", status_code=404)
    return response


def single(request: Request, name: str) -> Response:
    return serve_single(request, name)


def greet_with_splices(request: Request) -> Response:
    return render_with_splices(request, "greet", {"greeting": lambda ctx: "hello"})


async def greet_then_fail(request: Request) -> Response:
    def handler():
        render(request, "greet")
        raise RuntimeError("handler failed")

    return await with_splices(request, {"greeting": lambda ctx: "leaked"}, handler)


async def about_as_text(request: Request) -> Response:
    return await heist_local(
        request,
        lambda state: state.with_content_type("text/plain; charset=utf-8"),
        lambda: render(request, "about"),
    )


async def _template_not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"detail": str(exc)})


async def _runtime_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"detail": "handler failed"})


AppSetup = Callable[[Initializer[App]], None]


@pytest.fixture
def build_app(site: Path) -> Callable[..., FastAPI]:
    """Build the test application; ``setup`` runs after the default wiring."""

    def _build(setup: AppSetup | None = None, *, serve: bool = True, **heist_kwargs) -> FastAPI:
        @make_snaplet("app", "Test site", file_path=site, factory=App)
        def app_init(init: Initializer[App]) -> App:
            init.nest_snaplet("", Lens.attribute("heist"), heist_init("templates", serve=serve, **heist_kwargs))
            init.nest_snaplet("blog", Lens.attribute("blog"), blog_init)
            add_splices(init, {"site_name": lambda ctx: "Test Site"})
            init.add_routes(
                [
                    ("/page/{name:path}", page),
                    ("/as/{name:path}", page_as),
                    ("/single/{name:path}", single),
                    ("/greet", greet_with_splices),
                    ("/greet-fail", greet_then_fail),
                    ("/about-text", about_as_text),
                ]
            )
            if setup is not None:
                setup(init)
            return init.value

        app = create_app(app_init, configure_logs=False)
        app.add_exception_handler(TemplateNotFoundError, _template_not_found_handler)
        app.add_exception_handler(RuntimeError, _runtime_error_handler)
        return app

    return _build


@pytest.fixture
def app(build_app) -> FastAPI:
    return build_app()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def templates_for(app: FastAPI) -> Templates:
    return app.state.snaplet.value.heist.value
