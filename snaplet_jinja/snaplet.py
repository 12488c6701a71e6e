"""Nested sub-components ("snaplets") on top of FastAPI.

An application is a tree of snaplets. Each one has a filesystem root, a
root URL for the routes it installs, and a value stored inside its
parent's value. Initialization runs once, eagerly, inside create_app();
any exception raised there aborts application boot.

    @make_snaplet("app", "Demo site", factory=App)
    def app_init(init: Initializer) -> App:
        init.nest_snaplet("", Lens.attribute("heist"), heist_init("templates"))
        add_splices(init, {"site_name": site_name})
        return init.value

    app = create_app(app_init)
"""

import inspect
from collections.abc import Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any, Generic, TypeVar

import fastapi
from fastapi import APIRouter, Depends, Request

from snaplet_jinja.core.lens import Lens
from snaplet_jinja.core.logger import configure_logging, get_logger
from snaplet_jinja.errors import SnapletConfigurationError

logger = get_logger(__name__)

T = TypeVar("T")

Endpoint = Callable[..., Any]
UnloadHook = Callable[[], Awaitable[None] | None]


@dataclass
class Snaplet(Generic[T]):
    """A nested unit of application state plus where it lives."""

    name: str
    file_path: Path
    value: T
    description: str = ""
    root_url: str = ""


@dataclass(frozen=True)
class SnapletInit(Generic[T]):
    """Everything needed to build a Snaplet, minus its place in the tree.

    ``factory`` creates the value before ``run`` is called, so that child
    snaplets nested during ``run`` have somewhere to live. Leaf snaplets
    leave it unset and return their value from ``run``.
    """

    name: str
    description: str
    run: Callable[["Initializer"], T | None]
    file_path: Path | None = None
    factory: Callable[[], T] | None = None


def make_snaplet(
    name: str,
    description: str = "",
    *,
    file_path: Path | str | None = None,
    factory: Callable[[], T] | None = None,
) -> Callable[[Callable[["Initializer"], T | None]], SnapletInit[T]]:
    """Decorator turning an init function into a SnapletInit."""

    def decorator(run: Callable[["Initializer"], T | None]) -> SnapletInit[T]:
        return SnapletInit(
            name=name,
            description=description,
            run=run,
            file_path=Path(file_path) if file_path is not None else None,
            factory=factory,
        )

    return decorator


VALUE: Lens[Snaplet[Any], Any] = Lens(
    get=lambda snaplet: snaplet.value if snaplet is not None else None,
    set=lambda snaplet, value: setattr(snaplet, "value", value),
    label="value",
)


def join_url(root: str, path: str) -> str:
    """Join two URL fragments into an absolute route path."""
    joined = "/".join(part.strip("/") for part in (root, path) if part.strip("/"))
    return f"/{joined}"


@dataclass
class _Route:
    path: str
    endpoint: Endpoint
    methods: list[str]
    catch_all: bool


@dataclass
class _Registry:
    """Routes and unload hooks collected from the whole snaplet tree."""

    routes: list[_Route] = field(default_factory=list)
    unload_hooks: list[UnloadHook] = field(default_factory=list)

    def build_router(self) -> APIRouter:
        router = APIRouter(include_in_schema=False)
        # Catch-all routes would shadow everything registered after them
        ordered = [r for r in self.routes if not r.catch_all] + [
            r for r in self.routes if r.catch_all
        ]
        for route in ordered:
            router.add_api_route(route.path, route.endpoint, methods=route.methods)
        return router


class Initializer(Generic[T]):
    """Initialization-time capability of one snaplet.

    ``base`` is the top-level application value and ``lens`` focuses from
    it onto this snaplet's value.
    """

    def __init__(
        self,
        base: Any,
        lens: Lens[Any, T],
        file_path: Path,
        root_url: str,
        registry: _Registry,
    ):
        self.base = base
        self.lens = lens
        self.file_path = file_path
        self.root_url = root_url
        self._registry = registry

    @property
    def value(self) -> T:
        return self.lens.get(self.base)

    def snaplet_file_path(self, *parts: str) -> Path:
        return self.file_path.joinpath(*parts)

    def nest_snaplet(
        self,
        root_url: str,
        lens: Lens[T, Snaplet[Any]],
        snaplet_init: SnapletInit[Any],
    ) -> Snaplet[Any]:
        """Initialize a child snaplet and store it in this snaplet's value.

        The child is stored before its init runs, so the parent (and the
        accessor contract) can reach it as soon as this call returns.
        """
        parent = self.value
        if parent is None:
            raise SnapletConfigurationError(
                f"Cannot nest {snaplet_init.name!r}: parent value does not exist yet. "
                "Give the parent snaplet a factory."
            )

        file_path = snaplet_init.file_path or self.file_path / "snaplets" / snaplet_init.name
        snaplet: Snaplet[Any] = Snaplet(
            name=snaplet_init.name,
            file_path=file_path,
            value=snaplet_init.factory() if snaplet_init.factory else None,
            description=snaplet_init.description,
            root_url=join_url(self.root_url, root_url),
        )
        lens.set(parent, snaplet)

        child: Initializer[Any] = Initializer(
            self.base,
            self.lens / lens / VALUE,
            file_path,
            snaplet.root_url,
            self._registry,
        )
        result = snaplet_init.run(child)
        if result is not None:
            snaplet.value = result
        if snaplet.value is None:
            raise SnapletConfigurationError(
                f"Snaplet {snaplet_init.name!r} produced no value"
            )

        logger.info(
            "snaplet.initialized",
            snaplet=snaplet.name,
            file_path=str(file_path),
            root_url=snaplet.root_url,
        )
        return snaplet

    def add_routes(
        self,
        routes: Iterable[tuple[str, Endpoint]],
        *,
        methods: Iterable[str] = ("GET",),
        catch_all: bool = False,
    ) -> None:
        """Install routes under this snaplet's root URL.

        Catch-all routes are installed after every ordinary route, whatever
        the order in which snaplets register them.
        """
        for path, endpoint in routes:
            self._registry.routes.append(
                _Route(
                    path=join_url(self.root_url, path),
                    endpoint=endpoint,
                    methods=list(methods),
                    catch_all=catch_all,
                )
            )

    def on_unload(self, hook: UnloadHook) -> None:
        self._registry.unload_hooks.append(hook)


def run_snaplet(snaplet_init: SnapletInit[T]) -> tuple[Snaplet[T], _Registry]:
    """Initialize a top-level snaplet tree without building an app."""
    if snaplet_init.factory is None:
        raise SnapletConfigurationError(
            f"Top-level snaplet {snaplet_init.name!r} needs a factory for its base value"
        )

    base = snaplet_init.factory()
    file_path = snaplet_init.file_path or Path.cwd()
    registry = _Registry()
    init: Initializer[T] = Initializer(base, Lens.identity(), file_path, "", registry)

    result = snaplet_init.run(init)
    if result is not None and result is not base:
        raise SnapletConfigurationError(
            f"Top-level snaplet {snaplet_init.name!r} must return its base value or None"
        )

    top = Snaplet(
        name=snaplet_init.name,
        file_path=file_path,
        value=base,
        description=snaplet_init.description,
    )
    logger.info("snaplet.initialized", snaplet=top.name, file_path=str(file_path))
    return top, registry


def create_app(
    snaplet_init: SnapletInit[Any],
    *,
    configure_logs: bool = True,
    **fastapi_kwargs: Any,
) -> fastapi.FastAPI:
    """Run the snaplet tree's initializers and build the FastAPI app."""
    if configure_logs:
        configure_logging()

    try:
        top, registry = run_snaplet(snaplet_init)
    except Exception:
        logger.error("init.failed", snaplet=snaplet_init.name, exc_info=True)
        raise

    @asynccontextmanager
    async def lifespan(app: fastapi.FastAPI):
        """Run unload hooks on shutdown, most recently registered first."""
        try:
            yield
        finally:
            for hook in reversed(registry.unload_hooks):
                try:
                    result = hook()
                    if inspect.isawaitable(result):
                        await result
                except Exception:
                    logger.exception("snaplet.unload_failed", hook=repr(hook))

    fastapi_kwargs.setdefault("title", top.description or top.name)
    app = fastapi.FastAPI(lifespan=lifespan, **fastapi_kwargs)
    app.state.snaplet = top
    app.include_router(registry.build_router())
    return app


def get_base(request: Request) -> Any:
    """Top-level application value for the app serving ``request``."""
    top = getattr(request.app.state, "snaplet", None)
    if top is None:
        raise SnapletConfigurationError(
            "No snaplet is attached to this application; build it with create_app()"
        )
    return top.value


AppBase = Annotated[Any, Depends(get_base)]
