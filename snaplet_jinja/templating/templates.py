"""The templates snaplet value and the accessor every application provides.

One Templates instance exists per application. Its shared TemplateState
is replaced wholesale under a lock (initialization, cache clearing);
request handlers read the current reference without locking. Scoped
states live in a ContextVar, so they are only visible to the task that
created them and vanish when the scope exits.
"""

import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import Any, Protocol, runtime_checkable

from snaplet_jinja.core.lens import Lens
from snaplet_jinja.core.logger import get_logger
from snaplet_jinja.errors import SnapletConfigurationError, TemplatingError
from snaplet_jinja.snaplet import Snaplet
from snaplet_jinja.templating.state import TemplateState

logger = get_logger(__name__)

StateTransform = Callable[[TemplateState], TemplateState]

# Keyed by id(Templates) so several applications can share a process
_scoped_states: ContextVar[Mapping[int, TemplateState]] = ContextVar(
    "snaplet_jinja_scoped_states", default=MappingProxyType({})
)


class Templates:
    """Holder for one application's template engine state."""

    def __init__(self, state: TemplateState):
        self._state = state
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"Templates({len(self._state.table)} templates)"

    @property
    def shared_state(self) -> TemplateState:
        """State seen by every request, ignoring scoped overrides."""
        return self._state

    @property
    def state(self) -> TemplateState:
        """State seen by the current task."""
        return _scoped_states.get().get(id(self), self._state)

    def modify(self, transform: StateTransform) -> TemplateState:
        """Replace the shared state with ``transform(state)``.

        Meant for initialization; a failing transform leaves the state as
        it was.
        """
        with self._lock:
            new_state = transform(self._state)
            if not isinstance(new_state, TemplateState):
                raise TypeError(
                    f"State transform returned {type(new_state).__name__}, "
                    "expected TemplateState"
                )
            self._state = new_state
            return new_state

    @contextmanager
    def scoped(self, transform: StateTransform) -> Iterator[TemplateState]:
        """Use ``transform(state)`` for the current task until the block exits."""
        current = _scoped_states.get()
        state = transform(current.get(id(self), self._state))
        token = _scoped_states.set(MappingProxyType({**current, id(self): state}))
        try:
            yield state
        finally:
            _scoped_states.reset(token)

    def clear_cache(self) -> None:
        """Reload every registered template directory from disk.

        On failure the previous state stays in place and the error is
        re-raised.
        """
        with self._lock:
            try:
                reloaded = self._state.reload()
            except TemplatingError:
                logger.error("templates.cache_clear_failed", exc_info=True)
                raise
            self._state = reloaded
        logger.info("templates.cache_cleared", count=len(reloaded.table))


@runtime_checkable
class HasTemplates(Protocol):
    """Accessor contract: how to reach the templates snaplet from the base.

    Implement it once on the application's base value:

        class App:
            heist: Snaplet[Templates]

            def templates_lens(self) -> Lens:
                return Lens.attribute("heist")
    """

    def templates_lens(self) -> Lens[Any, Snaplet[Templates]]: ...


def templates_of(base: Any) -> Templates:
    """The Templates value reachable from ``base`` through its accessor."""
    if not isinstance(base, HasTemplates):
        raise SnapletConfigurationError(
            f"{type(base).__name__} does not implement templates_lens()"
        )
    snaplet = base.templates_lens().get(base)
    templates = snaplet.value if isinstance(snaplet, Snaplet) else snaplet
    if not isinstance(templates, Templates):
        raise SnapletConfigurationError(
            "templates_lens() does not lead to an initialized templates snaplet; "
            "nest heist_init() before using templates"
        )
    return templates


def clear_cache(templates: Templates) -> None:
    templates.clear_cache()
