"""Splices: named Python functions callable from templates.

A splice is registered by one snaplet but rendered inside the shared
engine, whose context belongs to the whole application. Instead of
narrowing the engine's context, each call receives a SpliceContext that
carries the request, the application base and the registering snaplet's
own value:

    def recent_posts(ctx: SpliceContext, limit: int = 5):
        return ctx.local.posts[:limit]

    add_splices(init, {"recent_posts": recent_posts})

    {% for post in recent_posts(3) %}...{% endfor %}
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any

from markupsafe import Markup
from starlette.requests import Request

from snaplet_jinja.core.lens import Lens
from snaplet_jinja.errors import TemplateNotFoundError

if TYPE_CHECKING:
    from snaplet_jinja.templating.state import TemplateState

Splice = Callable[..., Any]
SpliceBindings = Mapping[str, Splice] | Iterable[tuple[str, Splice]]


@dataclass(frozen=True)
class BoundSplice:
    """A splice plus the lens to the snaplet that registered it."""

    name: str
    fn: Splice
    lens: Lens[Any, Any] | None = None


@dataclass(frozen=True)
class SpliceContext:
    request: Request | None
    base: Any
    state: TemplateState
    lens: Lens[Any, Any] | None = None

    @property
    def local(self) -> Any:
        """Value of the snaplet that registered the splice.

        Splices bound at request time have no owning snaplet and see the
        application base.
        """
        if self.lens is None:
            return self.base
        return self.lens.get(self.base)

    def render(self, name: str, **context: Any) -> Markup:
        """Render another template into the current one."""
        body = render_state(self.state, name, request=self.request, base=self.base, context=context)
        if body is None:
            raise TemplateNotFoundError(name)
        return Markup(body)


def splice_table(
    splices: SpliceBindings, lens: Lens[Any, Any] | None = None
) -> dict[str, BoundSplice]:
    """Normalise a mapping or list of pairs into bound splices."""
    pairs = splices.items() if isinstance(splices, Mapping) else splices
    table: dict[str, BoundSplice] = {}
    for name, fn in pairs:
        if not name.isidentifier():
            raise ValueError(f"Splice name {name!r} is not a valid template identifier")
        if not callable(fn):
            raise TypeError(f"Splice {name!r} is not callable")
        table[name] = BoundSplice(name=name, fn=fn, lens=lens)
    return table


def render_state(
    state: TemplateState,
    name: str,
    *,
    request: Request | None = None,
    base: Any = None,
    context: Mapping[str, Any] | None = None,
) -> str | None:
    """Render ``name`` against ``state``; None when it isn't registered.

    Splices are per-render variables, not environment globals, so macros
    imported without context (plain ``{% import %}``) cannot call them.
    Use ``{% import "x" as x with context %}`` in that case.
    """
    template = state.lookup(name)
    if template is None:
        return None

    variables: dict[str, Any] = {"request": request}
    for bound in state.splices.values():
        ctx = SpliceContext(request=request, base=base, state=state, lens=bound.lens)
        variables[bound.name] = partial(bound.fn, ctx)
    if context:
        variables.update(context)
    return template.render(variables)
