"""Getter/setter pairs for reaching into nested application state."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

S = TypeVar("S")
A = TypeVar("A")
C = TypeVar("C")


@dataclass(frozen=True)
class Lens(Generic[S, A]):
    """Focus on one field of a (possibly nested) state object.

    Setting goes through the parent object in place, so composed lenses
    only need the intermediate objects to be mutable.
    """

    get: Callable[[S], A]
    set: Callable[[S, A], None]
    label: str = ""

    @classmethod
    def attribute(cls, name: str) -> "Lens[Any, Any]":
        return cls(
            get=lambda obj: getattr(obj, name, None),
            set=lambda obj, value: setattr(obj, name, value),
            label=name,
        )

    @classmethod
    def identity(cls) -> "Lens[Any, Any]":
        def _set(obj: Any, value: Any) -> None:
            if value is not obj:
                raise TypeError("The identity lens cannot replace its target")

        return cls(get=lambda obj: obj, set=_set, label="")

    def compose(self, inner: "Lens[A, C]") -> "Lens[S, C]":
        """Focus through ``self`` first, then ``inner``."""
        outer = self
        label = ".".join(part for part in (outer.label, inner.label) if part)
        return Lens(
            get=lambda obj: inner.get(outer.get(obj)),
            set=lambda obj, value: inner.set(outer.get(obj), value),
            label=label,
        )

    def __truediv__(self, inner: "Lens[A, C]") -> "Lens[S, C]":
        return self.compose(inner)

    def __repr__(self) -> str:
        return f"Lens({self.label or '<fn>'})"
