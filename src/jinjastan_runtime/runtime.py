"""Runtime helpers referenced by generated template code.

Generated modules are only ever type-checked, never executed against real
data, but every helper here still behaves sensibly when called so that the
generated code stays importable.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sized
from typing import Any, TypeVar

T = TypeVar("T")


class LoopContext:
    """The ``loop`` variable available inside ``{% for %}`` bodies."""

    def __init__(self, length: int = 0) -> None:
        self.index0 = 0
        self.length = length
        self.depth0 = 0
        self.previtem: Any = None
        self.nextitem: Any = None

    @property
    def index(self) -> int:
        return self.index0 + 1

    @property
    def revindex(self) -> int:
        return self.length - self.index0

    @property
    def revindex0(self) -> int:
        return self.length - self.index

    @property
    def first(self) -> bool:
        return self.index0 == 0

    @property
    def last(self) -> bool:
        return self.index == self.length

    @property
    def depth(self) -> int:
        return self.depth0 + 1

    def cycle(self, *args: T) -> T:
        if not args:
            msg = "no items for cycling given"
            raise TypeError(msg)
        return args[self.index0 % len(args)]

    def changed(self, *value: Any) -> bool:
        return True

    def __call__(self, iterable: Iterable[Any]) -> str:
        return ""


def loop(iterable: Iterable[T]) -> Iterator[tuple[LoopContext, T]]:
    items = list(iterable)
    context = LoopContext(len(items))
    for index, item in enumerate(items):
        context.index0 = index
        yield context, item


def empty(iterable: Iterable[Any]) -> bool:
    """Whether a ``{% for %}`` loop over ``iterable`` would run its ``else``."""
    if isinstance(iterable, Sized):
        return len(iterable) == 0
    return False


def concat(*values: object) -> str:
    """The ``~`` operator."""
    return "".join(str(value) for value in values)


def extends(template: str) -> None:
    """Placeholder for ``{% extends %}``; replaced during flattening."""


def include(template: str) -> str:
    """Placeholder for ``{% include %}``; replaced during flattening."""
    return ""


def include_dynamic(template: object) -> str:
    """An include whose target is only known at runtime."""
    return ""


def import_template(template: object) -> Any:
    """The module object produced by ``{% import %}``."""
    return Namespace()


def context() -> dict[str, Any]:
    """The template context (``{{ context }}`` references)."""
    return {}


class Namespace:
    """Result of ``namespace()``; attributes are untyped."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        for key, value in dict(*args, **kwargs).items():
            object.__setattr__(self, key, value)

    def __getattr__(self, name: str) -> Any:
        return None

    def __setattr__(self, name: str, value: Any) -> None:
        object.__setattr__(self, name, value)


def namespace(*args: Any, **kwargs: Any) -> Namespace:
    return Namespace(*args, **kwargs)


class Cycler:
    def __init__(self, *items: Any) -> None:
        self.items = items
        self.pos = 0

    @property
    def current(self) -> Any:
        return self.items[self.pos] if self.items else None

    def next(self) -> Any:
        value = self.current
        if self.items:
            self.pos = (self.pos + 1) % len(self.items)
        return value

    def reset(self) -> None:
        self.pos = 0


def cycler(*items: Any) -> Cycler:
    return Cycler(*items)


class Joiner:
    def __init__(self, sep: str = ", ") -> None:
        self.sep = sep
        self.used = False

    def __call__(self) -> str:
        if not self.used:
            self.used = True
            return ""
        return self.sep


def joiner(sep: str = ", ") -> Joiner:
    return Joiner(sep)


def lipsum(n: int = 5, html: bool = True, min: int = 20, max: int = 100) -> str:
    return ""


def no_caller(*args: Any, **kwargs: Any) -> str:
    """Default for the ``caller`` parameter of macros used without ``{% call %}``."""
    return ""


Caller = Callable[..., str]

# Names available in every template without being passed in.
GLOBALS = frozenset({"range", "dict", "lipsum", "cycler", "joiner", "namespace"})
