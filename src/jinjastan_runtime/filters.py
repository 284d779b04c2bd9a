"""Typed signatures of the built-in Jinja2 filters.

Filters whose name shadows a Python builtin carry a trailing underscore
(``int`` is ``int_``); the compiler applies the same rule.
"""

from __future__ import annotations

import builtins
from collections.abc import Iterable, Mapping, Sequence, Sized
from typing import Any, Literal, SupportsAbs, TypeVar, overload

T = TypeVar("T")
U = TypeVar("U")
K = TypeVar("K")
V = TypeVar("V")


def abs_(value: SupportsAbs[T]) -> T:
    return builtins.abs(value)


def attr(obj: object, name: str) -> Any:
    return getattr(obj, name, None)


def batch(
    value: Iterable[T], linecount: int, fill_with: T | None = None
) -> list[list[T | None]]:
    items: list[T | None] = list(value)
    return [items[i : i + linecount] for i in range(0, len(items), linecount)]


def capitalize(s: str) -> str:
    return s.capitalize()


def center(value: str, width: int = 80) -> str:
    return value.center(width)


def length(obj: Sized) -> int:
    return len(obj)


count = length


@overload
def default(value: T) -> T: ...
@overload
def default(value: T, default_value: U, boolean: bool = ...) -> T | U: ...
def default(value: Any, default_value: Any = "", boolean: bool = False) -> Any:
    return value if value or not boolean else default_value


d = default


def dictsort(
    value: Mapping[K, V],
    case_sensitive: bool = False,
    by: Literal["key", "value"] = "key",
    reverse: bool = False,
) -> list[tuple[K, V]]:
    return list(value.items())


def escape(s: object) -> str:
    return str(s)


e = escape
forceescape = escape


def filesizeformat(value: str | float, binary: bool = False) -> str:
    return str(value)


def first(seq: Iterable[T]) -> T:
    return next(iter(seq))


def float_(value: object, default: float = 0.0) -> float:
    return default


def format_(value: str, *args: Any, **kwargs: Any) -> str:
    return value % (args or kwargs)


def groupby(
    value: Iterable[T], attribute: str | int, default: Any = None, case_sensitive: bool = False
) -> list[tuple[Any, list[T]]]:
    return []


def indent(
    s: str, width: int | str = 4, first: bool = False, blank: bool = False
) -> str:
    return s


def int_(value: object, default: int = 0, base: int = 10) -> int:
    return default


def items(value: Mapping[K, V] | None) -> Iterable[tuple[K, V]]:
    return [] if value is None else list(value.items())


def join(value: Iterable[object], d: str = "", attribute: str | int | None = None) -> str:
    return d.join(str(item) for item in value)


def last(seq: Sequence[T]) -> T:
    return seq[-1]


def list_(value: Iterable[T]) -> list[T]:
    return builtins.list(value)


def lower(s: str) -> str:
    return s.lower()


def map_(value: Iterable[Any], *args: Any, **kwargs: Any) -> Iterable[Any]:
    return []


def max_(
    value: Iterable[T], case_sensitive: bool = False, attribute: str | int | None = None
) -> T | None:
    return None


def min_(
    value: Iterable[T], case_sensitive: bool = False, attribute: str | int | None = None
) -> T | None:
    return None


def pprint(value: object) -> str:
    return repr(value)


def random(seq: Sequence[T]) -> T:
    return seq[0]


def reject(value: Iterable[T], *args: Any, **kwargs: Any) -> Iterable[T]:
    return []


def rejectattr(value: Iterable[T], *args: Any, **kwargs: Any) -> Iterable[T]:
    return []


def replace(s: str, old: str, new: str, count: int | None = None) -> str:
    return s.replace(old, new) if count is None else s.replace(old, new, count)


@overload
def reverse(value: str) -> str: ...
@overload
def reverse(value: Iterable[T]) -> Iterable[T]: ...
def reverse(value: Any) -> Any:
    return value[::-1] if isinstance(value, str) else builtins.list(value)[::-1]


def round_(
    value: float, precision: int = 0, method: Literal["common", "ceil", "floor"] = "common"
) -> float:
    return builtins.round(value, precision)


def safe(value: str) -> str:
    return value


def select(value: Iterable[T], *args: Any, **kwargs: Any) -> Iterable[T]:
    return []


def selectattr(value: Iterable[T], *args: Any, **kwargs: Any) -> Iterable[T]:
    return []


def slice_(
    value: Iterable[T], slices: int, fill_with: T | None = None
) -> Iterable[list[T]]:
    return []


def sort(
    value: Iterable[T],
    reverse: bool = False,
    case_sensitive: bool = False,
    attribute: str | int | None = None,
) -> list[T]:
    return builtins.list(value)


def string(value: object) -> str:
    return str(value)


def striptags(value: object) -> str:
    return str(value)


def sum_(
    iterable: Iterable[Any], attribute: str | int | None = None, start: float = 0
) -> Any:
    return start


def title(s: str) -> str:
    return s.title()


def tojson(value: object, indent: int | None = None) -> str:
    return ""


def trim(value: str, chars: str | None = None) -> str:
    return value.strip(chars)


def truncate(
    s: str, length: int = 255, killwords: bool = False, end: str = "...", leeway: int | None = None
) -> str:
    return s[:length]


def unique(
    value: Iterable[T], case_sensitive: bool = False, attribute: str | int | None = None
) -> Iterable[T]:
    return []


def upper(s: str) -> str:
    return s.upper()


def urlencode(value: str | Mapping[str, Any] | Iterable[tuple[str, Any]]) -> str:
    return ""


def urlize(
    value: str,
    trim_url_limit: int | None = None,
    nofollow: bool = False,
    target: str | None = None,
    rel: str | None = None,
    extra_schemes: Iterable[str] | None = None,
) -> str:
    return value


def wordcount(s: str) -> int:
    return len(s.split())


def wordwrap(
    s: str,
    width: int = 79,
    break_long_words: bool = True,
    wrapstring: str | None = None,
    break_on_hyphens: bool = True,
) -> str:
    return s


def xmlattr(d: Mapping[str, Any], autospace: bool = True) -> str:
    return ""

