"""Typed signatures of the built-in Jinja2 tests (``x is defined`` …)."""

from __future__ import annotations

import builtins
from collections.abc import Container
from typing import Any


def defined(value: object) -> bool:
    return True


def undefined(value: object) -> bool:
    return False


def none(value: object) -> bool:
    return value is None


def boolean(value: object) -> bool:
    return value is True or value is False


def false(value: object) -> bool:
    return value is False


def true(value: object) -> bool:
    return value is True


def integer(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def float_(value: object) -> bool:
    return isinstance(value, builtins.float)


def number(value: object) -> bool:
    return isinstance(value, (int, builtins.float, complex))


def string(value: object) -> bool:
    return isinstance(value, str)


def mapping(value: object) -> bool:
    return isinstance(value, dict)


def sequence(value: object) -> bool:
    return hasattr(value, "__len__") and hasattr(value, "__getitem__")


def iterable(value: object) -> bool:
    return hasattr(value, "__iter__")


def callable_(value: object) -> bool:
    return builtins.callable(value)


def odd(value: int) -> bool:
    return value % 2 == 1


def even(value: int) -> bool:
    return value % 2 == 0


def divisibleby(value: int, num: int) -> bool:
    return value % num == 0


def eq(value: object, other: object) -> bool:
    return value == other


def ne(value: object, other: object) -> bool:
    return value != other


def lt(value: Any, other: Any) -> bool:
    return bool(value < other)


def le(value: Any, other: Any) -> bool:
    return bool(value <= other)


def gt(value: Any, other: Any) -> bool:
    return bool(value > other)


def ge(value: Any, other: Any) -> bool:
    return bool(value >= other)


equalto = eq
lessthan = lt
greaterthan = gt


def in_(value: object, seq: Container[Any]) -> bool:
    return value in seq


def sameas(value: object, other: object) -> bool:
    return value is other


def escaped(value: object) -> bool:
    return hasattr(value, "__html__")


def lower(value: str) -> bool:
    return value.islower()


def upper(value: str) -> bool:
    return value.isupper()


def filter_(value: str) -> bool:
    return True


def test(value: str) -> bool:
    return True
