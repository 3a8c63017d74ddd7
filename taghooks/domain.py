"""
Core domain: Entry, callback signatures, and all hook-specific exceptions.

Imports nothing else from the package; the registry builds on top of it.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MethodType
from typing import Any, Callable


# ---------------------------------------------------------------------------
# Callback signatures
# ---------------------------------------------------------------------------

# (options) -> None; options is None when the caller gives none
ActionFn = Callable[..., None]

# (value, options) -> new value
FilterFn = Callable[..., Any]

DEFAULT_PRIORITY = 10


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Entry:
    """
    A single registration of a callback under a tag.

    Attributes:
        priority: Dispatch order, lowest first. Ties keep registration order.
        callback: The action or filter callable.
    """

    priority: int
    callback: ActionFn | FilterFn

    def matches(self, callback: ActionFn | FilterFn) -> bool:
        return same_callback(self.callback, callback)

    def __str__(self) -> str:
        return f"[{self.priority}] {callback_name(self.callback)}"


def same_callback(a: Callable[..., Any], b: Callable[..., Any]) -> bool:
    """
    Identity match, except that bound methods match when both the function
    and the instance are the same objects.

    Every ``obj.method`` lookup builds a new bound-method object, so identity
    alone would make methods impossible to remove.
    """
    if a is b:
        return True
    if isinstance(a, MethodType) and isinstance(b, MethodType):
        return a.__func__ is b.__func__ and a.__self__ is b.__self__
    return False


def callback_name(callback: Callable[..., Any]) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class HookError(Exception):
    """Base for all hook-specific errors."""


class InvalidArgumentError(HookError, ValueError):
    def __init__(self, argument: str, value: Any, expected: str) -> None:
        super().__init__(
            f"Invalid {argument} {value!r}: expected {expected}."
        )
        self.argument = argument
        self.value = value
        self.expected = expected


def check_tag(tag: Any) -> str:
    if not isinstance(tag, str):
        raise InvalidArgumentError("tag", tag, "a string")
    return tag


def check_callback(callback: Any) -> Callable[..., Any]:
    if not callable(callback):
        raise InvalidArgumentError("callback", callback, "a callable")
    return callback


def check_priority(priority: Any) -> int:
    # bool is an int subclass; True/False are never meant as a priority
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise InvalidArgumentError("priority", priority, "an integer")
    return priority
