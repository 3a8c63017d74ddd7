"""
Hooks registry — actions and filters keyed by tag, dispatched by priority.

Actions are fire-and-forget callbacks; filters thread a value through each
callback in turn. Callers that want isolation construct their own ``Hooks``;
everyone else goes through the shared ``hooks`` instance and the free
functions at the bottom of this module.
"""

from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from typing import Any, Iterator

from loguru import logger

from .domain import (
    DEFAULT_PRIORITY,
    ActionFn,
    Entry,
    FilterFn,
    InvalidArgumentError,
    callback_name,
    check_callback,
    check_priority,
    check_tag,
)


class Hooks:
    """
    Args:
        default_priority: Priority given to callbacks registered without one.

    Registration and snapshotting are guarded by a single re-entrant lock.
    Callbacks always run outside the lock, against a snapshot taken when the
    dispatch started, so a callback may freely add, remove or dispatch
    again on any tag.
    """

    def __init__(self, default_priority: int = DEFAULT_PRIORITY) -> None:
        self._default_priority = check_priority(default_priority)
        self._actions: dict[str, list[Entry]] = {}
        self._filters: dict[str, list[Entry]] = {}
        self._lock = threading.RLock()
        self._local = threading.local()

    @property
    def default_priority(self) -> int:
        return self._default_priority

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def add_action(
        self, tag: str, callback: ActionFn, priority: int | None = None
    ) -> None:
        """Register ``callback`` to run when ``do_action(tag)`` is called."""
        self._add(self._actions, "action", tag, callback, priority)

    def remove_action(self, tag: str, callback: ActionFn) -> None:
        """Remove every registration of ``callback`` under ``tag``."""
        self._remove(self._actions, "action", tag, callback)

    def do_action(self, tag: str, options: Any = None) -> None:
        """
        Call every action registered under ``tag``, lowest priority first.

        ``options`` (``None`` when omitted) is passed to each callback. An
        exception raised by a callback stops the dispatch and propagates to
        the caller unchanged.
        """
        callbacks = self._snapshot(self._actions, tag)
        if not callbacks:
            return
        logger.debug("Running {} action(s) for {!r}", len(callbacks), tag)
        with self._dispatching():
            for callback in callbacks:
                try:
                    callback(options)
                except Exception as e:
                    self._log_failure("Action", tag, callback, e)
                    raise

    def has_action(self, tag: str) -> bool:
        return self._has(self._actions, tag)

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def add_filter(
        self, tag: str, callback: FilterFn, priority: int | None = None
    ) -> None:
        """Register ``callback`` to transform values in ``apply_filters(tag, ...)``."""
        self._add(self._filters, "filter", tag, callback, priority)

    def remove_filter(self, tag: str, callback: FilterFn) -> None:
        """Remove every registration of ``callback`` under ``tag``."""
        self._remove(self._filters, "filter", tag, callback)

    def apply_filters(self, tag: str, value: Any, options: Any = None) -> Any:
        """
        Pass ``value`` through every filter registered under ``tag``.

        Each filter is called as ``callback(value, options)`` and receives the
        previous filter's return value. Returns ``value`` untouched when no
        filter is registered.

        Raises:
            Whatever a filter raises; later filters are skipped.
        """
        callbacks = self._snapshot(self._filters, tag)
        if not callbacks:
            return value
        logger.debug("Applying {} filter(s) for {!r}", len(callbacks), tag)
        with self._dispatching():
            for callback in callbacks:
                try:
                    value = callback(value, options)
                except Exception as e:
                    self._log_failure("Filter", tag, callback, e)
                    raise
        return value

    def has_filter(self, tag: str) -> bool:
        return self._has(self._filters, tag)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _add(
        self,
        store: dict[str, list[Entry]],
        kind: str,
        tag: str,
        callback: ActionFn | FilterFn,
        priority: int | None,
    ) -> None:
        check_tag(tag)
        check_callback(callback)
        if priority is None:
            priority = self._default_priority
        entry = Entry(priority=check_priority(priority), callback=callback)
        with self._lock:
            store.setdefault(tag, []).append(entry)
        logger.debug("Added {} {!r} {}", kind, tag, entry)

    def _remove(
        self,
        store: dict[str, list[Entry]],
        kind: str,
        tag: str,
        callback: ActionFn | FilterFn,
    ) -> None:
        check_tag(tag)
        with self._lock:
            entries = store.get(tag)
            if entries is None:
                return
            kept = [e for e in entries if not e.matches(callback)]
            store[tag] = kept
        removed = len(entries) - len(kept)
        if removed:
            logger.debug(
                "Removed {} {}(s) {!r} {}",
                removed,
                kind,
                tag,
                callback_name(callback),
            )

    def _snapshot(
        self, store: dict[str, list[Entry]], tag: str
    ) -> list[ActionFn | FilterFn]:
        """Callbacks for ``tag`` in dispatch order. ``sorted`` is stable."""
        check_tag(tag)
        with self._lock:
            entries = list(store.get(tag, ()))
        return [e.callback for e in sorted(entries, key=lambda e: e.priority)]

    def _has(self, store: dict[str, list[Entry]], tag: str) -> bool:
        check_tag(tag)
        with self._lock:
            return bool(store.get(tag))

    @contextmanager
    def _dispatching(self) -> Iterator[None]:
        """Track dispatch depth on this thread; forget the last failure on exit."""
        self._local.depth = getattr(self._local, "depth", 0) + 1
        try:
            yield
        finally:
            self._local.depth -= 1
            if not self._local.depth:
                self._local.failure = None

    def _log_failure(
        self, kind: str, tag: str, callback: ActionFn | FilterFn, error: Exception
    ) -> None:
        # A failure bubbling out of a nested dispatch was already logged there
        if getattr(self._local, "failure", None) is error:
            return
        self._local.failure = error
        logger.error(f"{kind} {tag!r} failed in {callback_name(callback)}: {error}")


# ---------------------------------------------------------------------------
# Shared instance (created once at import) and its free-function delegators
# ---------------------------------------------------------------------------


def _priority_from_env() -> int:
    raw = os.getenv("TAGHOOKS_DEFAULT_PRIORITY")
    if raw is None:
        return DEFAULT_PRIORITY
    try:
        return int(raw)
    except ValueError as exc:
        raise InvalidArgumentError(
            "TAGHOOKS_DEFAULT_PRIORITY", raw, "an integer"
        ) from exc


hooks = Hooks(default_priority=_priority_from_env())


def add_action(tag: str, callback: ActionFn, priority: int | None = None) -> None:
    hooks.add_action(tag, callback, priority)


def add_filter(tag: str, callback: FilterFn, priority: int | None = None) -> None:
    hooks.add_filter(tag, callback, priority)


def remove_action(tag: str, callback: ActionFn) -> None:
    hooks.remove_action(tag, callback)


def remove_filter(tag: str, callback: FilterFn) -> None:
    hooks.remove_filter(tag, callback)


def do_action(tag: str, options: Any = None) -> None:
    hooks.do_action(tag, options)


def apply_filters(tag: str, value: Any, options: Any = None) -> Any:
    return hooks.apply_filters(tag, value, options)


def has_action(tag: str) -> bool:
    return hooks.has_action(tag)


def has_filter(tag: str) -> bool:
    return hooks.has_filter(tag)


def log_action(options: Any = None) -> None:
    """Built-in action: logs whatever options it is called with."""
    logger.info("Action fired with options {!r}", options)
