"""Tests for the shared registry and its free functions."""

import importlib
import sys
from pathlib import Path

import pytest
from loguru import logger

sys.path.append(str(Path(__file__).resolve().parent.parent))
import taghooks.hooks as hooks_module
from taghooks.domain import InvalidArgumentError
from taghooks.hooks import (
    Hooks,
    add_action,
    add_filter,
    apply_filters,
    do_action,
    has_action,
    has_filter,
    log_action,
    remove_action,
    remove_filter,
)


@pytest.fixture(autouse=True)
def shared(monkeypatch):
    """Swap the shared registry for a fresh one so tests never leak."""
    fresh = Hooks()
    monkeypatch.setattr(hooks_module, "hooks", fresh)
    return fresh


@pytest.fixture
def reload_hooks(monkeypatch):
    """Reload taghooks.hooks under a patched environment, then restore it."""

    def _reload():
        return importlib.reload(hooks_module)

    yield _reload
    monkeypatch.delenv("TAGHOOKS_DEFAULT_PRIORITY", raising=False)
    importlib.reload(hooks_module)


def test_free_functions_delegate_to_shared_instance(shared):
    """Test free functions act on the shared registry."""
    calls = []

    def action(options):
        calls.append(options)

    add_action("init", action)
    assert shared.has_action("init")
    assert has_action("init")

    do_action("init", {"debug": True})
    assert calls == [{"debug": True}]

    remove_action("init", action)
    assert not has_action("init")


def test_free_filter_functions(shared):
    """Test the filter free functions add, apply and remove."""

    def exclaim(value, options):
        return value + options["mark"]

    add_filter("title", exclaim, 1)
    add_filter("title", lambda value, options: value.upper(), 2)

    assert has_filter("title")
    assert apply_filters("title", "hi", {"mark": "!"}) == "HI!"

    remove_filter("title", exclaim)
    assert apply_filters("title", "hi") == "HI"


def test_free_do_action_without_options():
    """Test do_action with no options passes None to callbacks."""
    calls = []
    add_action("ping", lambda options: calls.append(options))

    do_action("ping")

    assert calls == [None]


def test_free_functions_default_priority():
    """Test free functions use the shared default priority."""
    order = []
    add_action("x", lambda options: order.append("late"), 11)
    add_action("x", lambda options: order.append("default"))

    do_action("x")

    assert order == ["default", "late"]


def test_has_action_unregistered_tag():
    """Test unknown tags report no registrations without raising."""
    assert has_action("unregistered_tag") is False
    assert has_filter("unregistered_tag") is False


def test_built_in_log_action():
    """Test the built-in log_action hook logs its options."""
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="INFO")
    try:
        add_action("boot", log_action)
        do_action("boot", {"env": "test"})
        do_action("boot")
    finally:
        logger.remove(handler_id)

    assert messages == [
        "Action fired with options {'env': 'test'}",
        "Action fired with options None",
    ]


def test_default_priority_from_environment(monkeypatch, reload_hooks):
    """Test TAGHOOKS_DEFAULT_PRIORITY configures the shared registry."""
    monkeypatch.setenv("TAGHOOKS_DEFAULT_PRIORITY", "25")

    module = reload_hooks()

    assert module.hooks.default_priority == 25


def test_default_priority_without_environment(monkeypatch, reload_hooks):
    """Test the shared registry defaults to priority 10."""
    monkeypatch.delenv("TAGHOOKS_DEFAULT_PRIORITY", raising=False)

    module = reload_hooks()

    assert module.hooks.default_priority == 10


def test_invalid_default_priority_from_environment(monkeypatch, reload_hooks):
    """Test a non-integer environment value raises InvalidArgumentError."""
    monkeypatch.setenv("TAGHOOKS_DEFAULT_PRIORITY", "high")

    with pytest.raises(InvalidArgumentError, match="TAGHOOKS_DEFAULT_PRIORITY"):
        reload_hooks()
