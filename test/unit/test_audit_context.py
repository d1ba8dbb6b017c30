"""Unit tests for the thread-scoped actor context."""

from __future__ import annotations

import threading

import pytest

from audit.context import acting_as, clear, current_actor, run_as


def test_run_as_sets_and_clears_actor() -> None:
    """run_as exposes the actor only for the duration of the action."""
    assert current_actor() is None

    seen = run_as("alice", current_actor)

    assert seen == "alice"
    assert current_actor() is None


def test_run_as_returns_action_result_and_forwards_arguments() -> None:
    """run_as passes arguments through and returns the action's value."""
    result = run_as("alice", lambda a, b=0: (current_actor(), a + b), 2, b=3)

    assert result == ("alice", 5)


def test_run_as_pops_even_on_exception() -> None:
    """The actor frame is popped when the action raises."""

    def boom() -> None:
        assert current_actor() == "bob"
        raise RuntimeError("Test exception")

    with pytest.raises(RuntimeError, match="Test exception"):
        run_as("bob", boom)

    assert current_actor() is None


def test_error_in_nested_scope_restores_outer_actor() -> None:
    """A failing inner scope leaves the outer actor visible."""

    def inner() -> None:
        raise ValueError("inner failure")

    def outer() -> str | None:
        with pytest.raises(ValueError):
            run_as("inner", inner)
        return current_actor()

    assert run_as("outer", outer) == "outer"
    assert current_actor() is None


def test_multiple_nested_calls() -> None:
    """Inner scopes shadow outer ones and unwind in order."""
    observed: list[str | None] = []

    def inner() -> None:
        observed.append(current_actor())

    def outer() -> None:
        observed.append(current_actor())
        run_as("user2", inner)
        observed.append(current_actor())

    run_as("user1", outer)

    assert observed == ["user1", "user2", "user1"]
    assert current_actor() is None


def test_acting_as_context_manager_nests() -> None:
    """acting_as has the same push/pop behaviour as run_as."""
    with acting_as("user_a") as actor:
        assert actor == "user_a"
        with acting_as("user_b"):
            assert current_actor() == "user_b"
        assert current_actor() == "user_a"

    assert current_actor() is None


def test_different_actors_create_different_contexts() -> None:
    """Sequential scopes do not leak into each other."""
    assert run_as("user_a", current_actor) == "user_a"
    assert run_as("user_b", current_actor) == "user_b"
    assert current_actor() is None


def test_current_actor_is_none_when_not_set() -> None:
    """An untouched thread has no actor."""
    assert current_actor() is None


def test_clear_removes_all_actors() -> None:
    """clear empties the stack and is safe to repeat."""
    with acting_as("outer"):
        with acting_as("inner"):
            clear()
            assert current_actor() is None
        # Popping the now-empty stack is a no-op.
        assert current_actor() is None

    assert current_actor() is None
    clear()
    assert current_actor() is None


def test_thread_local_isolation() -> None:
    """A thread started inside a scope starts with no actor."""
    observed: dict[str, str | None] = {}

    def worker() -> None:
        observed["before"] = current_actor()
        observed["inside"] = run_as("other_thread", current_actor)
        observed["after"] = current_actor()

    with acting_as("main_thread"):
        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()
        assert current_actor() == "main_thread"

    assert observed == {"before": None, "inside": "other_thread", "after": None}
    assert current_actor() is None


def test_concurrent_threads_do_not_share_stacks() -> None:
    """Actors bound concurrently on different threads stay separate."""
    barrier = threading.Barrier(2)
    observed: dict[str, str | None] = {}

    def worker(name: str) -> None:
        with acting_as(name):
            barrier.wait(timeout=5)
            observed[name] = current_actor()
            barrier.wait(timeout=5)

    threads = [threading.Thread(target=worker, args=(name,)) for name in ("t1", "t2")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert observed == {"t1": "t1", "t2": "t2"}
