"""Ambient actor context for audit attribution.

The application layer declares who is acting with :func:`run_as` or
:func:`acting_as`; the transaction binder in ``audit.binding`` reads
:func:`current_actor` when a unit of work begins. Nothing has to thread the
actor through repository signatures.

State is a stack so scopes nest: the innermost actor wins until its scope
exits, then the outer actor is visible again. Each thread owns its own stack.
A thread started inside a scope starts empty, even on interpreters where new
threads inherit the parent's ``contextvars`` context.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Callable, Iterator, TypeVar

T = TypeVar("T")

# (owning thread id, actors bottom-to-top)
_ACTOR_STACK: ContextVar[tuple[int, tuple[str, ...]] | None] = ContextVar(
    "inventory_actor_stack", default=None
)


def _stack() -> tuple[str, ...]:
    """Return the calling thread's actor stack, empty if none was created here."""
    state = _ACTOR_STACK.get()
    if state is None:
        return ()
    owner, actors = state
    if owner != threading.get_ident():
        return ()
    return actors


def _push(actor: str) -> None:
    _ACTOR_STACK.set((threading.get_ident(), _stack() + (actor,)))


def _pop() -> None:
    actors = _stack()
    if not actors:
        return
    _ACTOR_STACK.set((threading.get_ident(), actors[:-1]))


def current_actor() -> str | None:
    """Return the innermost actor for the calling thread, or None."""
    actors = _stack()
    return actors[-1] if actors else None


def clear() -> None:
    """Drop every actor bound on the calling thread."""
    _ACTOR_STACK.set(None)


@contextmanager
def acting_as(actor: str) -> Iterator[str]:
    """Bind ``actor`` for the duration of a block.

    Usage:
        with acting_as("alice"):
            with unit_of_work() as session:
                create_widget(session, ...)
    """
    _push(actor)
    try:
        yield actor
    finally:
        _pop()


def run_as(actor: str, action: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run ``action`` as ``actor`` and return its result.

    Exactly one frame is popped afterwards whether the action returns or
    raises.
    """
    with acting_as(actor):
        return action(*args, **kwargs)
