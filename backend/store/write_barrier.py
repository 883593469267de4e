# store/write_barrier.py
"""
Thread-local write contexts.

Repository-owned models refuse to save or delete unless the current
thread has pushed one of the contexts they accept. The repository pushes
"repository". User.check_password and the user_logged_in receiver push
"auth" (hash upgrade, last_login). Seeding and manager helpers push
"bootstrap".
"""

from contextlib import contextmanager
import threading


_state = threading.local()


def _context_stack() -> list[str]:
    stack = getattr(_state, "write_context_stack", None)
    if stack is None:
        stack = []
        _state.write_context_stack = stack
    return stack


def current_write_context() -> str | None:
    stack = _context_stack()
    return stack[-1] if stack else None


def write_context_allowed(allowed_contexts: set[str]) -> bool:
    ctx = current_write_context()
    if ctx is None:
        return False
    return ctx in allowed_contexts


@contextmanager
def _push_write_context(name: str):
    stack = _context_stack()
    stack.append(name)
    try:
        yield
    finally:
        stack.pop()


@contextmanager
def repository_writes_allowed():
    with _push_write_context("repository"):
        yield


@contextmanager
def auth_writes_allowed():
    with _push_write_context("auth"):
        yield


@contextmanager
def bootstrap_writes_allowed():
    with _push_write_context("bootstrap"):
        yield
