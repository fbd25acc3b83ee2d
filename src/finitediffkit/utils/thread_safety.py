"""Serialization of user callables evaluated from worker threads."""

from __future__ import annotations

import threading
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

T = TypeVar("T")

__all__ = ["wrap_with_lock"]


def wrap_with_lock(fn: Callable[..., T], lock: Any = None) -> Callable[..., T]:
    """Returns ``fn`` wrapped so that calls through the wrapper never overlap.

    Every callable wrapped with the same ``lock`` is serialized against the
    others. Without a lock a new re-entrant lock is created, so the wrapped
    callable may itself call the wrapper, e.g. a gradient callable that
    differences the same function.

    Args:
        fn: Callable to protect.
        lock: Any context-manager lock. Defaults to a new ``threading.RLock``.

    Returns:
        A wrapper with the name and docstring of ``fn``. The lock it holds is
        available as its ``lock`` attribute.
    """
    lk = threading.RLock() if lock is None else lock

    @wraps(fn)
    def locked(*args: Any, **kwargs: Any) -> T:
        with lk:
            return fn(*args, **kwargs)

    locked.lock = lk
    return locked
