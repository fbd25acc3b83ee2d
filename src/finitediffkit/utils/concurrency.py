"""Concurrency management for differencing routines.

Routines run their perturbations sequentially unless more workers are
requested. The worker count is resolved with the precedence

    explicit ``n_workers`` argument > ``use_workers`` context > module default.

Inside a parallel region the context is pinned to a single worker, so nested
differencing (e.g. a gradient callable that itself differences) stays serial
unless it asks for workers explicitly.
"""

from __future__ import annotations

import contextvars
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Sequence, Tuple

__all__ = [
    "set_default_workers",
    "use_workers",
    "normalize_workers",
    "resolve_workers",
    "parallel_execute",
]


# Context-var and default
_workers_var: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "finitediffkit_workers", default=None
)
_DEFAULT_WORKERS: int = 1


def set_default_workers(n: int | None) -> None:
    """Sets the module-wide default number of workers.

    Args:
        n: Number of workers, or ``None`` to go back to sequential execution.

    Returns:
        None
    """
    global _DEFAULT_WORKERS
    _DEFAULT_WORKERS = 1 if n is None else normalize_workers(n)


@contextmanager
def use_workers(n: int | None) -> Iterator[int | None]:
    """Temporarily sets the number of workers for routines called without ``n_workers``.

    Args:
        n: Number of workers, or ``None`` to fall back to the module default.

    Yields:
        int | None: The previous context setting (restored on exit).
    """
    prev = _workers_var.get()
    token = _workers_var.set(None if n is None else normalize_workers(n))
    try:
        yield prev
    finally:
        _workers_var.reset(token)


def normalize_workers(n_workers: Any) -> int:
    """Ensures n_workers is a positive integer, defaulting to 1.

    Args:
        n_workers: Input number of workers (can be None, float, negative, etc.)

    Returns:
        int: A positive integer number of workers (at least 1).
    """
    try:
        n = int(n_workers)
    except (TypeError, ValueError):
        n = 1
    return 1 if n < 1 else n


def resolve_workers(n_workers: Any = None) -> int:
    """Returns the number of workers a routine should use.

    Args:
        n_workers: Explicit request from the caller, or ``None``.

    Returns:
        Positive number of workers.
    """
    if n_workers is not None:
        return normalize_workers(n_workers)
    w = _workers_var.get()
    if w is not None:
        return w
    return _DEFAULT_WORKERS


def parallel_execute(
    worker: Callable[..., Any],
    arg_tuples: Sequence[Tuple[Any, ...]],
    *,
    outer_workers: int = 1,
) -> list[Any]:
    """Runs ``worker(*args)`` for each tuple in arg_tuples, in order.

    With ``outer_workers > 1`` the calls run on a thread pool; results are
    still returned in the order of ``arg_tuples``. Each task runs in its own
    copy of the current context with the worker count pinned to 1.
    """
    if outer_workers > 1 and len(arg_tuples) > 1:
        with use_workers(1), ThreadPoolExecutor(max_workers=outer_workers) as ex:
            futures = []
            for args in arg_tuples:
                # Each task gets its own copy of the current context
                ctx = contextvars.copy_context()
                futures.append(ex.submit(ctx.run, worker, *args))
            return [f.result() for f in futures]
    return [worker(*args) for args in arg_tuples]
