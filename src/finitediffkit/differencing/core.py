"""Core utilities shared by the differencing routines.

This module resolves the container backend of a parameter vector and runs a
batch of independent perturbations, either sequentially on one private
working copy or in parallel with one copy per task.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Sequence, Tuple

from finitediffkit.backends import ContainerBackend, backend_for, resolve_backend
from finitediffkit.utils.concurrency import parallel_execute, resolve_workers

__all__ = [
    "get_backend",
    "scalar_output",
    "map_perturbations",
]


def get_backend(x: Any, backend: str | ContainerBackend | None) -> ContainerBackend:
    """Returns the backend to use for parameter vector ``x``.

    Args:
        x: Parameter vector.
        backend: Backend instance or registered name. If ``None``, it is
            resolved from the container type of ``x``.

    Returns:
        A container backend.
    """
    if backend is None:
        return backend_for(x)
    return resolve_backend(backend)


def scalar_output(value: Any) -> float:
    """Converts the output of a scalar-valued callable to ``float``.

    Raises:
        TypeError: If the callable returned more than one value.
    """
    try:
        return float(value)
    except TypeError:
        raise TypeError(
            f"Expected a scalar-valued function; got output of type {type(value).__name__}."
        ) from None


def map_perturbations(
    worker: Callable[..., Any],
    tasks: Sequence[Tuple[Any, ...]],
    work: Any,
    backend: ContainerBackend,
    n_workers: int | None,
) -> list[Any]:
    """Runs ``worker(vector, *task)`` for every task and returns results in task order.

    Sequentially, every task shares ``work``, which the worker must restore
    before returning. In parallel, each task receives its own copy of ``work``.

    Args:
        worker: Callable taking the working vector followed by the task arguments.
        tasks: Argument tuples, one per perturbation.
        work: Private working copy of the parameter vector.
        backend: Container backend of ``work``.
        n_workers: Requested number of workers (see ``resolve_workers``).

    Returns:
        List of worker results.
    """
    outer = resolve_workers(n_workers)
    if outer == 1:
        return [worker(work, *args) for args in tasks]

    def run(*args: Any) -> Any:
        return worker(backend.copy(work), *args)

    return parallel_execute(run, tasks, outer_workers=outer)
