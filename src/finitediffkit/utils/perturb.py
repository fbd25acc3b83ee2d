"""Scoped mutation of a working parameter vector."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from numbers import Integral
from typing import Any

from finitediffkit.backends import ContainerBackend

__all__ = [
    "perturbed",
    "evaluate_perturbed",
]


@contextmanager
def perturbed(
    x: Any,
    indices: int | Sequence[int],
    delta: float,
    backend: ContainerBackend,
) -> Iterator[Any]:
    """Adds ``delta`` to ``x`` at ``indices`` for the duration of the block.

    An index listed twice is shifted twice. The original entries are written
    back when the block exits, whether it returns or raises.

    Args:
        x: Working vector, mutated in place.
        indices: One index or a sequence of indices.
        delta: Shift applied to each listed entry.
        backend: Container backend of ``x``.

    Yields:
        ``x`` in its perturbed state.
    """
    if isinstance(indices, Integral):
        indices = (indices,)
    saved: list[tuple[int, float]] = []
    try:
        for idx in indices:
            value = backend.get(x, idx)
            saved.append((idx, value))
            backend.set(x, idx, value + delta)
        yield x
    finally:
        for idx, value in reversed(saved):
            backend.set(x, idx, value)


def evaluate_perturbed(
    function: Callable[[Any], Any],
    x: Any,
    indices: int | Sequence[int],
    delta: float,
    backend: ContainerBackend,
    convert: Callable[[Any], Any] | None = None,
) -> Any:
    """Evaluates ``function`` at ``x`` shifted by ``delta`` at ``indices``.

    ``convert`` is applied to the output before ``x`` is restored, so outputs
    that alias the input are captured in their perturbed state.
    """
    with perturbed(x, indices, delta, backend) as shifted:
        out = function(shifted)
        return convert(out) if convert is not None else out
