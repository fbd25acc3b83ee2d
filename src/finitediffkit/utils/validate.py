"""Validation utilities for FiniteDiffKit."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import numpy as np

from finitediffkit.backends import ContainerBackend
from finitediffkit.logger import finitediffkit_logger

__all__ = [
    "check_same_length",
    "check_index_pairs",
    "warn_if_nonfinite",
]


def check_same_length(
    x: Any,
    p: Any,
    backend: ContainerBackend,
    *,
    name: str = "p",
) -> None:
    """Checks that direction ``p`` has the length of the parameter vector ``x``.

    Raises:
        ValueError: If the lengths differ.
    """
    n = backend.length(x)
    k = backend.length(p)
    if k != n:
        raise ValueError(f"{name} must have length {n} to match x; got {k}.")


def check_index_pairs(
    indices: Iterable[tuple[int, int]],
    n: int,
) -> list[tuple[int, int]]:
    """Returns the distinct unordered index pairs, each as ``(min, max)``.

    Pairs keep the order of their first appearance. ``(a, b)`` and ``(b, a)``
    count as the same pair.

    Args:
        indices: Pairs of parameter indices.
        n: Length of the parameter vector.

    Returns:
        Deduplicated list of pairs.

    Raises:
        IndexError: If an index is out of range.
        ValueError: If an entry is not a pair.
    """
    out: dict[tuple[int, int], None] = {}
    for pair in indices:
        try:
            a, b = pair
        except (TypeError, ValueError):
            raise ValueError(f"indices must contain (i, j) pairs; got {pair!r}.") from None
        a = int(a)
        b = int(b)
        for idx in (a, b):
            if idx < 0 or idx >= n:
                raise IndexError(f"index {idx} out of bounds for size {n}.")
        out[(min(a, b), max(a, b))] = None
    return list(out)


def warn_if_nonfinite(values: Any, routine: str) -> None:
    """Logs a warning if ``values`` contains NaN or infinite entries.

    The values are left unchanged and still returned to the caller.
    """
    arr = np.asarray(values, dtype=float)
    if arr.size and not np.isfinite(arr).all():
        finitediffkit_logger.warning(
            "%s: non-finite values in the derivative estimate "
            "(%d of %d entries).",
            routine,
            int(np.count_nonzero(~np.isfinite(arr))),
            int(arr.size),
        )
