"""Symmetrization of approximately symmetric matrices."""

from __future__ import annotations

from typing import Any

from finitediffkit.backends import ContainerBackend, backend_for

__all__ = ["restore_symmetry"]


def restore_symmetry(mat: Any, backend: ContainerBackend | None = None) -> Any:
    """Forces a square matrix to be exactly symmetric.

    Each mirrored pair is replaced by its mean,
    ``mat[i][j] = mat[j][i] = (mat[i][j] + mat[j][i]) / 2``, in a single pass
    over the upper triangle. The diagonal is untouched.

    Args:
        mat: Square matrix, modified in place.
        backend: Container backend of ``mat``. Resolved from its type if not given.

    Returns:
        ``mat`` itself.

    Raises:
        ValueError: If ``mat`` is not square.
    """
    backend = backend if backend is not None else backend_for(mat)
    rows, cols = backend.matrix_shape(mat)
    if rows != cols:
        raise ValueError(f"matrix must be square; got shape=({rows}, {cols}).")
    for i in range(rows):
        for j in range(i + 1, cols):
            t = (backend.get_entry(mat, i, j) + backend.get_entry(mat, j, i)) / 2.0
            backend.set_entry(mat, i, j, t)
            backend.set_entry(mat, j, i, t)
    return mat
