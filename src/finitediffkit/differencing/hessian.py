"""Contains functions used in constructing the Hessian of a scalar-valued function.

Gradient-based routines treat the Hessian as the Jacobian of a
gradient-producing callable ``g``. Gradient-free routines use second-order
forward differences of the scalar function ``f`` itself. Every Hessian is
returned exactly symmetric.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from typing import Any, Iterable

from finitediffkit.backends import ContainerBackend
from finitediffkit.differencing.core import get_backend, map_perturbations, scalar_output
from finitediffkit.differencing.jacobian import (
    central_jacobian,
    central_jacobian_vec_prod,
    forward_jacobian,
    forward_jacobian_vec_prod,
)
from finitediffkit.logger import finitediffkit_logger
from finitediffkit.steps import STEP
from finitediffkit.utils.perturb import evaluate_perturbed
from finitediffkit.utils.symmetry import restore_symmetry
from finitediffkit.utils.validate import check_index_pairs, warn_if_nonfinite

__all__ = [
    "forward_hessian",
    "central_hessian",
    "forward_hessian_vec_prod",
    "central_hessian_vec_prod",
    "forward_hessian_nograd",
    "forward_hessian_nograd_sparse",
]


def forward_hessian(
    x: Any,
    g: Callable[[Any], Any],
    *,
    backend: str | ContainerBackend | None = None,
    n_workers: int | None = None,
) -> Any:
    """Returns the Hessian as the forward-difference Jacobian of the gradient ``g``.

    ``dg/dx_i (x) ~ (g(x + h e_i) - g(x)) / h`` for all ``i``, followed by
    symmetrization. Takes ``n + 1`` evaluations of ``g``.

    Args:
        x: Parameter vector. It is not modified.
        g: Function returning the gradient of some scalar function, e.g.
            ``lambda d: forward_diff(d, f)``.
        backend: Container backend or its name. Resolved from ``x`` if omitted.
        n_workers: Number of threads for the per-coordinate evaluations.

    Returns:
        The symmetric ``n`` x ``n`` Hessian.

    Raises:
        ValueError: If ``g`` does not return a vector of length ``n``.
    """
    backend = get_backend(x, backend)
    jac = forward_jacobian(x, g, backend=backend, n_workers=n_workers)
    return restore_symmetry(jac, backend)


def central_hessian(
    x: Any,
    g: Callable[[Any], Any],
    *,
    backend: str | ContainerBackend | None = None,
    n_workers: int | None = None,
) -> Any:
    """Returns the Hessian as the central-difference Jacobian of the gradient ``g``.

    ``dg/dx_i (x) ~ (g(x + h e_i) - g(x - h e_i)) / (2 h)`` for all ``i``,
    followed by symmetrization. Takes ``2 n`` evaluations of ``g``.

    Args:
        x: Parameter vector. It is not modified.
        g: Function returning the gradient of some scalar function.
        backend: Container backend or its name. Resolved from ``x`` if omitted.
        n_workers: Number of threads for the per-coordinate evaluations.

    Returns:
        The symmetric ``n`` x ``n`` Hessian.

    Raises:
        ValueError: If ``g`` does not return a vector of length ``n``.
    """
    backend = get_backend(x, backend)
    jac = central_jacobian(x, g, backend=backend, n_workers=n_workers)
    return restore_symmetry(jac, backend)


def forward_hessian_vec_prod(
    x: Any,
    g: Callable[[Any], Any],
    p: Any,
    *,
    backend: str | ContainerBackend | None = None,
) -> Any:
    """Approximates ``H(x) @ p`` as ``(g(x + h p) - g(x)) / h``.

    Takes 2 evaluations of the gradient ``g``.
    """
    return forward_jacobian_vec_prod(x, g, p, backend=backend)


def central_hessian_vec_prod(
    x: Any,
    g: Callable[[Any], Any],
    p: Any,
    *,
    backend: str | ContainerBackend | None = None,
) -> Any:
    """Approximates ``H(x) @ p`` as ``(g(x + h p) - g(x - h p)) / (2 h)``.

    Takes 2 evaluations of the gradient ``g``.
    """
    return central_jacobian_vec_prod(x, g, p, backend=backend)


def forward_hessian_nograd(
    x: Any,
    f: Callable[[Any], float],
    *,
    backend: str | ContainerBackend | None = None,
    n_workers: int | None = None,
) -> Any:
    """Returns the Hessian of ``f`` from second-order forward differences.

    For all ``i <= j``::

        d2f/(dx_i dx_j) ~ (f(x + h e_i + h e_j) - f(x + h e_i) - f(x + h e_j) + f(x)) / h**2

    and the result is mirrored. Takes ``1 + n + n (n + 1) / 2`` evaluations
    of ``f``; no gradient is needed.

    Args:
        x: Parameter vector. It is not modified.
        f: Scalar-valued function.
        backend: Container backend or its name. Resolved from ``x`` if omitted.
        n_workers: Number of threads for the evaluations.

    Returns:
        The symmetric ``n`` x ``n`` Hessian.
    """
    backend = get_backend(x, backend)
    n = backend.length(x)
    pairs = [(i, j) for i in range(n) for j in range(i, n)]
    hess, evaluations = _hessian_nograd_pairs(x, f, pairs, backend, n_workers)
    finitediffkit_logger.debug(
        "forward_hessian_nograd: n=%d, evaluations=%d", n, evaluations
    )
    warn_if_nonfinite(hess, "forward_hessian_nograd")
    return hess


def forward_hessian_nograd_sparse(
    x: Any,
    f: Callable[[Any], float],
    indices: Iterable[tuple[int, int]],
    *,
    backend: str | ContainerBackend | None = None,
    n_workers: int | None = None,
) -> Any:
    """Returns a sparse Hessian of ``f`` from second-order forward differences.

    Only the listed ``(i, j)`` entries are computed, with the formula of
    :func:`forward_hessian_nograd`. Because the Hessian is symmetric, a pair
    ``(a, b)`` also fills ``(b, a)``; list each off-diagonal pair once.
    Entries that are not listed stay zero.

    Args:
        x: Parameter vector. It is not modified.
        f: Scalar-valued function.
        indices: Pairs of parameter indices to evaluate.
        backend: Container backend or its name. Resolved from ``x`` if omitted.
        n_workers: Number of threads for the evaluations.

    Returns:
        The symmetric ``n`` x ``n`` Hessian.

    Raises:
        IndexError: If an index is out of range.
    """
    backend = get_backend(x, backend)
    n = backend.length(x)
    pairs = check_index_pairs(indices, n)
    hess, evaluations = _hessian_nograd_pairs(x, f, pairs, backend, n_workers)
    finitediffkit_logger.debug(
        "forward_hessian_nograd_sparse: n=%d, pairs=%d, evaluations=%d",
        n, len(pairs), evaluations,
    )
    warn_if_nonfinite(hess, "forward_hessian_nograd_sparse")
    return hess


def _hessian_nograd_pairs(
    x: Any,
    f: Callable[[Any], float],
    pairs: list[tuple[int, int]],
    backend: ContainerBackend,
    n_workers: int | None,
) -> tuple[Any, int]:
    """Fills the listed upper-triangle entries and their mirrors.

    Returns:
        The Hessian and the number of evaluations of ``f``.
    """
    work = backend.copy(x)
    n = backend.length(work)
    fx = scalar_output(f(work))

    # Single shifts f(x + h e_i), shared by every pair that contains i.
    singles = sorted({k for pair in pairs for k in pair})
    single_worker = partial(_shifted_value, f=f, backend=backend)
    single_vals = map_perturbations(
        single_worker, [((i,),) for i in singles], work, backend, n_workers
    )
    fxi = dict(zip(singles, single_vals))

    pair_vals = map_perturbations(
        single_worker, [(pair,) for pair in pairs], work, backend, n_workers
    )

    h2 = STEP * STEP
    hess = backend.zeros_matrix(n, n)
    for (i, j), fxij in zip(pairs, pair_vals):
        t = (fxij - fxi[i] - fxi[j] + fx) / h2
        backend.set_entry(hess, i, j, t)
        backend.set_entry(hess, j, i, t)

    return restore_symmetry(hess, backend), 1 + len(singles) + len(pairs)


def _shifted_value(
    work: Any,
    indices: tuple[int, ...],
    *,
    f: Callable[[Any], float],
    backend: ContainerBackend,
) -> float:
    """Returns ``f`` at ``work`` shifted by ``STEP`` at each of ``indices``."""
    return evaluate_perturbed(f, work, indices, STEP, backend, convert=scalar_output)
