"""Contains functions used to construct Jacobians and Jacobian-vector products.

Three families are provided:

* dense Jacobians, perturbing one coordinate per evaluation;
* Jacobian-vector products, perturbing along a whole direction at once
  (two evaluations regardless of dimension, at reduced accuracy);
* grouped Jacobians, perturbing every input of a
  :class:`~finitediffkit.perturbation.PerturbationVector` in the same
  evaluation and decoding each output from the single joint result.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from typing import Any

from finitediffkit.backends import ContainerBackend
from finitediffkit.differencing.core import get_backend, map_perturbations
from finitediffkit.logger import finitediffkit_logger
from finitediffkit.perturbation import (
    PerturbationVector,
    PerturbationVectors,
    validate_perturbation_vectors,
)
from finitediffkit.steps import STEP
from finitediffkit.utils.perturb import evaluate_perturbed
from finitediffkit.utils.validate import check_same_length, warn_if_nonfinite

__all__ = [
    "forward_jacobian",
    "central_jacobian",
    "forward_jacobian_vec_prod",
    "central_jacobian_vec_prod",
    "forward_jacobian_pert",
    "central_jacobian_pert",
]


def forward_jacobian(
    x: Any,
    fs: Callable[[Any], Any],
    *,
    backend: str | ContainerBackend | None = None,
    n_workers: int | None = None,
) -> Any:
    """Computes the Jacobian of ``fs`` at ``x`` using forward differences.

    ``dfs/dx_i (x) ~ (fs(x + h e_i) - fs(x)) / h`` with ``h = STEP``.
    Column ``i`` holds the derivatives with respect to ``x[i]``.
    For a parameter vector of length ``n`` this takes ``n + 1`` evaluations.

    Args:
        x: Parameter vector of length ``n``. It is not modified.
        fs: Vector-valued function returning ``m`` values.
        backend: Container backend or its name. Resolved from ``x`` if omitted.
        n_workers: Number of threads for the per-coordinate evaluations.

    Returns:
        The ``m`` x ``n`` Jacobian, as a matrix of the backend.

    Raises:
        TypeError: If evaluations return outputs of different lengths.
    """
    backend = get_backend(x, backend)
    work = backend.copy(x)
    n = backend.length(work)
    fx = backend.as_vector(fs(work))
    m = backend.length(fx)

    worker = partial(_forward_column, fs=fs, fx=fx, backend=backend)
    cols = map_perturbations(worker, [(i,) for i in range(n)], work, backend, n_workers)

    jac = _stack_columns(cols, m, n, backend)
    finitediffkit_logger.debug(
        "forward_jacobian: m=%d, n=%d, evaluations=%d", m, n, n + 1
    )
    warn_if_nonfinite(jac, "forward_jacobian")
    return jac


def central_jacobian(
    x: Any,
    fs: Callable[[Any], Any],
    *,
    backend: str | ContainerBackend | None = None,
    n_workers: int | None = None,
) -> Any:
    """Computes the Jacobian of ``fs`` at ``x`` using central differences.

    ``dfs/dx_i (x) ~ (fs(x + h e_i) - fs(x - h e_i)) / (2 h)`` with ``h = STEP``.
    For a parameter vector of length ``n`` this takes ``2 n`` evaluations.
    An empty ``x`` gives a 0 x 0 matrix without evaluating ``fs``.

    Args:
        x: Parameter vector of length ``n``. It is not modified.
        fs: Vector-valued function returning ``m`` values.
        backend: Container backend or its name. Resolved from ``x`` if omitted.
        n_workers: Number of threads for the per-coordinate evaluations.

    Returns:
        The ``m`` x ``n`` Jacobian, as a matrix of the backend.

    Raises:
        TypeError: If evaluations return outputs of different lengths.
    """
    backend = get_backend(x, backend)
    work = backend.copy(x)
    n = backend.length(work)

    worker = partial(_central_column, fs=fs, backend=backend)
    cols = map_perturbations(worker, [(i,) for i in range(n)], work, backend, n_workers)

    m = backend.length(cols[0]) if cols else 0
    jac = _stack_columns(cols, m, n, backend)
    finitediffkit_logger.debug(
        "central_jacobian: m=%d, n=%d, evaluations=%d", m, n, 2 * n
    )
    warn_if_nonfinite(jac, "central_jacobian")
    return jac


def forward_jacobian_vec_prod(
    x: Any,
    fs: Callable[[Any], Any],
    p: Any,
    *,
    backend: str | ContainerBackend | None = None,
) -> Any:
    """Approximates ``J(x) @ p`` with one forward difference along ``p``.

    ``J(x) p ~ (fs(x + h p) - fs(x)) / h`` with ``h = STEP``. Takes 2
    evaluations of ``fs`` regardless of the dimension. The step is scaled by
    the magnitude of ``p``, so expect errors about two orders of magnitude
    larger than with :func:`forward_jacobian`.

    Args:
        x: Parameter vector. It is not modified.
        fs: Vector-valued function.
        p: Direction, same length as ``x``.
        backend: Container backend or its name. Resolved from ``x`` if omitted.

    Returns:
        The product, as a vector of the backend.

    Raises:
        ValueError: If ``p`` and ``x`` differ in length.
    """
    backend = get_backend(x, backend)
    check_same_length(x, p, backend)
    base = backend.copy(x)
    fx = backend.as_vector(fs(base))
    fxp = backend.as_vector(fs(backend.axpy(base, STEP, p)))
    _check_output_length(fxp, backend.length(fx), backend)

    out = backend.difference_quotient(fxp, fx, STEP)
    finitediffkit_logger.debug(
        "forward_jacobian_vec_prod: n=%d, evaluations=2", backend.length(base)
    )
    warn_if_nonfinite(out, "forward_jacobian_vec_prod")
    return out


def central_jacobian_vec_prod(
    x: Any,
    fs: Callable[[Any], Any],
    p: Any,
    *,
    backend: str | ContainerBackend | None = None,
) -> Any:
    """Approximates ``J(x) @ p`` with one central difference along ``p``.

    ``J(x) p ~ (fs(x + h p) - fs(x - h p)) / (2 h)`` with ``h = STEP``.
    Takes 2 evaluations of ``fs`` regardless of the dimension.

    Args:
        x: Parameter vector. It is not modified.
        fs: Vector-valued function.
        p: Direction, same length as ``x``.
        backend: Container backend or its name. Resolved from ``x`` if omitted.

    Returns:
        The product, as a vector of the backend.

    Raises:
        ValueError: If ``p`` and ``x`` differ in length.
    """
    backend = get_backend(x, backend)
    check_same_length(x, p, backend)
    base = backend.copy(x)
    fxp = backend.as_vector(fs(backend.axpy(base, STEP, p)))
    fxm = backend.as_vector(fs(backend.axpy(base, -STEP, p)))
    _check_output_length(fxm, backend.length(fxp), backend)

    out = backend.difference_quotient(fxp, fxm, 2.0 * STEP)
    finitediffkit_logger.debug(
        "central_jacobian_vec_prod: n=%d, evaluations=2", backend.length(base)
    )
    warn_if_nonfinite(out, "central_jacobian_vec_prod")
    return out


def forward_jacobian_pert(
    x: Any,
    fs: Callable[[Any], Any],
    pert: PerturbationVectors,
    *,
    validate: bool = False,
    backend: str | ContainerBackend | None = None,
    n_workers: int | None = None,
) -> Any:
    """Computes a sparse Jacobian with grouped forward differences.

    For every group, all of its inputs are shifted by ``h = STEP`` in a single
    evaluation. Entry ``J[j][i]`` is then ``(fs_j(x + h sum_k e_k) - fs_j(x)) / h``
    for each output ``j`` listed under input ``i``; this equals the
    single-coordinate difference because no other input of the group affects
    output ``j``. With ``k`` groups this takes ``k + 1`` evaluations. Entries
    that no group lists stay zero.

    Args:
        x: Parameter vector of length ``n``. It is not modified.
        fs: Vector-valued function returning ``m`` values.
        pert: One :class:`PerturbationVector` per evaluation. Each is frozen.
        validate: If True, reject groupings in which two inputs of the same
            group share an output, instead of returning a wrong estimate.
        backend: Container backend or its name. Resolved from ``x`` if omitted.
        n_workers: Number of threads for the per-group evaluations.

    Returns:
        The ``m`` x ``n`` Jacobian, as a matrix of the backend.

    Raises:
        IndexError: If a group refers to an index outside ``x`` or the output.
        ValueError: If ``validate`` is True and the grouping is invalid.
    """
    backend = get_backend(x, backend)
    groups = _freeze_groups(pert)
    work = backend.copy(x)
    n = backend.length(work)
    if validate:
        validate_perturbation_vectors(groups, n)

    fx = backend.as_vector(fs(work))
    m = backend.length(fx)

    worker = partial(_group_eval, fs=fs, delta=STEP, backend=backend)
    outs = map_perturbations(worker, [(g,) for g in groups], work, backend, n_workers)

    jac = backend.zeros_matrix(m, n)
    for group, fxp in zip(groups, outs):
        _check_output_length(fxp, m, backend)
        for i, rows in group.items():
            for j in rows:
                d = (backend.get(fxp, j) - backend.get(fx, j)) / STEP
                backend.set_entry(jac, j, i, d)

    finitediffkit_logger.debug(
        "forward_jacobian_pert: m=%d, n=%d, groups=%d, evaluations=%d",
        m, n, len(groups), len(groups) + 1,
    )
    warn_if_nonfinite(jac, "forward_jacobian_pert")
    return jac


def central_jacobian_pert(
    x: Any,
    fs: Callable[[Any], Any],
    pert: PerturbationVectors,
    *,
    validate: bool = False,
    backend: str | ContainerBackend | None = None,
    n_workers: int | None = None,
) -> Any:
    """Computes a sparse Jacobian with grouped central differences.

    Like :func:`forward_jacobian_pert`, but every group is evaluated at
    ``x + h sum_k e_k`` and ``x - h sum_k e_k``, so ``k`` groups take ``2 k``
    evaluations. An empty grouping evaluates ``fs(x)`` once to size the
    (all-zero) result.

    Args:
        x: Parameter vector of length ``n``. It is not modified.
        fs: Vector-valued function returning ``m`` values.
        pert: One :class:`PerturbationVector` per evaluation pair. Each is frozen.
        validate: If True, reject groupings in which two inputs of the same
            group share an output.
        backend: Container backend or its name. Resolved from ``x`` if omitted.
        n_workers: Number of threads for the per-group evaluations.

    Returns:
        The ``m`` x ``n`` Jacobian, as a matrix of the backend.

    Raises:
        IndexError: If a group refers to an index outside ``x`` or the output.
        ValueError: If ``validate`` is True and the grouping is invalid.
    """
    backend = get_backend(x, backend)
    groups = _freeze_groups(pert)
    work = backend.copy(x)
    n = backend.length(work)
    if validate:
        validate_perturbation_vectors(groups, n)

    if not groups:
        m = backend.length(backend.as_vector(fs(work)))
        finitediffkit_logger.debug(
            "central_jacobian_pert: m=%d, n=%d, groups=0, evaluations=1", m, n
        )
        return backend.zeros_matrix(m, n)

    worker = partial(_group_eval_pair, fs=fs, backend=backend)
    outs = map_perturbations(worker, [(g,) for g in groups], work, backend, n_workers)

    m = backend.length(outs[0][0])
    jac = backend.zeros_matrix(m, n)
    for group, (fxp, fxm) in zip(groups, outs):
        _check_output_length(fxp, m, backend)
        _check_output_length(fxm, m, backend)
        for i, rows in group.items():
            for j in rows:
                d = (backend.get(fxp, j) - backend.get(fxm, j)) / (2.0 * STEP)
                backend.set_entry(jac, j, i, d)

    finitediffkit_logger.debug(
        "central_jacobian_pert: m=%d, n=%d, groups=%d, evaluations=%d",
        m, n, len(groups), 2 * len(groups),
    )
    warn_if_nonfinite(jac, "central_jacobian_pert")
    return jac


def _forward_column(
    work: Any,
    i: int,
    *,
    fs: Callable[[Any], Any],
    fx: Any,
    backend: ContainerBackend,
) -> Any:
    """Returns column ``i`` of the forward-difference Jacobian."""
    fx1 = evaluate_perturbed(fs, work, i, STEP, backend, convert=backend.as_vector)
    _check_output_length(fx1, backend.length(fx), backend, index=i)
    return backend.difference_quotient(fx1, fx, STEP)


def _central_column(
    work: Any,
    i: int,
    *,
    fs: Callable[[Any], Any],
    backend: ContainerBackend,
) -> Any:
    """Returns column ``i`` of the central-difference Jacobian."""
    fx1 = evaluate_perturbed(fs, work, i, STEP, backend, convert=backend.as_vector)
    fx2 = evaluate_perturbed(fs, work, i, -STEP, backend, convert=backend.as_vector)
    _check_output_length(fx2, backend.length(fx1), backend, index=i)
    return backend.difference_quotient(fx1, fx2, 2.0 * STEP)


def _group_eval(
    work: Any,
    group: PerturbationVector,
    *,
    fs: Callable[[Any], Any],
    delta: float,
    backend: ContainerBackend,
) -> Any:
    """Evaluates ``fs`` with every input of ``group`` shifted by ``delta``."""
    return evaluate_perturbed(fs, work, group.x_idx, delta, backend, convert=backend.as_vector)


def _group_eval_pair(
    work: Any,
    group: PerturbationVector,
    *,
    fs: Callable[[Any], Any],
    backend: ContainerBackend,
) -> tuple[Any, Any]:
    """Evaluates ``fs`` with every input of ``group`` shifted by ``+STEP`` and ``-STEP``."""
    fxp = _group_eval(work, group, fs=fs, delta=STEP, backend=backend)
    fxm = _group_eval(work, group, fs=fs, delta=-STEP, backend=backend)
    return fxp, fxm


def _freeze_groups(pert: PerturbationVectors) -> list[PerturbationVector]:
    """Freezes every group of ``pert`` and returns them as a list."""
    groups = list(pert)
    for group in groups:
        if not isinstance(group, PerturbationVector):
            raise TypeError(
                f"pert must contain PerturbationVector objects; got {type(group).__name__}."
            )
        group.freeze()
    return groups


def _stack_columns(cols: list[Any], m: int, n: int, backend: ContainerBackend) -> Any:
    """Assembles per-coordinate columns into an ``m`` x ``n`` matrix."""
    jac = backend.zeros_matrix(m, n)
    for i, col in enumerate(cols):
        _check_output_length(col, m, backend, index=i)
        backend.set_column(jac, i, col)
    return jac


def _check_output_length(
    values: Any,
    expected_m: int,
    backend: ContainerBackend,
    *,
    index: int | None = None,
) -> None:
    """Checks that a function output has the same length as the first one.

    Raises:
        TypeError: If the lengths differ.
    """
    got = backend.length(values)
    if got != expected_m:
        where = "" if index is None else f" for parameter index {index}"
        raise TypeError(
            f"Expected function output of length {expected_m} but got {got}{where}."
        )
