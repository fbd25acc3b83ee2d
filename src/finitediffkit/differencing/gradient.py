"""Contains functions used to construct the gradient of scalar-valued functions."""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from typing import Any

from finitediffkit.backends import ContainerBackend
from finitediffkit.differencing.core import get_backend, map_perturbations, scalar_output
from finitediffkit.logger import finitediffkit_logger
from finitediffkit.steps import STEP
from finitediffkit.utils.perturb import evaluate_perturbed
from finitediffkit.utils.validate import warn_if_nonfinite

__all__ = [
    "forward_diff",
    "central_diff",
]


def forward_diff(
    x: Any,
    f: Callable[[Any], float],
    *,
    backend: str | ContainerBackend | None = None,
    n_workers: int | None = None,
) -> Any:
    """Returns the gradient of ``f`` at ``x`` using forward differences.

    ``df/dx_i (x) ~ (f(x + h e_i) - f(x)) / h`` with ``h = STEP``.

    For a parameter vector of length ``n`` this takes ``n + 1`` evaluations of
    ``f``; the baseline ``f(x)`` is evaluated even when ``n == 0``.

    Args:
        x: Parameter vector. It is not modified.
        f: Scalar-valued function of a vector of the same container type.
        backend: Container backend or its name. Resolved from ``x`` if omitted.
        n_workers: Number of threads for the per-coordinate evaluations.

    Returns:
        The gradient, in the container type of ``x``.

    Raises:
        TypeError: If ``f`` does not return a scalar.
    """
    backend = get_backend(x, backend)
    work = backend.copy(x)
    n = backend.length(work)
    fx = scalar_output(f(work))

    worker = partial(_forward_component, f=f, fx=fx, backend=backend)
    vals = map_perturbations(worker, [(i,) for i in range(n)], work, backend, n_workers)

    grad = backend.zeros(n)
    for i, v in enumerate(vals):
        backend.set(grad, i, v)

    finitediffkit_logger.debug("forward_diff: n=%d, evaluations=%d", n, n + 1)
    warn_if_nonfinite(grad, "forward_diff")
    return grad


def central_diff(
    x: Any,
    f: Callable[[Any], float],
    *,
    backend: str | ContainerBackend | None = None,
    n_workers: int | None = None,
) -> Any:
    """Returns the gradient of ``f`` at ``x`` using central differences.

    ``df/dx_i (x) ~ (f(x + h e_i) - f(x - h e_i)) / (2 h)`` with ``h = STEP``.

    For a parameter vector of length ``n`` this takes ``2 n`` evaluations of ``f``.

    Args:
        x: Parameter vector. It is not modified.
        f: Scalar-valued function of a vector of the same container type.
        backend: Container backend or its name. Resolved from ``x`` if omitted.
        n_workers: Number of threads for the per-coordinate evaluations.

    Returns:
        The gradient, in the container type of ``x``.

    Raises:
        TypeError: If ``f`` does not return a scalar.
    """
    backend = get_backend(x, backend)
    work = backend.copy(x)
    n = backend.length(work)

    worker = partial(_central_component, f=f, backend=backend)
    vals = map_perturbations(worker, [(i,) for i in range(n)], work, backend, n_workers)

    grad = backend.zeros(n)
    for i, v in enumerate(vals):
        backend.set(grad, i, v)

    finitediffkit_logger.debug("central_diff: n=%d, evaluations=%d", n, 2 * n)
    warn_if_nonfinite(grad, "central_diff")
    return grad


def _forward_component(
    work: Any,
    i: int,
    *,
    f: Callable[[Any], float],
    fx: float,
    backend: ContainerBackend,
) -> float:
    """Returns one forward-difference entry of the gradient."""
    fx1 = evaluate_perturbed(f, work, i, STEP, backend, convert=scalar_output)
    return (fx1 - fx) / STEP


def _central_component(
    work: Any,
    i: int,
    *,
    f: Callable[[Any], float],
    backend: ContainerBackend,
) -> float:
    """Returns one central-difference entry of the gradient."""
    fx1 = evaluate_perturbed(f, work, i, STEP, backend, convert=scalar_output)
    fx2 = evaluate_perturbed(f, work, i, -STEP, backend, convert=scalar_output)
    return (fx1 - fx2) / (2.0 * STEP)
