"""Provides the FiniteDiffKit class.

A light wrapper around the differencing routines that binds a parameter
vector and its container backend once and exposes every routine as a method.

Typical usage examples:

>>> import numpy as np
>>> from finitediffkit.finite_diff_kit import FiniteDiffKit
>>>
>>> def cost(x):
...     # scalar-valued function: f(x) = x0 + x1**2
...     return x[0] + x[1] ** 2
>>>
>>> kit = FiniteDiffKit(np.array([1.0, 1.0]))
>>> grad = kit.forward_diff(cost)
>>> hess = kit.forward_hessian(lambda d: FiniteDiffKit(d).forward_diff(cost))
>>>
>>> # The same calls work on plain lists.
>>> grad_list = FiniteDiffKit([1.0, 1.0]).central_diff(cost)
"""

from __future__ import annotations

import threading
from typing import Any

from finitediffkit.backends import ContainerBackend
from finitediffkit.differencing import (
    central_diff,
    central_hessian,
    central_hessian_vec_prod,
    central_jacobian,
    central_jacobian_pert,
    central_jacobian_vec_prod,
    forward_diff,
    forward_hessian,
    forward_hessian_nograd,
    forward_hessian_nograd_sparse,
    forward_hessian_vec_prod,
    forward_jacobian,
    forward_jacobian_pert,
    forward_jacobian_vec_prod,
)
from finitediffkit.differencing.core import get_backend
from finitediffkit.perturbation import PerturbationVectors
from finitediffkit.utils.symmetry import restore_symmetry
from finitediffkit.utils.thread_safety import wrap_with_lock
from finitediffkit.utils.types import IndexPairs, Matrix, ScalarFunction, Vector, VectorFunction


class FiniteDiffKit:
    """Provides finite-difference gradients, Jacobians and Hessians at a fixed point."""

    def __init__(
        self,
        x: Any,
        *,
        backend: str | ContainerBackend | None = None,
        n_workers: int | None = None,
        thread_safe: bool = False,
        thread_lock: Any = None,
    ):
        """Initialises with the parameter vector and evaluation options.

        Args:
            x: Point at which to evaluate derivatives (length ``n``). A copy is stored.
            backend: Container backend or its name. Resolved from ``x`` if omitted.
            n_workers: Number of threads used for independent perturbations.
                ``None`` defers to ``finitediffkit.utils.concurrency``.
            thread_safe: If True, every callable passed to a method is wrapped
                with ``thread_lock`` so its calls never overlap.
            thread_lock: Lock shared by every wrapped callable of this kit.
                A new re-entrant lock is created if omitted.
        """
        self.backend = get_backend(x, backend)
        self.x = self.backend.copy(x)
        self.n_workers = n_workers
        self.thread_safe = thread_safe
        self._lock = thread_lock if thread_lock is not None else threading.RLock()

    def __len__(self) -> int:
        return self.backend.length(self.x)

    def _wrap(self, fn: Any) -> Any:
        """Applies the thread-safety policy to a user callable."""
        if not self.thread_safe:
            return fn
        return wrap_with_lock(fn, self._lock)

    def forward_diff(self, f: ScalarFunction) -> Vector:
        """Returns the forward-difference gradient of a scalar function."""
        return forward_diff(self.x, self._wrap(f), backend=self.backend, n_workers=self.n_workers)

    def central_diff(self, f: ScalarFunction) -> Vector:
        """Returns the central-difference gradient of a scalar function."""
        return central_diff(self.x, self._wrap(f), backend=self.backend, n_workers=self.n_workers)

    def forward_jacobian(self, fs: VectorFunction) -> Matrix:
        """Returns the forward-difference Jacobian of a vector function."""
        return forward_jacobian(self.x, self._wrap(fs), backend=self.backend, n_workers=self.n_workers)

    def central_jacobian(self, fs: VectorFunction) -> Matrix:
        """Returns the central-difference Jacobian of a vector function."""
        return central_jacobian(self.x, self._wrap(fs), backend=self.backend, n_workers=self.n_workers)

    def forward_jacobian_vec_prod(self, fs: VectorFunction, p: Any) -> Vector:
        """Returns the forward-difference Jacobian-vector product ``J(x) @ p``."""
        return forward_jacobian_vec_prod(self.x, self._wrap(fs), p, backend=self.backend)

    def central_jacobian_vec_prod(self, fs: VectorFunction, p: Any) -> Vector:
        """Returns the central-difference Jacobian-vector product ``J(x) @ p``."""
        return central_jacobian_vec_prod(self.x, self._wrap(fs), p, backend=self.backend)

    def forward_jacobian_pert(
        self,
        fs: VectorFunction,
        pert: PerturbationVectors,
        *,
        validate: bool = False,
    ) -> Matrix:
        """Returns the grouped forward-difference Jacobian of a vector function."""
        return forward_jacobian_pert(
            self.x,
            self._wrap(fs),
            pert,
            validate=validate,
            backend=self.backend,
            n_workers=self.n_workers,
        )

    def central_jacobian_pert(
        self,
        fs: VectorFunction,
        pert: PerturbationVectors,
        *,
        validate: bool = False,
    ) -> Matrix:
        """Returns the grouped central-difference Jacobian of a vector function."""
        return central_jacobian_pert(
            self.x,
            self._wrap(fs),
            pert,
            validate=validate,
            backend=self.backend,
            n_workers=self.n_workers,
        )

    def forward_hessian(self, g: VectorFunction) -> Matrix:
        """Returns the Hessian as the forward-difference Jacobian of the gradient ``g``."""
        return forward_hessian(self.x, self._wrap(g), backend=self.backend, n_workers=self.n_workers)

    def central_hessian(self, g: VectorFunction) -> Matrix:
        """Returns the Hessian as the central-difference Jacobian of the gradient ``g``."""
        return central_hessian(self.x, self._wrap(g), backend=self.backend, n_workers=self.n_workers)

    def forward_hessian_vec_prod(self, g: VectorFunction, p: Any) -> Vector:
        """Returns the forward-difference Hessian-vector product ``H(x) @ p``."""
        return forward_hessian_vec_prod(self.x, self._wrap(g), p, backend=self.backend)

    def central_hessian_vec_prod(self, g: VectorFunction, p: Any) -> Vector:
        """Returns the central-difference Hessian-vector product ``H(x) @ p``."""
        return central_hessian_vec_prod(self.x, self._wrap(g), p, backend=self.backend)

    def forward_hessian_nograd(self, f: ScalarFunction) -> Matrix:
        """Returns the Hessian of a scalar function without a gradient callable."""
        return forward_hessian_nograd(
            self.x, self._wrap(f), backend=self.backend, n_workers=self.n_workers
        )

    def forward_hessian_nograd_sparse(
        self,
        f: ScalarFunction,
        indices: IndexPairs,
    ) -> Matrix:
        """Returns the listed Hessian entries (and their mirrors) of a scalar function."""
        return forward_hessian_nograd_sparse(
            self.x, self._wrap(f), indices, backend=self.backend, n_workers=self.n_workers
        )

    def restore_symmetry(self, mat: Any) -> Matrix:
        """Symmetrizes a square matrix of this kit's backend in place."""
        return restore_symmetry(mat, self.backend)
