"""Differencing routines.

Provides forward/central gradients, Jacobians, Hessians and their vector
products, and grouped (sparse) Jacobians.
"""

from .gradient import central_diff, forward_diff
from .hessian import (
    central_hessian,
    central_hessian_vec_prod,
    forward_hessian,
    forward_hessian_nograd,
    forward_hessian_nograd_sparse,
    forward_hessian_vec_prod,
)
from .jacobian import (
    central_jacobian,
    central_jacobian_pert,
    central_jacobian_vec_prod,
    forward_jacobian,
    forward_jacobian_pert,
    forward_jacobian_vec_prod,
)

__all__ = [
    "forward_diff",
    "central_diff",
    "forward_jacobian",
    "central_jacobian",
    "forward_jacobian_vec_prod",
    "central_jacobian_vec_prod",
    "forward_jacobian_pert",
    "central_jacobian_pert",
    "forward_hessian",
    "central_hessian",
    "forward_hessian_vec_prod",
    "central_hessian_vec_prod",
    "forward_hessian_nograd",
    "forward_hessian_nograd_sparse",
]
