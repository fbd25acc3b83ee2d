"""Provides all finitediffkit methods."""

from importlib.metadata import PackageNotFoundError, version

from finitediffkit.backends import (
    ContainerBackend,
    ListBackend,
    NumpyBackend,
    register_backend,
)
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
from finitediffkit.finite_diff_kit import FiniteDiffKit
from finitediffkit.perturbation import PerturbationVector, PerturbationVectors
from finitediffkit.steps import EPS_F64, STEP
from finitediffkit.utils.symmetry import restore_symmetry

try:
    __version__ = version("finitediffkit")
except PackageNotFoundError:
    pass

__all__ = [
    "FiniteDiffKit",
    "PerturbationVector",
    "PerturbationVectors",
    "ContainerBackend",
    "ListBackend",
    "NumpyBackend",
    "register_backend",
    "EPS_F64",
    "STEP",
    "restore_symmetry",
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
