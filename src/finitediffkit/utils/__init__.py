"""Utility functions for FiniteDiffKit package."""

from .perturb import evaluate_perturbed, perturbed
from .symmetry import restore_symmetry

__all__ = [
    "perturbed",
    "evaluate_perturbed",
    "restore_symmetry",
]
