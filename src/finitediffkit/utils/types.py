"""Shared typing aliases for FiniteDiffKit."""

from __future__ import annotations

from typing import Any, Callable, Sequence, TypeAlias

import numpy as np
from numpy.typing import NDArray

Vector: TypeAlias = list[float] | NDArray[np.float64]
Matrix: TypeAlias = list[list[float]] | NDArray[np.float64]

ScalarFunction: TypeAlias = Callable[[Any], float]
VectorFunction: TypeAlias = Callable[[Any], Any]

IndexPairs: TypeAlias = Sequence[tuple[int, int]]
