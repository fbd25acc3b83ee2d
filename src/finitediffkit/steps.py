"""Step-size policy shared by every differencing routine.

``EPS_F64`` would ideally be machine epsilon; differencing with it directly
showed cancellation noise in ``f(x + h) - f(x)``, so it is scaled by four.
All routines perturb a coordinate by ``STEP = sqrt(EPS_F64)``, the balance
point between truncation and rounding error of first-order differences.
``STEP`` equals ``2**-25`` exactly.
"""

from __future__ import annotations

import math

import numpy as np

__all__ = [
    "EPS_F64",
    "STEP",
]

EPS_F64: float = 4.0 * float(np.finfo(np.float64).eps)
STEP: float = math.sqrt(EPS_F64)
