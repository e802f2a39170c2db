"""Small dense linear-algebra helpers for the closed-form regression"""

import numpy as np

from .config import ModelConfig
from .errors import SingularMatrixError


def transpose(a: np.ndarray) -> np.ndarray:
    return np.asarray(a, dtype=float).T.copy()


def mat_mul(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.asarray(a, dtype=float) @ np.asarray(b, dtype=float)


def mat_vec(a: np.ndarray, v: np.ndarray) -> np.ndarray:
    return np.asarray(a, dtype=float) @ np.asarray(v, dtype=float)


def invert_symmetric(m: np.ndarray, tolerance: float = ModelConfig.PIVOT_TOLERANCE) -> np.ndarray:
    """
    Inverse of a square matrix by Gauss-Jordan elimination with partial pivoting.

    Raises SingularMatrixError as soon as the best available pivot has an
    absolute value below `tolerance`.
    """
    a = np.array(m, dtype=float)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {a.shape}")

    n = a.shape[0]
    inverse = np.eye(n)

    for i in range(n):
        pivot = i + int(np.argmax(np.abs(a[i:, i])))
        if abs(a[pivot, i]) < tolerance:
            raise SingularMatrixError(i, float(a[pivot, i]))

        if pivot != i:
            a[[i, pivot]] = a[[pivot, i]]
            inverse[[i, pivot]] = inverse[[pivot, i]]

        scale = 1.0 / a[i, i]
        a[i] *= scale
        inverse[i] *= scale

        for r in range(n):
            if r == i:
                continue
            factor = a[r, i]
            if factor != 0.0:
                a[r] -= factor * a[i]
                inverse[r] -= factor * inverse[i]

    return inverse


def solve_normal_equations(x: np.ndarray, y: np.ndarray, ridge: float = 0.0,
                           tolerance: float = ModelConfig.PIVOT_TOLERANCE) -> np.ndarray:
    """Least-squares weights w = (XᵗX + ridge·I)⁻¹ Xᵗy"""
    xt = transpose(x)
    xtx = mat_mul(xt, x)
    if ridge:
        xtx = xtx + ridge * np.eye(xtx.shape[0])
    return mat_vec(invert_symmetric(xtx, tolerance), mat_vec(xt, y))
