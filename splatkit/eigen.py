"""Eigen-decomposition of symmetric 3x3 matrices via the characteristic cubic."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np


def _as_matrix(matrix: Sequence[Sequence[float]] | np.ndarray) -> np.ndarray:
    m = np.array(matrix, dtype=np.float64)
    if m.shape != (3, 3):
        raise ValueError(f"expected a 3x3 matrix, got shape {m.shape}")
    return m


def solve_cubic(a: float, b: float, c: float, d: float) -> tuple[float, float, float]:
    """Real roots of a*x^3 + b*x^2 + c*x + d, sorted in descending order.

    Assumes three real roots, as for the characteristic polynomial of a
    symmetric matrix. Degenerate inputs yield NaN roots, which sort last.
    """
    a, b, c, d = (np.float64(v) for v in (a, b, c, d))
    with np.errstate(all="ignore"):
        p = (3.0 * a * c - b * b) / (3.0 * a * a)
        q = (2.0 * b * b * b - 9.0 * a * b * c + 27.0 * a * a * d) / (27.0 * a * a * a)
        phi = np.arccos(-q / (2.0 * np.sqrt(-(p * p * p) / 27.0)))
        radius = 2.0 * np.sqrt(-p / 3.0)
        shift = b / (3.0 * a)
        roots = [
            float(radius * np.cos((phi + k * 2.0 * np.pi) / 3.0) - shift)
            for k in range(3)
        ]
    return tuple(sorted(roots, key=lambda r: (math.isnan(r), -r)))


def find_eigenvector(
    matrix: Sequence[Sequence[float]] | np.ndarray, eigenvalue: float
) -> np.ndarray:
    """Unit eigenvector of ``matrix`` for ``eigenvalue``, with z fixed before normalising."""
    m = _as_matrix(matrix) - eigenvalue * np.eye(3)
    with np.errstate(all="ignore"):
        for i in range(2):
            pivot = i + int(np.argmax(np.abs(m[i:, i])))
            if pivot != i:
                m[[i, pivot]] = m[[pivot, i]]
            for k in range(i + 1, 3):
                factor = -m[k, i] / m[i, i]
                m[k, i] = 0.0
                m[k, i + 1 :] += factor * m[i, i + 1 :]

        x = np.array([0.0, 0.0, 1.0])
        if abs(m[1, 1]) > 1e-10:
            x[1] = -m[1, 2] / m[1, 1]
        if abs(m[0, 0]) > 1e-10:
            x[0] = -(m[0, 1] * x[1] + m[0, 2] * x[2]) / m[0, 0]
        return x / np.linalg.norm(x)


def compute_sorted_eigenvectors(
    matrix: Sequence[Sequence[float]] | np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Eigenvectors of a symmetric 3x3 matrix, ordered by descending eigenvalue."""
    m = _as_matrix(matrix)
    a = -1.0
    b = m[0, 0] + m[1, 1] + m[2, 2]
    c = (
        m[2, 1] * m[1, 2]
        + m[2, 0] * m[0, 2]
        + m[1, 0] * m[0, 1]
        - m[0, 0] * m[1, 1]
        - m[1, 1] * m[2, 2]
        - m[0, 0] * m[2, 2]
    )
    d = (
        m[0, 0] * m[1, 1] * m[2, 2]
        + m[1, 0] * m[2, 1] * m[0, 2]
        + m[2, 0] * m[0, 1] * m[1, 2]
        - m[0, 0] * m[2, 1] * m[1, 2]
        - m[1, 0] * m[0, 1] * m[2, 2]
        - m[2, 0] * m[1, 1] * m[0, 2]
    )
    eigenvalues = solve_cubic(a, b, c, d)
    return tuple(find_eigenvector(m, value) for value in eigenvalues)