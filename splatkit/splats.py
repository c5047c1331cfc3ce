"""In-memory collection of gaussian splats backed by numpy arrays."""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .gaussian import inverse_sigmoid

DEFAULT_LOG_SCALE = math.log(0.01)
DEFAULT_RAW_OPACITY = inverse_sigmoid(0.1)


def _rows(values: Sequence, width: int, name: str) -> np.ndarray:
    array = np.asarray(values, dtype=np.float32)
    if array.size % width:
        raise ValueError(f"{name} must hold groups of {width} values")
    return array.reshape(-1, width)


@dataclass
class Splats:
    """A set of splats.

    ``means`` and ``log_scales`` are (N, 3), ``rotation`` is (N, 4) in
    (w, x, y, z) order, ``sh_coeffs`` is (N, coeffs, 3) and ``raw_opacity``
    is (N,) holding pre-sigmoid values.
    """

    means: np.ndarray
    rotation: np.ndarray
    log_scales: np.ndarray
    sh_coeffs: np.ndarray
    raw_opacity: np.ndarray

    def __post_init__(self) -> None:
        self.means = np.array(self.means, dtype=np.float32)
        self.rotation = np.array(self.rotation, dtype=np.float32)
        self.log_scales = np.array(self.log_scales, dtype=np.float32)
        self.sh_coeffs = np.array(self.sh_coeffs, dtype=np.float32)
        self.raw_opacity = np.array(self.raw_opacity, dtype=np.float32)

        n = self.means.shape[0] if self.means.ndim == 2 else -1
        expected = {
            "means": (self.means, (n, 3)),
            "rotation": (self.rotation, (n, 4)),
            "log_scales": (self.log_scales, (n, 3)),
            "raw_opacity": (self.raw_opacity, (n,)),
        }
        for name, (array, shape) in expected.items():
            if array.shape != shape:
                raise ValueError(f"{name} has shape {array.shape}, expected {shape}")
        sh = self.sh_coeffs
        if sh.ndim != 3 or sh.shape[0] != n or sh.shape[2] != 3 or sh.shape[1] < 1:
            raise ValueError(f"sh_coeffs has shape {sh.shape}, expected ({n}, k, 3)")

    @classmethod
    def from_raw(
        cls,
        means: Sequence,
        rotations: Optional[Sequence] = None,
        log_scales: Optional[Sequence] = None,
        sh_coeffs: Optional[Sequence[float]] = None,
        raw_opacity: Optional[Sequence[float]] = None,
    ) -> Splats:
        """Build splats from per-splat values, filling in defaults for missing ones.

        ``rotations`` are (x, y, z, w) quaternions; ``sh_coeffs`` is a flat list
        holding, per splat, all channels of coefficient 0, then coefficient 1
        and so on.
        """
        mean_rows = _rows(means, 3, "means")
        n = mean_rows.shape[0]

        if rotations is None:
            rotation = np.tile(np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float32), (n, 1))
        else:
            rotation = _rows(rotations, 4, "rotations")[:, [3, 0, 1, 2]]

        if log_scales is None:
            scales = np.full((n, 3), DEFAULT_LOG_SCALE, dtype=np.float32)
        else:
            scales = _rows(log_scales, 3, "log_scales")

        if sh_coeffs is None:
            sh = np.zeros((n, 1, 3), dtype=np.float32)
        else:
            flat = np.asarray(sh_coeffs, dtype=np.float32).reshape(-1)
            if n == 0:
                if flat.size:
                    raise ValueError("sh_coeffs given for zero splats")
                sh = np.zeros((0, 1, 3), dtype=np.float32)
            else:
                if flat.size == 0 or flat.size % (3 * n):
                    raise ValueError("sh_coeffs length does not match the splat count")
                sh = flat.reshape(n, -1, 3)

        if raw_opacity is None:
            opacity = np.full(n, DEFAULT_RAW_OPACITY, dtype=np.float32)
        else:
            opacity = np.asarray(raw_opacity, dtype=np.float32).reshape(-1)

        return cls(
            means=mean_rows,
            rotation=rotation,
            log_scales=scales,
            sh_coeffs=sh,
            raw_opacity=opacity,
        )

    def num_splats(self) -> int:
        """Number of splats."""
        return int(self.means.shape[0])

    def sh_coeff_count(self) -> int:
        """Number of SH coefficients per colour channel."""
        return int(self.sh_coeffs.shape[1])

    def with_normed_rotations(self) -> Splats:
        """Copy with every non-zero rotation scaled to unit length."""
        norms = np.linalg.norm(self.rotation, axis=1, keepdims=True)
        safe = np.where(norms > 0, norms, 1.0)
        return dataclasses.replace(self, rotation=self.rotation / safe)