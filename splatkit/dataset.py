"""Training and evaluation scenes together."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .eigen import compute_sorted_eigenvectors
from .scene import Scene, SceneView


@dataclass(frozen=True, eq=False)
class Dataset:
    train: Scene
    eval: Optional[Scene] = None

    @classmethod
    def empty(cls) -> Dataset:
        return cls(train=Scene([]), eval=None)

    @classmethod
    def from_views(
        cls, train_views: Sequence[SceneView], eval_views: Sequence[SceneView]
    ) -> Dataset:
        """Dataset from view lists; no eval scene when ``eval_views`` is empty."""
        eval_views = list(eval_views)
        return cls(
            train=Scene(list(train_views)),
            eval=Scene(eval_views) if eval_views else None,
        )

    def estimate_up(self) -> np.ndarray:
        """Estimate the world up axis from the layout of all cameras."""
        views = list(self.train.views)
        if self.eval is not None:
            views.extend(self.eval.views)
        if not views:
            raise ValueError("cannot estimate an up axis without any views")

        c2ws = [view.camera.local_to_world() for view in views]
        positions = np.array([view.camera.position for view in views], dtype=np.float64)
        mean_t = positions.mean(axis=0)
        centered = positions - mean_t
        cov = centered.T @ centered

        rot = np.stack(compute_sorted_eigenvectors(cov))
        if np.linalg.det(rot) < 0.0:
            rot = np.diag([1.0, 1.0, -1.0]) @ rot

        transform = np.eye(4)
        transform[:3, :3] = rot
        transform[:3, 3] = rot @ -mean_t

        y_axis_z = sum(float((transform @ c2w)[2, 1]) for c2w in c2ws)
        # Flip so that the cameras' y axes point the same way on average.
        if y_axis_z < 0.0:
            transform = np.diag([1.0, -1.0, -1.0, 1.0]) @ transform

        return np.array([-transform[2, 0], -transform[2, 1], transform[2, 2]])