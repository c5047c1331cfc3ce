"""Background loading of shuffled training batches from a scene."""

from __future__ import annotations

import os
import queue
import random
import threading
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from .scene import Camera, Scene, sample_to_array, view_to_sample_image

MAX_CACHE_MB = 6 * 1024
_PREFETCH = 32
_POLL_SECONDS = 0.1


@dataclass(eq=False)
class SceneBatch:
    """An image as a float array in [0, 1] with its camera."""

    img_tensor: np.ndarray
    alpha_is_mask: bool
    camera: Camera

    def has_alpha(self) -> bool:
        return self.img_tensor.shape[2] == 4


def _size_bytes(data: Any) -> int:
    nbytes = getattr(data, "nbytes", None)
    if nbytes is not None:
        return int(nbytes)
    width, height = data.size
    return width * height * len(data.getbands())


class ImageCache:
    """Keeps decoded images up to a total budget in megabytes; never evicts."""

    def __init__(self, max_size: int, n_images: int) -> None:
        self._states: list[Optional[Any]] = [None] * n_images
        self.max_size = max_size
        self.size = 0

    def try_get(self, index: int) -> Optional[Any]:
        return self._states[index]

    def insert(self, index: int, data: Any) -> None:
        """Store ``data`` if it fits in the budget and the slot is still empty."""
        data_size_mb = _size_bytes(data) // (1024 * 1024)
        if self.size + data_size_mb < self.max_size and self._states[index] is None:
            self._states[index] = data
            self.size += data_size_mb


class SceneLoader:
    """Produces batches from randomly shuffled views on background threads."""

    def __init__(self, scene: Scene, seed: int, parallelism: Optional[int] = None) -> None:
        self._views = list(scene.views)
        if not self._views:
            raise ValueError("Need at least one view in dataset")
        if parallelism is None:
            parallelism = min(os.cpu_count() or 8, _PREFETCH)
        if parallelism < 1:
            raise ValueError("parallelism must be at least 1")

        self._queue: queue.Queue[SceneBatch] = queue.Queue(maxsize=_PREFETCH)
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._cache = ImageCache(MAX_CACHE_MB, len(self._views))
        self._error: Optional[BaseException] = None
        self._closed = False
        self._threads = [
            threading.Thread(target=self._work, args=(random.Random(seed + i),), daemon=True)
            for i in range(parallelism)
        ]
        for thread in self._threads:
            thread.start()

    def _make_batch(self, index: int) -> SceneBatch:
        view = self._views[index]
        masked = view.image.is_masked()
        with self._lock:
            sample = self._cache.try_get(index)
        if sample is None:
            sample = view_to_sample_image(view.image.load(), masked)
            with self._lock:
                self._cache.insert(index, sample)
        return SceneBatch(sample_to_array(sample), masked, view.camera)

    def _put(self, batch: SceneBatch) -> bool:
        while not self._stop.is_set():
            try:
                self._queue.put(batch, timeout=_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def _work(self, rng: random.Random) -> None:
        order: list[int] = []
        while not self._stop.is_set():
            if not order:
                order = list(range(len(self._views)))
                rng.shuffle(order)
            index = order.pop()
            try:
                batch = self._make_batch(index)
            except Exception as exc:
                with self._lock:
                    if self._error is None:
                        self._error = exc
                return
            if not self._put(batch):
                return

    def next_batch(self) -> SceneBatch:
        """Block until the next batch is ready; re-raise a loading failure."""
        if self._closed:
            raise RuntimeError("scene loader is closed")
        while True:
            try:
                return self._queue.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                with self._lock:
                    error = self._error
                if error is not None:
                    raise error

    def close(self) -> None:
        """Stop the worker threads."""
        self._closed = True
        self._stop.set()
        for thread in self._threads:
            thread.join()

    def __enter__(self) -> SceneLoader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()