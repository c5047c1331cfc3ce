"""Cameras, lazily loaded images and multi-view scenes."""

from __future__ import annotations

import io
import math
import struct
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Optional, Sequence

import numpy as np
from PIL import Image

_ALPHA_MODES = frozenset({"RGBA", "LA", "PA", "RGBa", "La"})
_INITIAL_PROBE = 16387


class ViewType(Enum):
    TRAIN = "train"
    EVAL = "eval"
    TEST = "test"


@dataclass(eq=False)
class BoundingBox:
    """Axis-aligned box given by its centre and half extent."""

    center: np.ndarray
    extent: np.ndarray

    def __post_init__(self) -> None:
        self.center = np.asarray(self.center, dtype=np.float64).reshape(3)
        self.extent = np.asarray(self.extent, dtype=np.float64).reshape(3)

    @classmethod
    def from_min_max(cls, minimum: Sequence[float], maximum: Sequence[float]) -> BoundingBox:
        low = np.asarray(minimum, dtype=np.float64)
        high = np.asarray(maximum, dtype=np.float64)
        return cls(center=(low + high) / 2.0, extent=(high - low) / 2.0)

    @property
    def min(self) -> np.ndarray:
        return self.center - self.extent

    @property
    def max(self) -> np.ndarray:
        return self.center + self.extent


def _quat_matrix(q: np.ndarray) -> np.ndarray:
    x, y, z, w = q
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
            [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
            [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
        ]
    )


@dataclass(eq=False)
class Camera:
    """A pinhole camera; ``rotation`` is an (x, y, z, w) unit quaternion."""

    position: np.ndarray
    rotation: np.ndarray
    fov_x: float
    fov_y: float
    center_uv: tuple[float, float] = (0.5, 0.5)

    def __post_init__(self) -> None:
        self.position = np.asarray(self.position, dtype=np.float64).reshape(3)
        self.rotation = np.asarray(self.rotation, dtype=np.float64).reshape(4)
        self.center_uv = tuple(float(v) for v in self.center_uv)

    def _rotation_matrix(self) -> np.ndarray:
        return _quat_matrix(self.rotation)

    def local_to_world(self) -> np.ndarray:
        """4x4 affine transform from camera space to world space."""
        matrix = np.eye(4)
        matrix[:3, :3] = self._rotation_matrix()
        matrix[:3, 3] = self.position
        return matrix


def get_image_data(stream: BinaryIO) -> tuple[tuple[int, int], str]:
    """Read just enough of ``stream`` to learn an image's size and colour mode."""
    buf = bytearray()
    target = _INITIAL_PROBE
    while True:
        chunk = stream.read(target - len(buf))
        if not chunk:
            raise EOFError("Reached end of file while trying to decode image format")
        buf += chunk
        try:
            with Image.open(io.BytesIO(bytes(buf))) as img:
                return (img.width, img.height), img.mode
        except (OSError, ValueError, SyntaxError, EOFError, struct.error):
            pass
        if len(buf) >= target:
            target *= 2


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _fit_within(width: int, height: int, max_resolution: int) -> tuple[int, int]:
    if width <= max_resolution and height <= max_resolution:
        return width, height
    ratio = min(max_resolution / width, max_resolution / height)
    return (
        max(_round_half_up(width * ratio), 1),
        max(_round_half_up(height * ratio), 1),
    )


def _read_image(path: Path) -> Image.Image:
    with Image.open(path) as img:
        img.load()
        return img.copy()


@dataclass(frozen=True)
class LoadImage:
    """An image on disk whose header has been read but whose pixels are loaded on demand."""

    path: Path
    mask_path: Optional[Path]
    color: str
    size: tuple[int, int]
    max_resolution: int

    @classmethod
    def open(
        cls,
        path: str | Path,
        mask_path: Optional[str | Path] = None,
        max_resolution: int = 1920,
    ) -> LoadImage:
        path = Path(path)
        with path.open("rb") as handle:
            size, mode = get_image_data(handle)
        return cls(
            path=path,
            mask_path=Path(mask_path) if mask_path is not None else None,
            color=mode,
            size=size,
            max_resolution=max_resolution,
        )

    def dimensions(self) -> tuple[int, int]:
        """Size of the image once limited to ``max_resolution``."""
        return _fit_within(self.size[0], self.size[1], self.max_resolution)

    def width(self) -> int:
        return self.dimensions()[0]

    def height(self) -> int:
        return self.dimensions()[1]

    def has_alpha(self) -> bool:
        return self.color in _ALPHA_MODES or self.is_masked()

    def is_masked(self) -> bool:
        return self.mask_path is not None

    def aspect_ratio(self) -> float:
        w, h = self.dimensions()
        return w / h

    def load(self) -> Image.Image:
        """Load the pixels, apply the mask as alpha and downscale if needed."""
        img = _read_image(self.path)
        if self.mask_path is not None:
            rgba = np.array(img.convert("RGBA"))
            mask = _read_image(self.mask_path)
            if mask.mode in _ALPHA_MODES:
                channel = np.array(mask.convert("RGBA"))[..., 3]
            else:
                channel = np.array(mask.convert("RGB"))[..., 0]
            alpha = rgba[..., 3].reshape(-1)
            source = channel.reshape(-1)
            count = min(alpha.size, source.size)
            alpha[:count] = source[:count]
            rgba[..., 3] = alpha.reshape(rgba.shape[:2])
            img = Image.fromarray(rgba)
        if img.width <= self.max_resolution and img.height <= self.max_resolution:
            return img
        size = _fit_within(img.width, img.height, self.max_resolution)
        return img.resize(size, Image.Resampling.BILINEAR)


@dataclass(eq=False)
class SceneView:
    image: LoadImage
    camera: Camera


def _camera_distance_penalty(cam_local_to_world: np.ndarray, reference: np.ndarray) -> float:
    penalty = 0.0
    for off_x in (-1.0, 0.0, 1.0):
        for off_y in (-1.0, 0.0, 1.0):
            offset = np.array([off_x, off_y, 1.0])
            cam_pos = cam_local_to_world[:3, :3] @ offset + cam_local_to_world[:3, 3]
            ref_pos = reference[:3, :3] @ offset + reference[:3, 3]
            penalty += float(np.linalg.norm(cam_pos - ref_pos))
    return penalty


@dataclass(frozen=True, eq=False)
class Scene:
    """A set of views of one scene."""

    views: tuple[SceneView, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "views", tuple(self.views))

    def bounds(self) -> BoundingBox:
        """Extent of the camera positions."""
        return self.adjusted_bounds(0.0, 0.0)

    def adjusted_bounds(self, cam_near: float, cam_far: float) -> BoundingBox:
        """Extent of the cameras, including points on their near and far planes."""
        low = np.full(3, math.inf)
        high = np.full(3, -math.inf)
        for view in self.views:
            cam = view.camera
            forward = cam._rotation_matrix()[:, 2]
            for distance in (cam_near, cam_far):
                point = cam.position + forward * distance
                low = np.minimum(low, point)
                high = np.maximum(high, point)
        return BoundingBox.from_min_max(low, high)

    def get_nearest_view(self, reference: np.ndarray) -> Optional[int]:
        """Index of the view whose camera is closest to the ``reference`` transform."""
        if not self.views:
            return None
        reference = np.asarray(reference, dtype=np.float64)
        scores = [
            _camera_distance_penalty(view.camera.local_to_world(), reference)
            for view in self.views
        ]
        return min(
            range(len(scores)),
            key=lambda i: math.inf if math.isnan(scores[i]) else scores[i],
        )

    def estimate_extent(self) -> Optional[float]:
        """Rough scene size from the camera spread; None with fewer than five views."""
        if len(self.views) < 5:
            return None
        smallest = sorted((self.bounds().extent * 2.0).tolist())
        return math.hypot(smallest[0], smallest[1])


def view_to_sample_image(image: Image.Image, alpha_is_mask: bool) -> Image.Image:
    """Premultiply alpha unless it is a mask; images without alpha pass through."""
    if image.mode in _ALPHA_MODES and not alpha_is_mask:
        rgba = np.array(image.convert("RGBA"), dtype=np.uint16)
        alpha = rgba[..., 3:4]
        rgba[..., :3] = (rgba[..., :3] * alpha + 127) // 255
        return Image.fromarray(rgba.astype(np.uint8))
    return image


def sample_to_array(sample: Image.Image) -> np.ndarray:
    """Float32 array of shape (h, w, 3 or 4) with values in [0, 1]."""
    mode = "RGBA" if sample.mode in _ALPHA_MODES else "RGB"
    return np.asarray(sample.convert(mode), dtype=np.float32) / 255.0