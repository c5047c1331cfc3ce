import io
import math

import numpy as np
import pytest
from PIL import Image

from splatkit.scene import (
    BoundingBox,
    Camera,
    LoadImage,
    Scene,
    SceneView,
    get_image_data,
    sample_to_array,
    view_to_sample_image,
)

IDENTITY = (0.0, 0.0, 0.0, 1.0)


def _camera(position, rotation=IDENTITY):
    return Camera(position=position, rotation=rotation, fov_x=1.0, fov_y=1.0)


def _save(path, size=(8, 4), mode="RGB", color=(10, 20, 30)):
    Image.new(mode, size, color).save(path)
    return path


def _scene(tmp_path, positions):
    img = LoadImage.open(_save(tmp_path / "img.png"))
    return Scene([SceneView(img, _camera(p)) for p in positions])


def test_local_to_world_identity():
    matrix = _camera((1.0, 2.0, 3.0)).local_to_world()
    np.testing.assert_allclose(matrix[:3, 3], [1.0, 2.0, 3.0])
    np.testing.assert_allclose(matrix[:3, :3], np.eye(3))
    np.testing.assert_allclose(matrix[3], [0.0, 0.0, 0.0, 1.0])


def test_local_to_world_rotation_is_orthonormal():
    s = math.sin(math.pi / 8)
    c = math.cos(math.pi / 8)
    rot = _camera((0, 0, 0), (0.0, s, 0.0, c)).local_to_world()[:3, :3]
    np.testing.assert_allclose(rot @ rot.T, np.eye(3), atol=1e-12)
    assert np.linalg.det(rot) == pytest.approx(1.0)


def test_bounding_box_round_trip():
    box = BoundingBox.from_min_max((-1.0, 0.0, 2.0), (3.0, 4.0, 8.0))
    np.testing.assert_allclose(box.min, [-1.0, 0.0, 2.0])
    np.testing.assert_allclose(box.max, [3.0, 4.0, 8.0])


def test_bounds_cover_positions(tmp_path):
    positions = [(0.0, 1.0, -2.0), (3.0, -1.0, 5.0), (1.0, 0.5, 0.0)]
    bounds = _scene(tmp_path, positions).bounds()
    np.testing.assert_allclose(bounds.min, np.min(positions, axis=0))
    np.testing.assert_allclose(bounds.max, np.max(positions, axis=0))


def test_adjusted_bounds_include_planes(tmp_path):
    positions = [(0.0, 0.0, 0.0), (2.0, 1.0, 0.0)]
    scene = _scene(tmp_path, positions)
    bounds = scene.adjusted_bounds(1.0, 2.0)
    for p in positions:
        for d in (1.0, 2.0):
            point = np.array(p) + np.array([0.0, 0.0, d])
            assert np.all(bounds.min <= point + 1e-12)
            assert np.all(point <= bounds.max + 1e-12)
    zero = scene.adjusted_bounds(0.0, 0.0)
    np.testing.assert_allclose(zero.center, scene.bounds().center)


def test_nearest_view(tmp_path):
    scene = _scene(tmp_path, [(0, 0, 0), (5, 0, 0), (10, 0, 0)])
    reference = _camera((4.9, 0.0, 0.0)).local_to_world()
    assert scene.get_nearest_view(reference) == 1
    assert Scene().get_nearest_view(reference) is None


def test_estimate_extent(tmp_path):
    assert _scene(tmp_path, [(i, 0, 0) for i in range(4)]).estimate_extent() is None
    collinear = _scene(tmp_path, [(i, 0, 0) for i in range(5)])
    assert collinear.estimate_extent() == pytest.approx(0.0)
    spread = _scene(tmp_path, [(i, 2 * i, 3 * i) for i in range(5)])
    assert spread.estimate_extent() > 0.0


def test_load_image_dimensions_capped(tmp_path):
    path = _save(tmp_path / "wide.png", size=(400, 200))
    img = LoadImage.open(path, max_resolution=100)
    assert img.size == (400, 200)
    assert max(img.dimensions()) == 100
    assert img.width() / img.height() == pytest.approx(400 / 200)
    assert img.aspect_ratio() == pytest.approx(2.0)
    uncapped = LoadImage.open(path, max_resolution=1000)
    assert uncapped.dimensions() == (400, 200)


def test_load_resizes_to_dimensions(tmp_path):
    img = LoadImage.open(_save(tmp_path / "big.png", size=(400, 200)), max_resolution=100)
    loaded = img.load()
    assert loaded.size == img.dimensions()


def test_alpha_and_mask(tmp_path):
    rgb = LoadImage.open(_save(tmp_path / "rgb.png"))
    assert not rgb.has_alpha()
    assert not rgb.is_masked()
    rgba = LoadImage.open(_save(tmp_path / "rgba.png", mode="RGBA", color=(1, 2, 3, 4)))
    assert rgba.has_alpha()
    mask = _save(tmp_path / "mask.png", mode="L", color=77)
    masked = LoadImage.open(tmp_path / "rgb.png", mask_path=mask)
    assert masked.is_masked()
    assert masked.has_alpha()
    loaded = np.array(masked.load())
    assert loaded.shape[2] == 4
    assert np.all(loaded[..., 3] == 77)
    assert np.all(loaded[..., :3] == [10, 20, 30])


def test_get_image_data_from_stream():
    buf = io.BytesIO()
    Image.new("RGBA", (13, 7)).save(buf, format="PNG")
    buf.seek(0)
    assert get_image_data(buf) == ((13, 7), "RGBA")


def test_get_image_data_rejects_garbage():
    with pytest.raises(EOFError):
        get_image_data(io.BytesIO(b"not an image at all"))


def test_premultiply_invariants():
    image = Image.new("RGBA", (2, 1))
    image.putpixel((0, 0), (200, 100, 50, 255))
    image.putpixel((1, 0), (200, 100, 50, 0))
    result = np.array(view_to_sample_image(image, alpha_is_mask=False))
    assert tuple(result[0, 0]) == (200, 100, 50, 255)
    assert tuple(result[0, 1]) == (0, 0, 0, 0)
    assert view_to_sample_image(image, alpha_is_mask=True) is image
    rgb = Image.new("RGB", (2, 2))
    assert view_to_sample_image(rgb, alpha_is_mask=False) is rgb


def test_sample_to_array():
    rgb = sample_to_array(Image.new("RGB", (5, 3), (255, 255, 255)))
    assert rgb.shape == (3, 5, 3)
    assert rgb.dtype == np.float32
    assert np.all(rgb == 1.0)
    rgba = sample_to_array(Image.new("RGBA", (5, 3), (0, 0, 0, 255)))
    assert rgba.shape == (3, 5, 4)
    assert np.all(rgba[..., 3] == 1.0)
    assert np.all(rgba[..., :3] == 0.0)