import numpy as np
import pytest
from PIL import Image

from splatkit.scene import Camera, LoadImage, Scene, SceneView
from splatkit.scene_loader import ImageCache, SceneBatch, SceneLoader


def _views(tmp_path, count, mode="RGB", color=(255, 255, 255)):
    views = []
    for i in range(count):
        path = tmp_path / f"img_{i}.png"
        Image.new(mode, (6, 4), color).save(path)
        camera = Camera((float(i), 0.0, 0.0), (0.0, 0.0, 0.0, 1.0), 1.0, 1.0)
        views.append(SceneView(LoadImage.open(path), camera))
    return views


def test_scene_batch_has_alpha():
    cam = Camera((0, 0, 0), (0, 0, 0, 1), 1.0, 1.0)
    assert SceneBatch(np.zeros((2, 2, 4), np.float32), False, cam).has_alpha()
    assert not SceneBatch(np.zeros((2, 2, 3), np.float32), False, cam).has_alpha()


def test_image_cache_budget():
    cache = ImageCache(max_size=3, n_images=3)
    two_mb = np.zeros(2 * 1024 * 1024, dtype=np.uint8)
    cache.insert(0, two_mb)
    assert cache.try_get(0) is two_mb
    other = np.ones(2 * 1024 * 1024, dtype=np.uint8)
    cache.insert(1, other)
    assert cache.try_get(1) is None
    small = np.zeros(10, dtype=np.uint8)
    cache.insert(0, small)
    assert cache.try_get(0) is two_mb
    cache.insert(2, small)
    assert cache.try_get(2) is small


def test_empty_scene_rejected():
    with pytest.raises(ValueError):
        SceneLoader(Scene([]), seed=0)


def test_first_epoch_covers_all_views(tmp_path):
    views = _views(tmp_path, 3)
    with SceneLoader(Scene(views), seed=7, parallelism=1) as loader:
        batches = [loader.next_batch() for _ in range(3)]
    cameras = {id(b.camera) for b in batches}
    assert cameras == {id(v.camera) for v in views}
    for batch in batches:
        assert batch.img_tensor.shape == (4, 6, 3)
        assert np.all(batch.img_tensor == 1.0)
        assert not batch.alpha_is_mask


def test_alpha_images_premultiplied(tmp_path):
    views = _views(tmp_path, 1, mode="RGBA", color=(255, 255, 255, 0))
    with SceneLoader(Scene(views), seed=1, parallelism=2) as loader:
        batch = loader.next_batch()
    assert batch.has_alpha()
    assert np.all(batch.img_tensor == 0.0)


def test_load_failure_is_raised(tmp_path):
    views = _views(tmp_path, 1)
    views[0].image.path.unlink()
    loader = SceneLoader(Scene(views), seed=0, parallelism=1)
    try:
        with pytest.raises(FileNotFoundError):
            loader.next_batch()
    finally:
        loader.close()


def test_closed_loader_rejects_calls(tmp_path):
    loader = SceneLoader(Scene(_views(tmp_path, 1)), seed=0, parallelism=1)
    loader.close()
    with pytest.raises(RuntimeError):
        loader.next_batch()