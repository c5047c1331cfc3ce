# splatkit

A library for working with 3D Gaussian splats: reading and writing splat PLY
files (plain, SuperSplat chunk-quantized and delta-encoded 4D variants),
describing multi-view scenes of images and cameras, feeding shuffled training
batches, and a few numeric helpers.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

- `splatkit.ply` – PLY headers and element records in ASCII and binary
  little/big endian encodings: `read_header`, `read_element`, `write_header`,
  `write_element`, with the `PlyHeader`, `ElementDef`, `PropertyDef`,
  `ScalarType` and `Encoding` types. Malformed or truncated data raises
  `PlyError`.
- `splatkit.gaussian` – `ParsedGaussian`, one vertex record as read from a
  PLY (plain or bit-packed properties), plus `channel_to_sh`, `rgb_to_sh` and
  `inverse_sigmoid`.
- `splatkit.quant` – decoders for the packed integer layouts of compressed
  PLYs: `unpack_unorm`, `decode_vec_11_10_11`, `decode_vec_8_8_8_8`,
  `decode_quat`.
- `splatkit.splats` – `Splats`, holding means, rotations (w, x, y, z), log
  scales, SH coefficients and raw (pre-sigmoid) opacities as float32 numpy
  arrays. `Splats.from_raw` fills in defaults for missing attributes;
  `with_normed_rotations` returns a copy with unit quaternions.
- `splatkit.splat_import` – `load_splat_from_ply(stream, subsample_points)`
  reads a binary stream and yields `SplatMessage` objects as parsing
  progresses. Each holds a `Splats` value and `ParseMetadata` (up axis taken
  from a `Vertical axis:` comment, total splat count, frame count, current
  frame). `detect_format` tells the three `PlyFormat` kinds apart; problems
  raise `SplatImportError`.
- `splatkit.splat_export` – `splat_to_ply(splats)` returns the bytes of a
  binary little-endian PLY; splats with non-finite values are left out.
- `splatkit.scene` – `Camera`, `BoundingBox`, `LoadImage` (reads only the
  image header until `load()` is called, applies an optional mask as alpha,
  and downscales to `max_resolution`), `SceneView`, `Scene` (bounds, nearest
  view to a transform, extent estimate), `view_to_sample_image` (alpha
  premultiplication) and `sample_to_array`.
- `splatkit.dataset` – `Dataset` of a training scene and an optional
  evaluation scene, with `estimate_up` to guess the world up axis from the
  camera layout.
- `splatkit.scene_loader` – `SceneLoader` loads shuffled views on background
  threads and hands out `SceneBatch` values through `next_batch()`; use it as
  a context manager or call `close()`. Decoded images are kept in an
  `ImageCache` up to a fixed budget.
- `splatkit.config` – `ModelConfig` and `LoadDatasetConfig`; `add_arguments`
  adds `--sh-degree`, `--max-frames`, `--max-resolution`,
  `--eval-split-every`, `--subsample-frames` and `--subsample-points` to an
  `argparse` parser, and `configs_from_args` builds both configs from the
  parsed namespace.
- `splatkit.prefix_sum` – blocked inclusive prefix sum over 32-bit integers
  with wrap-around.
- `splatkit.kernel` – workgroup count helpers (`calc_cube_count`,
  `dispatch_size`), `KernelId`/`calc_kernel_id`, and `create_meta_binding`
  to pack bytes into little-endian 32-bit words.
- `splatkit.eigen` – closed-form eigenvectors of symmetric 3x3 matrices
  (`solve_cubic`, `find_eigenvector`, `compute_sorted_eigenvectors`).

## Example

```python
from splatkit.splat_import import load_splat_from_ply
from splatkit.splat_export import splat_to_ply

with open("scene.ply", "rb") as stream:
    last = None
    for message in load_splat_from_ply(stream, None):
        last = message
        print(message.meta.total_splats, message.splats.num_splats())

with open("roundtrip.ply", "wb") as out:
    out.write(splat_to_ply(last.splats))
```

## What it does not do

splatkit is a library only. It has no command-line program, no viewer or
other user interface, and no renderer or training loop: splats are held as
numpy arrays and nothing is drawn or optimised. It does not read COLMAP or
NeRF-style transform files into datasets; `Dataset` and `Scene` are built
from `SceneView` values you construct yourself. `splatkit.kernel` only
computes dispatch sizes and identifiers; it does not compile or run any GPU
code.