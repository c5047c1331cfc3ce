"""Loading splats from plain, delta-compressed and chunk-quantized PLY files."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Optional

import numpy as np

from .gaussian import ParsedGaussian, inverse_sigmoid, rgb_to_sh
from .ply import ElementDef, Encoding, PlyError, PlyHeader, ScalarType, read_element, read_header
from .splats import Splats

Vec3 = tuple[float, float, float]


class SplatImportError(Exception):
    """The PLY data could not be read or is not a supported splat format."""


class PlyFormat(Enum):
    PLY = "ply"
    BRUSH_4D_COMPRESSED = "brush_4d_compressed"
    SUPER_SPLAT_COMPRESSED = "super_splat_compressed"


@dataclass
class ParseMetadata:
    up_axis: Optional[Vec3]
    total_splats: int
    frame_count: int
    current_frame: int


@dataclass
class SplatMessage:
    meta: ParseMetadata
    splats: Splats


_UP_PREFIX = "vertical axis: "
_UP_AXES = {"x": (1.0, 0.0, 0.0), "y": (0.0, -1.0, 0.0), "z": (0.0, 0.0, -1.0)}


def interleave_coeffs(sh_dc: Sequence[float], sh_rest: Sequence[float]) -> list[float]:
    """Turn channel-major SH values into coefficient-major order, DC first."""
    channels = 3
    per_channel = len(sh_rest) // channels
    result = [float(v) for v in sh_dc[:3]]
    result.extend(
        sh_rest[j * per_channel + i] for i in range(per_channel) for j in range(channels)
    )
    return result


def parse_up_axis(comments: Sequence[str]) -> Optional[Vec3]:
    """Up axis from the last recognised ``Vertical axis:`` comment, if any."""
    found = None
    for comment in comments:
        lowered = comment.lower()
        if lowered.startswith(_UP_PREFIX):
            axis = _UP_AXES.get(lowered[len(_UP_PREFIX):])
            if axis is not None:
                found = axis
    return found


def detect_format(header: PlyHeader) -> PlyFormat:
    """Decide which kind of splat PLY a header describes."""
    names = [element.name for element in header.elements]
    if "vertex" not in names:
        raise SplatImportError("invalid ply format: no vertex element")
    if names[0] == "chunk":
        return PlyFormat.SUPER_SPLAT_COMPRESSED
    if any(name.startswith("delta_vertex_") for name in names):
        return PlyFormat.BRUSH_4D_COMPRESSED
    return PlyFormat.PLY


def _read_gaussian(
    stream: BinaryIO, element: ElementDef, encoding: Encoding, packed: bool = False
) -> ParsedGaussian:
    try:
        record = read_element(stream, element, encoding)
    except (PlyError, OSError) as exc:
        raise SplatImportError(f"failed to read {element.name!r} record: {exc}") from exc
    gaussian = ParsedGaussian()
    setter = gaussian.set_packed_property if packed else gaussian.set_property
    for prop in element.properties:
        if prop.count_type is None:
            setter(prop.name, record[prop.name], prop.data_type)
    return gaussian


@dataclass
class _MinMax:
    low: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    high: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])

    def dequant(self, raw: Sequence[float]) -> list[float]:
        return [lo + r * (hi - lo) for r, lo, hi in zip(raw, self.low, self.high)]


@dataclass
class _QuantMeta:
    mean: _MinMax = field(default_factory=_MinMax)
    scale: _MinMax = field(default_factory=_MinMax)
    color: _MinMax = field(default_factory=_MinMax)


def _quant_slots() -> dict[str, tuple[str, str, int]]:
    slots = {}
    for bound, attr in (("min", "low"), ("max", "high")):
        for axis, suffix in enumerate("xyz"):
            slots[f"{bound}_{suffix}"] = ("mean", attr, axis)
            slots[f"{bound}_scale_{suffix}"] = ("scale", attr, axis)
        for axis, suffix in enumerate("rgb"):
            slots[f"{bound}_{suffix}"] = ("color", attr, axis)
    return slots


_QUANT_SLOTS = _quant_slots()


def _read_quant_meta(stream: BinaryIO, element: ElementDef, encoding: Encoding) -> _QuantMeta:
    try:
        record = read_element(stream, element, encoding)
    except (PlyError, OSError) as exc:
        raise SplatImportError(f"failed to read {element.name!r} record: {exc}") from exc
    meta = _QuantMeta()
    for prop in element.properties:
        slot = _QUANT_SLOTS.get(prop.name)
        if slot is None or prop.count_type is not None or prop.data_type != ScalarType.FLOAT:
            continue
        group, attr, axis = slot
        getattr(getattr(meta, group), attr)[axis] = float(record[prop.name])
    return meta


def _message(
    splats: Splats,
    total: int,
    up_axis: Optional[Vec3],
    frame_count: int = 0,
    current_frame: int = 0,
) -> SplatMessage:
    return SplatMessage(ParseMetadata(up_axis, total, frame_count, current_frame), splats)


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)


def _skipped(index: int, subsample: Optional[int]) -> bool:
    return subsample is not None and index % subsample != 0


def _parse_ply(
    stream: BinaryIO, subsample: Optional[int], header: PlyHeader, up_axis: Optional[Vec3]
) -> Iterator[SplatMessage]:
    vertex = header.elements[0] if header.elements else None
    if vertex is None or vertex.name != "vertex":
        raise SplatImportError("invalid ply format: vertex must be the first element")

    names = {p.name for p in vertex.properties}
    means: list = []
    log_scales = [] if "scale_0" in names else None
    rotations = [] if "rot_0" in names else None
    sh_coeffs = [] if names & {"f_dc_0", "red", "r"} else None
    opacity = [] if "opacity" in names else None

    update_every = _ceil_div(vertex.count, 8)
    last_update = 0
    for i in range(vertex.count):
        splat = _read_gaussian(stream, vertex, header.encoding)
        if _skipped(i, subsample) or not splat.is_finite():
            continue

        means.append(splat.mean)
        if log_scales is not None:
            log_scales.append(splat.log_scale)
        if rotations is not None:
            rotations.append(splat.rotation)
        if opacity is not None:
            opacity.append(splat.opacity)
        if sh_coeffs is not None:
            sh_coeffs.extend(interleave_coeffs(splat.sh_dc, splat.sh_coeffs_rest))

        if i - last_update >= update_every or i == vertex.count - 1:
            splats = Splats.from_raw(means, rotations, log_scales, sh_coeffs, opacity)
            yield _message(splats, vertex.count, up_axis)
            last_update = i


def _parse_compressed_ply(
    stream: BinaryIO, subsample: Optional[int], header: PlyHeader, up_axis: Optional[Vec3]
) -> Iterator[SplatMessage]:
    elements = header.elements
    if not elements or elements[0].name != "chunk":
        raise SplatImportError("invalid ply format: chunk element must come first")
    chunk = elements[0]
    quant_metas = [_read_quant_meta(stream, chunk, header.encoding) for _ in range(chunk.count)]

    if len(elements) < 2 or elements[1].name != "vertex":
        raise SplatImportError("invalid ply format: vertex must follow chunk")
    vertex = elements[1]

    means: list = []
    log_scales: list = []
    rotations: list = []
    sh_coeffs: list[float] = []
    opacity: list[float] = []
    valid = [True] * vertex.count

    update_every = _ceil_div(vertex.count, 20)
    last_update = 0
    for i in range(vertex.count):
        if i // 256 >= len(quant_metas):
            raise SplatImportError("invalid ply format: vertex has no quantization chunk")
        quant = quant_metas[i // 256]
        splat = _read_gaussian(stream, vertex, header.encoding, packed=True)

        if _skipped(i, subsample) or not splat.is_finite():
            valid[i] = False
            continue

        means.append(quant.mean.dequant(splat.mean))
        log_scales.append(quant.scale.dequant(splat.log_scale))
        rotations.append(splat.rotation)
        # Stored opacity is post-activation.
        opacity.append(inverse_sigmoid(splat.opacity))
        sh_coeffs.extend(rgb_to_sh(tuple(quant.color.dequant(splat.sh_dc))))

        if i - last_update >= update_every or i == vertex.count - 1:
            splats = Splats.from_raw(means, rotations, log_scales, sh_coeffs, opacity)
            yield _message(splats, vertex.count, up_axis)
            last_update = i

    if len(elements) < 3:
        return
    sh_vals = elements[2]
    if sh_vals.name != "sh":
        raise SplatImportError("invalid ply format: third element must be sh")

    total_coeffs: list[float] = []
    splat_index = 0
    for i in range(sh_vals.count):
        splat = _read_gaussian(stream, sh_vals, header.encoding)
        if i >= len(valid):
            raise SplatImportError("invalid ply format: more sh records than vertices")
        if not valid[i]:
            continue
        rest = [8.0 * (c - 0.5) for c in splat.sh_coeffs_rest]
        dc = sh_coeffs[splat_index * 3 : splat_index * 3 + 3]
        total_coeffs.extend(interleave_coeffs(dc, rest))
        splat_index += 1

    try:
        splats = Splats.from_raw(means, rotations, log_scales, total_coeffs, opacity)
    except ValueError as exc:
        raise SplatImportError(f"invalid ply format: {exc}") from exc
    yield _message(splats, vertex.count, up_axis)


def _delta_rows(rows: list, count: int, width: int) -> np.ndarray:
    try:
        return np.asarray(rows, dtype=np.float32).reshape(count, width)
    except ValueError as exc:
        raise SplatImportError("delta frame does not match the splat count") from exc


def _lerp(raw: Sequence[float], low: Sequence[float], high: Sequence[float]) -> list[float]:
    return [r * (hi - lo) + lo for r, lo, hi in zip(raw, low, high)]


def _parse_delta_ply(
    stream: BinaryIO, subsample: Optional[int], header: PlyHeader, up_axis: Optional[Vec3]
) -> Iterator[SplatMessage]:
    frame_count = sum(1 for e in header.elements if e.name.startswith("delta_vertex_"))
    final_splat: Optional[Splats] = None
    frame = 0

    meta_min = {"mean": [0.0] * 3, "rotation": [0.0] * 4, "scale": [0.0] * 3}
    meta_max = {"mean": [1.0] * 3, "rotation": [1.0] * 4, "scale": [1.0] * 3}

    for element in header.elements:
        names = {p.name for p in element.properties}
        means: list = []
        log_scales = [] if "scale_0" in names else None
        rotations = [] if "rot_0" in names else None
        sh_coeffs = [] if names & {"f_dc_0", "red"} else None
        opacity = [] if "opacity" in names else None

        if element.name == "vertex":
            update_every = _ceil_div(element.count, 20)
            for i in range(element.count):
                if i % update_every == update_every - 1:
                    splats = Splats.from_raw(means, rotations, log_scales, sh_coeffs, opacity)
                    yield _message(splats, element.count, up_axis, frame_count, frame)

                splat = _read_gaussian(stream, element, header.encoding)
                if _skipped(i, subsample):
                    continue
                means.append(splat.mean)
                if log_scales is not None:
                    log_scales.append(splat.log_scale)
                if rotations is not None:
                    rotations.append(splat.rotation)
                if opacity is not None:
                    opacity.append(splat.opacity)
                if sh_coeffs is not None:
                    sh_coeffs.extend(interleave_coeffs(splat.sh_dc, splat.sh_coeffs_rest))

            final_splat = Splats.from_raw(means, rotations, log_scales, sh_coeffs, opacity)
            yield _message(final_splat, element.count, up_axis, frame_count, frame)

        elif element.name.startswith(("meta_delta_min_", "meta_delta_max_")):
            splat = _read_gaussian(stream, element, header.encoding)
            target = meta_min if element.name.startswith("meta_delta_min_") else meta_max
            target["mean"] = list(splat.mean)
            target["rotation"] = list(splat.rotation)
            target["scale"] = list(splat.log_scale)

        elif element.name.startswith("delta_vertex_"):
            if final_splat is None:
                raise SplatImportError("invalid ply format: delta frame before vertex data")
            for _ in range(element.count):
                enc = _read_gaussian(stream, element, header.encoding)
                means.append(_lerp(enc.mean, meta_min["mean"], meta_max["mean"]))
                if rotations is not None:
                    rotations.append(
                        _lerp(enc.rotation, meta_min["rotation"], meta_max["rotation"])
                    )
                if log_scales is not None:
                    log_scales.append(_lerp(enc.log_scale, meta_min["scale"], meta_max["scale"]))

            n = final_splat.num_splats()
            new_means = _delta_rows(means, n, 3) + final_splat.means
            if rotations is not None:
                new_rotation = _delta_rows(rotations, n, 4)[:, [3, 0, 1, 2]] + final_splat.rotation
            else:
                new_rotation = final_splat.rotation
            if log_scales is not None:
                new_scales = _delta_rows(log_scales, n, 3) + final_splat.log_scales
            else:
                new_scales = final_splat.log_scales

            animated = Splats(
                means=new_means,
                rotation=new_rotation,
                log_scales=new_scales,
                sh_coeffs=final_splat.sh_coeffs,
                raw_opacity=final_splat.raw_opacity,
            )
            yield _message(animated, element.count, up_axis, frame_count, frame)
            frame += 1


_PARSERS = {
    PlyFormat.PLY: _parse_ply,
    PlyFormat.BRUSH_4D_COMPRESSED: _parse_delta_ply,
    PlyFormat.SUPER_SPLAT_COMPRESSED: _parse_compressed_ply,
}


def _load(stream: BinaryIO, subsample_points: Optional[int]) -> Iterator[SplatMessage]:
    try:
        header = read_header(stream)
    except (PlyError, OSError) as exc:
        raise SplatImportError(f"failed to read ply header: {exc}") from exc
    up_axis = parse_up_axis(header.comments)
    parser = _PARSERS[detect_format(header)]
    yield from parser(stream, subsample_points, header, up_axis)


def load_splat_from_ply(
    stream: BinaryIO, subsample_points: Optional[int] = None
) -> Iterator[SplatMessage]:
    """Stream progressively more complete splats read from a binary PLY stream."""
    if subsample_points is not None and subsample_points < 1:
        raise ValueError("subsample_points must be at least 1")
    return _load(stream, subsample_points)