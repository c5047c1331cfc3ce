"""Writing splats out as binary little-endian PLY files."""

from __future__ import annotations

import io

import numpy as np

from .gaussian import ParsedGaussian
from .ply import ElementDef, Encoding, PlyHeader, PropertyDef, ScalarType, write_element, write_header
from .splats import Splats

_BASE_PROPERTIES = [
    "x", "y", "z", "scale_0", "scale_1", "scale_2", "opacity",
    "rot_0", "rot_1", "rot_2", "rot_3", "f_dc_0", "f_dc_1", "f_dc_2",
]


def read_splat_data(splats: Splats) -> list[ParsedGaussian]:
    """Per-splat records in PLY layout; splats with non-finite values are left out."""
    # SH in PLY layout is per channel, then per coefficient.
    sh_per_channel = np.transpose(splats.sh_coeffs, (0, 2, 1)).tolist()
    rows = zip(
        splats.means.tolist(),
        splats.log_scales.tolist(),
        splats.rotation.tolist(),
        splats.raw_opacity.tolist(),
        sh_per_channel,
    )
    result = []
    for mean, log_scale, (w, x, y, z), opacity, (red, green, blue) in rows:
        gaussian = ParsedGaussian(
            mean=mean,
            log_scale=log_scale,
            opacity=opacity,
            rotation=[x, y, z, w],
            sh_dc=[red[0], green[0], blue[0]],
            sh_coeffs_rest=red[1:] + green[1:] + blue[1:],
        )
        if gaussian.is_finite():
            result.append(gaussian)
    return result


def splat_to_ply(splats: Splats) -> bytes:
    """Serialise splats, with normalised rotations, as a binary PLY file."""
    splats = splats.with_normed_rotations()
    data = read_splat_data(splats)

    names = _BASE_PROPERTIES + [
        f"f_rest_{i}" for i in range((splats.sh_coeff_count() - 1) * 3)
    ]
    vertex = ElementDef(
        "vertex", len(data), [PropertyDef(name, ScalarType.FLOAT) for name in names]
    )
    header = PlyHeader(
        encoding=Encoding.BINARY_LITTLE_ENDIAN,
        elements=[vertex],
        comments=["Generated by splatkit", "Vertical axis: y"],
    )

    buf = io.BytesIO()
    write_header(buf, header)
    for gaussian in data:
        write_element(
            buf, vertex, {name: gaussian.get_float(name) for name in names}, header.encoding
        )
    return buf.getvalue()