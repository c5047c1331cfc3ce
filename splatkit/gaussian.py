"""A single gaussian as read from (or written to) a PLY vertex record."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional

from .quant import decode_quat, decode_vec_8_8_8_8, decode_vec_11_10_11

SH_C0 = 0.28209479177387814
_F_REST = "f_rest_"
_U32_MAX = 0xFFFFFFFF


def channel_to_sh(value: float) -> float:
    """Convert one colour channel in [0, 1] to its zeroth-order SH coefficient."""
    return (value - 0.5) / SH_C0


def rgb_to_sh(rgb: tuple[float, float, float]) -> tuple[float, float, float]:
    """Convert an RGB colour to zeroth-order SH coefficients."""
    return tuple(channel_to_sh(c) for c in rgb)


def inverse_sigmoid(x: float) -> float:
    """Logit of ``x``; infinite at 0 and 1, NaN outside [0, 1]."""
    if x == 1.0:
        return math.inf
    ratio = x / (1.0 - x)
    if math.isnan(ratio) or ratio < 0.0:
        return math.nan
    if ratio == 0.0:
        return -math.inf
    return math.log(ratio)


def _kind_name(kind: Any) -> str:
    return getattr(kind, "value", kind)


_CONVERTERS = {
    "double": float,
    "float": float,
    "uchar": lambda v: v / 254.0,
    "ushort": lambda v: v / 65534.0,
}

# Property name -> (attribute, component index). Rotations are stored x, y, z, w,
# while the file stores the scalar part first.
_SLOTS = {
    "x": ("mean", 0),
    "y": ("mean", 1),
    "z": ("mean", 2),
    "scale_0": ("log_scale", 0),
    "scale_1": ("log_scale", 1),
    "scale_2": ("log_scale", 2),
    "rot_0": ("rotation", 3),
    "rot_1": ("rotation", 0),
    "rot_2": ("rotation", 1),
    "rot_3": ("rotation", 2),
    "f_dc_0": ("sh_dc", 0),
    "f_dc_1": ("sh_dc", 1),
    "f_dc_2": ("sh_dc", 2),
}

_COLOR_CHANNELS = {"red": 0, "r": 0, "green": 1, "g": 1, "blue": 2, "b": 2}


def _rest_index(key: str) -> Optional[int]:
    suffix = key[len(_F_REST):]
    if suffix.startswith("+"):
        suffix = suffix[1:]
    if not (suffix.isascii() and suffix.isdigit()):
        return None
    index = int(suffix)
    return index if index <= _U32_MAX else None


@dataclass
class ParsedGaussian:
    """Raw per-splat values straight out of a PLY file.

    Values may still need activation or dequantization. ``rotation`` is kept
    in (x, y, z, w) order; ``sh_coeffs_rest`` is laid out per channel, then
    per coefficient.
    """

    mean: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    log_scale: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    opacity: float = 0.0
    rotation: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0, 1.0])
    sh_dc: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    sh_coeffs_rest: list[float] = field(default_factory=list)

    def is_finite(self) -> bool:
        """True when every stored value is finite."""
        values = [
            *self.mean,
            *self.log_scale,
            self.opacity,
            *self.rotation,
            *self.sh_dc,
            *self.sh_coeffs_rest,
        ]
        return all(math.isfinite(v) for v in values)

    def set_property(self, key: str, value: Any, kind: Any) -> None:
        """Store a plain (unquantized) property; unsupported types are ignored."""
        convert = _CONVERTERS.get(_kind_name(kind))
        if convert is None:
            return
        number = convert(value)

        if key in _SLOTS:
            attr, index = _SLOTS[key]
            getattr(self, attr)[index] = number
        elif key == "opacity":
            self.opacity = number
        elif key in _COLOR_CHANNELS:
            self.sh_dc[_COLOR_CHANNELS[key]] = channel_to_sh(number)
        elif key.startswith(_F_REST):
            index = _rest_index(key)
            if index is None:
                return
            if index >= len(self.sh_coeffs_rest):
                self.sh_coeffs_rest.extend([0.0] * (index + 1 - len(self.sh_coeffs_rest)))
            self.sh_coeffs_rest[index] = number

    def set_packed_property(self, key: str, value: Any, kind: Any) -> None:
        """Store a bit-packed property of a compressed PLY; only uint values count."""
        if _kind_name(kind) != "uint":
            return
        if key == "packed_position":
            self.mean = list(decode_vec_11_10_11(value))
        elif key == "packed_rotation":
            self.rotation = list(decode_quat(value))
        elif key == "packed_scale":
            self.log_scale = list(decode_vec_11_10_11(value))
        elif key == "packed_color":
            r, g, b, a = decode_vec_8_8_8_8(value)
            self.sh_dc = [r, g, b]
            self.opacity = a

    def get_float(self, key: str) -> Optional[float]:
        """Value of a plain float property, or None if it is not known."""
        if key in _SLOTS:
            attr, index = _SLOTS[key]
            return getattr(self, attr)[index]
        if key == "opacity":
            return self.opacity
        if key.startswith(_F_REST):
            index = _rest_index(key)
            if index is not None and index < len(self.sh_coeffs_rest):
                return self.sh_coeffs_rest[index]
        return None