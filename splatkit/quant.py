"""Decoding of bit-packed splat attributes found in compressed PLY files."""

from __future__ import annotations

import math

_U32_MAX = 0xFFFFFFFF


def _check_u32(value: int) -> int:
    if not 0 <= value <= _U32_MAX:
        raise ValueError(f"packed value {value} does not fit in 32 bits")
    return value


def unpack_unorm(packed: int, bits: int) -> float:
    """Map an unsigned ``bits``-wide normalized integer to a float in [0, 1]."""
    if bits < 1:
        raise ValueError("bit width must be at least 1")
    max_value = (1 << bits) - 1
    return packed / max_value


def decode_vec_11_10_11(value: int) -> tuple[float, float, float]:
    """Decode three unorm components packed as 11, 10 and 11 bits."""
    _check_u32(value)
    first = (value >> 21) & 0x7FF
    second = (value >> 11) & 0x3FF
    third = value & 0x7FF
    return (
        unpack_unorm(first, 11),
        unpack_unorm(second, 10),
        unpack_unorm(third, 11),
    )


def decode_vec_8_8_8_8(value: int) -> tuple[float, float, float, float]:
    """Decode four 8-bit unorm components, most significant byte first."""
    _check_u32(value)
    return tuple(
        unpack_unorm((value >> shift) & 0xFF, 8) for shift in (24, 16, 8, 0)
    )


def decode_quat(value: int) -> tuple[float, float, float, float]:
    """Decode a smallest-three packed quaternion.

    The top two bits give the index (in w, x, y, z order) of the component
    that was dropped; the remaining three are 10-bit values. The result is
    returned in (x, y, z, w) order. When the stored components are too large
    for a unit quaternion the reconstructed component is NaN.
    """
    _check_u32(value)
    largest = (value >> 30) & 0x3
    norm = 0.5 * math.sqrt(2.0)
    stored = [
        (unpack_unorm((value >> shift) & 0x3FF, 10) - 0.5) / norm
        for shift in (20, 10, 0)
    ]

    remainder = 1.0 - sum(v * v for v in stored)
    dropped = math.sqrt(remainder) if remainder >= 0.0 else math.nan

    others = iter(stored)
    w, x, y, z = (dropped if i == largest else next(others) for i in range(4))
    return (x, y, z, w)