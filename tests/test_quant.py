import math

import pytest

from splatkit.quant import (
    decode_quat,
    decode_vec_8_8_8_8,
    decode_vec_11_10_11,
    unpack_unorm,
)


@pytest.mark.parametrize("bits", [1, 8, 10, 11, 16])
def test_unpack_unorm_endpoints(bits):
    assert unpack_unorm(0, bits) == 0.0
    assert unpack_unorm((1 << bits) - 1, bits) == 1.0


def test_unpack_unorm_monotonic():
    values = [unpack_unorm(v, 10) for v in range(1024)]
    assert values == sorted(values)
    assert all(0.0 <= v <= 1.0 for v in values)


def test_unpack_unorm_rejects_zero_bits():
    with pytest.raises(ValueError):
        unpack_unorm(0, 0)


def test_decode_11_10_11_extremes():
    assert decode_vec_11_10_11(0) == (0.0, 0.0, 0.0)
    assert decode_vec_11_10_11(0xFFFFFFFF) == (1.0, 1.0, 1.0)


def test_decode_11_10_11_field_layout():
    assert decode_vec_11_10_11(0x7FF << 21) == (1.0, 0.0, 0.0)
    assert decode_vec_11_10_11(0x3FF << 11) == (0.0, 1.0, 0.0)
    assert decode_vec_11_10_11(0x7FF) == (0.0, 0.0, 1.0)


@pytest.mark.parametrize("vec", [(0.1, 0.5, 0.9), (0.25, 0.75, 0.333), (0.0, 1.0, 0.5)])
def test_decode_11_10_11_round_trip(vec):
    x, y, z = vec
    packed = (round(x * 2047) << 21) | (round(y * 1023) << 11) | round(z * 2047)
    decoded = decode_vec_11_10_11(packed)
    assert decoded[0] == pytest.approx(x, abs=1 / 2047)
    assert decoded[1] == pytest.approx(y, abs=1 / 1023)
    assert decoded[2] == pytest.approx(z, abs=1 / 2047)


def test_decode_8888_byte_order():
    assert decode_vec_8_8_8_8(0xFF000000) == (1.0, 0.0, 0.0, 0.0)
    assert decode_vec_8_8_8_8(0x00FF0000) == (0.0, 1.0, 0.0, 0.0)
    assert decode_vec_8_8_8_8(0x0000FF00) == (0.0, 0.0, 1.0, 0.0)
    assert decode_vec_8_8_8_8(0x000000FF) == (0.0, 0.0, 0.0, 1.0)


@pytest.mark.parametrize("bad", [-1, 2**32])
def test_out_of_range_values_rejected(bad):
    with pytest.raises(ValueError):
        decode_vec_11_10_11(bad)
    with pytest.raises(ValueError):
        decode_vec_8_8_8_8(bad)
    with pytest.raises(ValueError):
        decode_quat(bad)


def _pack_quat(largest, a, b, c):
    return (largest << 30) | (a << 20) | (b << 10) | c


@pytest.mark.parametrize("largest, position", [(0, 3), (1, 0), (2, 1), (3, 2)])
def test_decode_quat_dropped_component_position(largest, position):
    quat = decode_quat(_pack_quat(largest, 512, 512, 512))
    assert quat[position] == pytest.approx(1.0, abs=1e-2)
    others = [v for i, v in enumerate(quat) if i != position]
    assert all(abs(v) < 1e-2 for v in others)


@pytest.mark.parametrize(
    "largest, a, b, c",
    [(0, 100, 600, 700), (1, 300, 512, 800), (2, 700, 400, 450), (3, 512, 900, 200)],
)
def test_decode_quat_unit_norm(largest, a, b, c):
    quat = decode_quat(_pack_quat(largest, a, b, c))
    assert math.sqrt(sum(v * v for v in quat)) == pytest.approx(1.0, abs=1e-9)


def test_decode_quat_invalid_gives_nan():
    quat = decode_quat(_pack_quat(0, 1023, 1023, 1023))
    assert [math.isnan(v) for v in quat] == [False, False, False, True]