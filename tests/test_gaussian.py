import math

import pytest

from splatkit.gaussian import (
    ParsedGaussian,
    channel_to_sh,
    inverse_sigmoid,
    rgb_to_sh,
)
from splatkit.ply import ScalarType
from splatkit.quant import decode_quat, decode_vec_8_8_8_8, decode_vec_11_10_11

PLAIN_KEYS = [
    "x", "y", "z", "scale_0", "scale_1", "scale_2", "opacity",
    "rot_0", "rot_1", "rot_2", "rot_3", "f_dc_0", "f_dc_1", "f_dc_2",
]


@pytest.mark.parametrize("key", PLAIN_KEYS)
def test_float_round_trip(key):
    g = ParsedGaussian()
    g.set_property(key, 1.75, "float")
    assert g.get_float(key) == 1.75


def test_rotation_scalar_first_in_file():
    g = ParsedGaussian()
    for i, v in enumerate([1.0, 2.0, 3.0, 4.0]):
        g.set_property(f"rot_{i}", v, "double")
    assert g.rotation == [2.0, 3.0, 4.0, 1.0]


def test_position_and_scale_slots():
    g = ParsedGaussian()
    g.set_property("y", -3.5, "float")
    g.set_property("scale_2", 0.25, "float")
    assert g.mean[1] == -3.5
    assert g.log_scale[2] == 0.25


def test_uchar_and_ushort_normalization():
    g = ParsedGaussian()
    g.set_property("opacity", 127, ScalarType.UCHAR)
    assert g.opacity == pytest.approx(0.5)
    g.set_property("x", 65534, "ushort")
    assert g.mean[0] == pytest.approx(1.0)


def test_unsupported_kind_ignored():
    g = ParsedGaussian()
    g.set_property("x", 3, "int")
    assert g.mean == ParsedGaussian().mean


@pytest.mark.parametrize("key,index", [("red", 0), ("g", 1), ("blue", 2), ("r", 0)])
def test_color_channels_become_sh(key, index):
    g = ParsedGaussian()
    g.set_property(key, 0.8, "float")
    assert g.sh_dc[index] == pytest.approx(channel_to_sh(0.8))


def test_f_rest_grows_list():
    g = ParsedGaussian()
    g.set_property("f_rest_5", 2.5, "float")
    assert len(g.sh_coeffs_rest) == 6
    assert g.sh_coeffs_rest[5] == 2.5
    assert all(v == 0.0 for v in g.sh_coeffs_rest[:5])
    assert g.get_float("f_rest_5") == 2.5
    assert g.get_float("f_rest_6") is None


def test_invalid_f_rest_index_ignored():
    g = ParsedGaussian()
    g.set_property("f_rest_abc", 1.0, "float")
    assert g.sh_coeffs_rest == []
    assert g.get_float("f_rest_abc") is None


def test_get_float_unknown_key():
    assert ParsedGaussian().get_float("nonsense") is None


def test_is_finite():
    g = ParsedGaussian()
    assert g.is_finite()
    g.set_property("f_rest_0", math.nan, "float")
    assert not g.is_finite()
    g2 = ParsedGaussian()
    g2.set_property("opacity", math.inf, "double")
    assert not g2.is_finite()


def test_packed_values_decode():
    g = ParsedGaussian()
    g.set_packed_property("packed_position", 0x12345678, "uint")
    g.set_packed_property("packed_scale", 0x87654321, ScalarType.UINT)
    g.set_packed_property("packed_rotation", 0x40080200, "uint")
    g.set_packed_property("packed_color", 0xFF8000C0, "uint")
    assert g.mean == list(decode_vec_11_10_11(0x12345678))
    assert g.log_scale == list(decode_vec_11_10_11(0x87654321))
    assert g.rotation == list(decode_quat(0x40080200))
    color = decode_vec_8_8_8_8(0xFF8000C0)
    assert g.sh_dc == list(color[:3])
    assert g.opacity == color[3]


def test_packed_requires_uint():
    g = ParsedGaussian()
    g.set_packed_property("packed_position", 0x12345678, "int")
    assert g.mean == ParsedGaussian().mean


def test_sh_helpers():
    assert channel_to_sh(0.5) == 0.0
    assert rgb_to_sh((0.1, 0.5, 0.9)) == (channel_to_sh(0.1), 0.0, channel_to_sh(0.9))


def test_inverse_sigmoid():
    assert inverse_sigmoid(0.5) == 0.0
    for x in (-3.0, 0.2, 4.0):
        assert inverse_sigmoid(1.0 / (1.0 + math.exp(-x))) == pytest.approx(x)
    assert inverse_sigmoid(1.0) == math.inf
    assert inverse_sigmoid(0.0) == -math.inf
    assert math.isnan(inverse_sigmoid(1.5))