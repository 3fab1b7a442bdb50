import numpy as np
import pytest

from polyhue.color_processing.color_space import (
    delta_e,
    hex_to_rgb,
    pairwise_delta_e,
    rgb_array_to_lab,
    rgb_to_hex,
    rgb_to_hsl,
    rgb_to_lab,
    rgb_to_xyz,
)


def test_white_and_black_lab():
    np.testing.assert_allclose(rgb_to_lab(255, 255, 255), [100.0, 0.0, 0.0], atol=0.01)
    np.testing.assert_allclose(rgb_to_lab(0, 0, 0), [0.0, 0.0, 0.0], atol=1e-9)


def test_red_matches_reference_values():
    np.testing.assert_allclose(rgb_to_xyz(255, 0, 0), [41.24564, 21.26729, 1.93339], atol=1e-4)
    np.testing.assert_allclose(rgb_to_lab(255, 0, 0), [53.24, 80.09, 67.20], atol=0.05)


def test_array_conversion_matches_scalar_conversion():
    rgb = np.array([[255, 0, 0], [12, 200, 99], [0, 0, 0]])
    lab = rgb_array_to_lab(rgb)
    assert lab.shape == (3, 3)
    for row, expected in zip(rgb, lab):
        np.testing.assert_allclose(rgb_to_lab(*row), expected)


def test_delta_e_identity_and_symmetry():
    a = rgb_to_lab(200, 30, 90)
    b = rgb_to_lab(10, 220, 40)
    assert delta_e(a, a) == 0
    assert delta_e(a, b) == delta_e(b, a)
    assert delta_e(a, b) > 0


def test_pairwise_delta_e_is_symmetric_with_zero_diagonal():
    lab = rgb_array_to_lab(np.array([[255, 0, 0], [0, 255, 0], [0, 0, 255]]))
    distances = pairwise_delta_e(lab)
    np.testing.assert_array_equal(np.diag(distances), 0)
    np.testing.assert_allclose(distances, distances.T)


@pytest.mark.parametrize(
    "value, expected",
    [("#FF0000", (255, 0, 0)), ("00ff7f", (0, 255, 127)), ("#12345", None), ("nope", None), (None, None)],
)
def test_hex_to_rgb(value, expected):
    assert hex_to_rgb(value) == expected


def test_rgb_to_hex_is_upper_case_and_rounds():
    assert rgb_to_hex(255, 0, 0) == "#FF0000"
    assert rgb_to_hex(9.6, 10.2, 171) == "#0A0AAB"


def test_rgb_to_hsl():
    assert rgb_to_hsl(255, 0, 0) == (0, 100, 50)
    assert rgb_to_hsl(0, 0, 255) == (240, 100, 50)
    assert rgb_to_hsl(128, 128, 128) == (0, 0, 50)
