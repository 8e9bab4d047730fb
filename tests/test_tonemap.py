import math

import numpy as np
import pytest

from hdrstack.model.image import NormalizationStats
from hdrstack.pipeline.tonemap import TonemapOptions, tonemap, tonemap_array, tonemap_value

CLAMP = TonemapOptions(normalize=False, dither=False, clamp_to_ldr=True)


def test_scenario_exposure_zero_clamps_above_one():
    values = np.array([[0.0, 1.0], [2.0, 4.0]], dtype=np.float32)
    out = tonemap_array(values, ev=0.0, gamma=1.0, opts=CLAMP)
    assert out.ravel().tolist() == [0, 255, 255, 255]


def test_scenario_negative_exposure_rounds_to_nearest():
    values = np.array([[0.0, 1.0], [2.0, 4.0]], dtype=np.float32)
    out = tonemap_array(values, ev=-2.0, gamma=1.0, opts=CLAMP)
    assert out.ravel().tolist() == [0, 64, 128, 255]


def test_scalar_matches_array():
    values = np.linspace(-1.0, 3.0, 37, dtype=np.float32).reshape(1, -1)
    opts = TonemapOptions(dither=True)
    out = tonemap_array(values, ev=0.5, gamma=2.2, opts=opts, origin=(10, 3))
    for i, v in enumerate(values[0]):
        assert tonemap(float(v), 0.5, 2.2, None, opts, x=10 + i, y=3) == out[0, i]


@pytest.mark.parametrize('dither', [False, True])
def test_exposure_is_monotonic(dither):
    opts = TonemapOptions(dither=dither)
    for sample in (1e-4, 0.01, 0.18, 0.7, 3.0, 250.0):
        previous = -1
        for ev in np.arange(-8.0, 8.0, 0.5):
            byte = tonemap(sample, float(ev), 2.2, None, opts, x=5, y=7)
            assert byte >= previous
            previous = byte


def test_normalize_maps_range_ends_exactly():
    stats = NormalizationStats(-3.0, 5.0)
    opts = TonemapOptions(normalize=True)
    assert tonemap(-3.0, 0.0, 2.2, stats, opts) == 0
    assert tonemap(5.0, 0.0, 2.2, stats, opts) == 255


def test_normalize_constant_range_is_zero():
    stats = NormalizationStats(2.0, 2.0)
    opts = TonemapOptions(normalize=True)
    for sample in (2.0, -10.0, 100.0):
        assert tonemap(sample, 3.0, 2.2, stats, opts) == 0


def test_normalize_without_stats_is_rejected():
    opts = TonemapOptions(normalize=True)
    with pytest.raises(ValueError):
        tonemap(1.0, 0.0, 2.2, None, opts)
    with pytest.raises(ValueError):
        tonemap_value(1.0, 0.0, 2.2, None, opts)
    with pytest.raises(ValueError):
        tonemap_array(np.ones((2, 2)), 0.0, 2.2, None, opts)


def test_non_finite_samples():
    assert tonemap(math.nan, 0.0, 2.2) == 0
    assert tonemap(math.inf, 0.0, 2.2) == 255
    assert tonemap(-math.inf, 0.0, 2.2) == 0
    unclamped = TonemapOptions(clamp_to_ldr=False, dither=True)
    assert tonemap(math.nan, 0.0, 2.2, None, unclamped) == 0
    assert tonemap(math.inf, 0.0, 2.2, None, unclamped) == 255


def test_signed_gamma_keeps_negative_values_without_clamp():
    opts = TonemapOptions(clamp_to_ldr=False)
    assert tonemap_value(-4.0, 0.0, 2.0, None, opts) == pytest.approx(-2.0)
    assert tonemap_value(4.0, 0.0, 2.0, None, opts) == pytest.approx(2.0)
    assert tonemap_value(-4.0, 0.0, 2.0, None, CLAMP) == 0.0


def test_dither_is_reproducible_and_small():
    values = np.full((16, 16), 0.3, dtype=np.float32)
    opts = TonemapOptions(dither=True)
    first = tonemap_array(values, 0.0, 1.0, opts=opts)
    second = tonemap_array(values, 0.0, 1.0, opts=opts)
    plain = tonemap_array(values, 0.0, 1.0, opts=CLAMP)
    np.testing.assert_array_equal(first, second)
    assert np.abs(first.astype(int) - plain.astype(int)).max() <= 1
    assert len(np.unique(first)) > 1


def test_dither_keeps_black_and_white():
    opts = TonemapOptions(dither=True)
    for x in range(50):
        assert tonemap(0.0, 0.0, 2.2, None, opts, x=x, y=x * 3) == 0
        assert tonemap(1.0, 0.0, 2.2, None, opts, x=x, y=x * 3) == 255


def test_tonemap_array_rejects_non_2d():
    with pytest.raises(ValueError):
        tonemap_array(np.zeros((2, 2, 3), dtype=np.float32), 0.0, 2.2)
