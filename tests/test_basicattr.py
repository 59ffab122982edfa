import numpy as np
import pytest

from traceflow.basicattr import steps

nan = np.nan


def assert_same(a, b):
    assert np.array_equal(np.asarray(a), np.asarray(b), equal_nan=True)


@pytest.mark.parametrize("mode, expected", [
    ("linear", [100., 120., 90.]),
    ("square", [0., 100., 25.]),
    ("power", [0., 1000., -125.]),
    ("abs", [0., 10., 5.]),
])
def test_math(mode, expected):
    x = np.array([0., 10., -5.])
    assert_same(steps.math(x, mode=mode, factor=2.0, shift=100.0, exponent=3.0),
                expected)


def test_math_fractional_power_of_negative():
    with np.errstate(invalid='ignore'):
        y = steps.math(np.array([4., -4.]), mode="power", exponent=0.5)
    assert y[0] == 2.0
    assert np.isnan(y[1])


def test_clip():
    x = np.array([-1., 0.5, 3.])
    assert_same(steps.clip(x, low=0.0, high=1.0, clip_high=True), [0., 0.5, 1.])
    assert_same(steps.clip(x, low=0.0, high=1.0, clip_high=False), [0., 0.5, 3.])
    with pytest.raises(ValueError):
        steps.clip(x, low=2.0, high=1.0, clip_high=True)
    # the upper limit is ignored when not clipping high
    assert_same(steps.clip(x, low=2.0, high=1.0, clip_high=False), [2., 2., 3.])


@pytest.mark.parametrize("op, expected", [
    ("add", [5., nan, nan, 1.]),
    ("subtract", [-3., nan, nan, 1.]),
    ("multiply", [4., nan, nan, 0.]),
    ("ratio", [0.25, nan, nan, nan]),
    ("coalesce", [1., 2., nan, 1.]),
])
def test_combine(op, expected):
    a = np.array([1., nan, nan, 1.])
    b = np.array([2., 1., nan, 0.])
    with np.errstate(divide='ignore', invalid='ignore'):
        assert_same(steps.combine(a, b, op=op, weight=2.0), expected)


def test_replace_undefined():
    assert_same(steps.replace_undefined(np.array([nan, 1., nan]), value=-9.0),
                [-9., 1., -9.])


def test_quantize():
    x = np.array([-0.3, 0.1, 0.3, 0.74, 0.76, 1.5, nan])
    y = steps.quantize(x, levels=3, low=0.0, high=1.0)
    assert_same(y, [0., 0., 0.5, 0.5, 1., 1., nan])
    assert (3, 0.0, 1.0) in steps._LEVEL_CACHE
    with pytest.raises(ValueError):
        steps.quantize(x, levels=3, low=1.0, high=1.0)


def test_quantize_level_cache_is_bounded():
    steps._LEVEL_CACHE.clear()
    x = np.array([0.0, 0.5, 1.0])
    for levels in range(2, 2 + 2*steps._LEVEL_CACHE_SIZE):
        steps.quantize(x, levels=levels, low=0.0, high=1.0)
        assert len(steps._LEVEL_CACHE) <= steps._LEVEL_CACHE_SIZE
    assert_same(steps.quantize(x, levels=3, low=0.0, high=1.0), [0., 0.5, 1.])


def test_family_declarations(registry):
    math = registry.transform("basic.math")
    assert math.parallel_safe
    assert math.kernel is steps.math
    assert math.kernel_id == "traceflow.basicattr.steps.math"
    assert registry.transform("basic.replace_undefined").undefined == "kernel"
    assert not registry.transform("basic.quantize").parallel_safe
    levels = registry.new_descriptor("basic.quantize").get_param("levels")
    assert levels.datatype == "int"
    assert levels.limits == (2, 65536)
