import numpy as np
import pytest

from traceflow.dataflow.errors import (
    ConfigurationError, OutOfRangeError, TypeMismatchError,
    )
from traceflow.dataflow.params import (
    Parameter, parse_datatype, parse_range, FLOAT_LIMIT, INT_LIMIT,
    )


def test_parse_datatype_float():
    assert parse_datatype("x", "float") == (
        "float", {"units": "", "range": [-FLOAT_LIMIT, FLOAT_LIMIT]})
    assert parse_datatype("x", "float:ms<0,>") == (
        "float", {"units": "ms", "range": [0.0, FLOAT_LIMIT]})
    assert parse_datatype("x", "float:<-1000,1000>")[1]["range"] == [-1000., 1000.]


def test_parse_datatype_int():
    assert parse_datatype("n", "int") == ("int", {"range": [-INT_LIMIT, INT_LIMIT]})
    assert parse_datatype("n", "int:<2,10>") == ("int", {"range": [2, 10]})
    with pytest.raises(TypeMismatchError):
        parse_datatype("n", "int:<0.5,10>")


def test_parse_datatype_opt():
    datatype, attr = parse_datatype("mode", "opt:linear|sq=Square")
    assert datatype == "opt"
    assert attr["choices"] == [["linear", "linear"], ["sq", "Square"]]
    assert parse_datatype("mode", "enum:a|b")[0] == "opt"
    with pytest.raises(TypeMismatchError):
        parse_datatype("mode", "opt:single")


def test_parse_datatype_errors():
    with pytest.raises(TypeMismatchError):
        parse_datatype("x", "complex")
    with pytest.raises(TypeMismatchError):
        parse_datatype("x", "bool:<0,1>")
    with pytest.raises(TypeMismatchError):
        parse_datatype("x", "float:<5,1>")


def test_parse_range():
    assert parse_range("") == (-np.inf, np.inf)
    assert parse_range("<,3>", limit=10) == (-10, 3.0)
    with pytest.raises(ValueError):
        parse_range("0,3")


def test_parameter_defaults():
    p = Parameter.from_spec("factor", "float:<-1000,1000>", 1.0)
    assert p.value == 1.0
    assert p.default == 1.0
    assert p.label == "Factor"
    assert p.limits == (-1000.0, 1000.0)
    assert p.choices is None
    assert p.enabled


def test_parameter_rejects_bad_default():
    with pytest.raises(OutOfRangeError):
        Parameter.from_spec("factor", "float:<-1,1>", 5.0)
    with pytest.raises(TypeMismatchError):
        Parameter("bad key", "float", 0.0)
    with pytest.raises(TypeMismatchError):
        Parameter("x", "complex", 0.0)


def test_set_retains_value_on_error():
    p = Parameter.from_spec("factor", "float:<-1000,1000>", 1.0)
    with pytest.raises(OutOfRangeError):
        p.set(5000.0)
    assert p.value == 1.0
    with pytest.raises(TypeMismatchError):
        p.set("large")
    assert p.value == 1.0
    p.set(-1000)
    assert p.value == -1000.0 and isinstance(p.value, float)


def test_limits_are_inclusive():
    p = Parameter.from_spec("n", "int:<2,10>", 2)
    p.set(10)
    assert p.value == 10
    with pytest.raises(OutOfRangeError):
        p.set(11)


@pytest.mark.parametrize("spec, value, expected", [
    ("int", 3.0, 3),
    ("int", np.int64(7), 7),
    ("float", np.float32(0.5), 0.5),
    ("str", b"abc", "abc"),
    ("bool", np.bool_(True), True),
])
def test_value_conversion(spec, value, expected):
    p = Parameter.from_spec("x", spec)
    p.set(value)
    assert p.value == expected
    assert type(p.value) is type(expected)


@pytest.mark.parametrize("spec, value", [
    ("int", 2.5),
    ("int", True),
    ("float", False),
    ("float", "1.0"),
    ("bool", 1),
    ("str", 3),
])
def test_type_mismatch(spec, value):
    p = Parameter.from_spec("x", spec)
    with pytest.raises(TypeMismatchError):
        p.set(value)


def test_nan_is_out_of_range():
    p = Parameter.from_spec("x", "float", 0.0)
    with pytest.raises(OutOfRangeError):
        p.set(float("nan"))


def test_opt_choices():
    p = Parameter.from_spec("mode", "opt:linear|square", "linear")
    assert p.choices == ["linear", "square"]
    p.set("square")
    with pytest.raises(OutOfRangeError):
        p.set("cube")
    assert p.value == "square"


def test_disabled_parameter_stores_unchecked():
    p = Parameter.from_spec("x", "float:<0,1>", 0.5)
    p.enabled = False
    p.set(7.0)
    assert p.value == 7.0
    assert not p.is_valid()


def test_errors_are_configuration_errors():
    assert issubclass(OutOfRangeError, ConfigurationError)
    assert issubclass(TypeMismatchError, TypeError)
    assert issubclass(ConfigurationError, ValueError)


def test_copy_is_independent():
    p = Parameter.from_spec("mode", "opt:a|b", "a")
    q = p.copy()
    q.set("b")
    q.typeattr["choices"].append(["c", "c"])
    assert p.value == "a"
    assert p.choices == ["a", "b"]
