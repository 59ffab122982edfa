import pytest

from traceflow.dataflow.core import Descriptor, UpdateRule
from traceflow.dataflow.errors import (
    ConfigurationError, OutOfRangeError, TypeMismatchError,
    UnknownParameterError,
    )
from traceflow.dataflow.params import Parameter


def math_descriptor(registry):
    d = registry.new_descriptor("basic.math")
    d.bind_input("input", "seismic")
    return d


def test_new_descriptor_has_schema(registry):
    d = registry.new_descriptor("basic.math")
    assert list(d.params.keys()) == ["mode", "factor", "shift", "exponent"]
    assert [slot.label for slot in d.inputs] == ["input"]
    assert d.output_kind == "trace"
    assert d.get_value("mode") == "linear"
    assert d.get_value("factor") == 1.0


def test_update_rule_applied_at_construction(registry):
    d = registry.new_descriptor("basic.math")
    assert d.is_enabled("factor")
    assert d.is_enabled("shift")
    assert not d.is_enabled("exponent")

    d = registry.new_descriptor("basic.clip")
    assert d.is_enabled("high")


def test_set_value_out_of_range_retains_value(registry):
    d = math_descriptor(registry)
    with pytest.raises(OutOfRangeError):
        d.set_value("factor", 5000.0)
    assert d.get_value("factor") == 1.0
    with pytest.raises(TypeMismatchError):
        d.set_value("factor", "big")
    assert d.get_value("factor") == 1.0


def test_error_names_the_transform(registry):
    d = math_descriptor(registry)
    with pytest.raises(OutOfRangeError) as excinfo:
        d.set_value("factor", 5000.0)
    assert "basic.math" in str(excinfo.value)


def test_unknown_parameter(registry):
    d = math_descriptor(registry)
    with pytest.raises(UnknownParameterError):
        d.get_value("gain")
    with pytest.raises(UnknownParameterError):
        d.set_value("gain", 1.0)
    with pytest.raises(KeyError):
        d.is_enabled("gain")


def test_mode_change_toggles_enablement(registry):
    d = math_descriptor(registry)
    d.set_value("factor", 2.0)
    d.set_value("shift", 100.0)
    d.set_value("mode", "square")
    assert not d.is_enabled("factor")
    assert not d.is_enabled("shift")
    assert not d.is_enabled("exponent")
    # disabled parameters keep their values
    assert d.get_value("factor") == 2.0
    assert d.get_value("shift") == 100.0

    d.set_value("mode", "power")
    assert d.is_enabled("exponent")
    assert not d.is_enabled("factor")

    d.set_value("mode", "linear")
    assert d.is_enabled("factor")
    assert d.get_value("factor") == 2.0


def test_disabled_parameter_not_validated(registry):
    d = math_descriptor(registry)
    d.set_value("mode", "abs")
    d.set_value("factor", 5000.0)
    assert d.get_value("factor") == 5000.0
    assert d.valid
    # re-enabling exposes the bad value
    d.set_value("mode", "linear")
    assert not d.valid


def test_clip_high_toggles_high(registry):
    d = registry.new_descriptor("basic.clip")
    d.set_value("clip_high", False)
    assert not d.is_enabled("high")
    d.set_value("clip_high", True)
    assert d.is_enabled("high")


def test_unwatched_parameter_does_not_fire_rule():
    calls = []
    def rule(values):
        calls.append(dict(values))
        return {"b": values["a"] > 0}
    d = Descriptor("test")
    d.add_param(Parameter.from_spec("a", "float", 1.0))
    d.add_param(Parameter.from_spec("b", "float", 0.0))
    d.add_param(Parameter.from_spec("c", "float", 0.0))
    d.set_update_rule(UpdateRule(rule, watch=["a"]))
    assert len(calls) == 1

    d.set_value("c", 3.0)
    assert len(calls) == 1
    d.set_value("a", -1.0)
    assert len(calls) == 2
    assert not d.is_enabled("b")


def test_rule_not_fired_by_disabled_parameter():
    calls = []
    def rule(values):
        calls.append(1)
        return []
    d = Descriptor("test")
    d.add_param(Parameter.from_spec("a", "float", 1.0))
    d.set_update_rule(rule)
    d.set_param_enabled("a", False)
    d.set_value("a", 2.0)
    assert len(calls) == 1


def test_required_inputs_must_be_bound(registry):
    d = registry.new_descriptor("basic.combine")
    assert not d.valid
    assert any("input" in msg for msg in d.problems())
    d.bind_input("input", "seismic")
    # "other" is optional
    assert d.valid
    d.bind_input(1, "velocity")
    assert d.bindings == ["seismic", "velocity"]
    d.unbind_input("other")
    assert d.bindings == ["seismic", None]
    with pytest.raises(ConfigurationError):
        d.bind_input("missing", "seismic")


def test_duplicate_parameter_rejected():
    d = Descriptor("test")
    d.add_param(Parameter.from_spec("a", "float", 1.0))
    with pytest.raises(ConfigurationError):
        d.add_param(Parameter.from_spec("a", "int", 1))
    d.add_input("x")
    with pytest.raises(ConfigurationError):
        d.add_input("x")


def test_copy_is_independent(registry):
    d = math_descriptor(registry)
    e = d.copy()
    e.set_value("mode", "abs")
    e.bind_input("input", "other")
    assert d.get_value("mode") == "linear"
    assert d.is_enabled("factor")
    assert d.bindings == ["seismic"]
    assert e.update_rule is d.update_rule


def test_values_snapshot(registry):
    d = math_descriptor(registry)
    d.set_value("mode", "square")
    assert dict(d.values()) == {
        "mode": "square", "factor": 1.0, "shift": 0.0, "exponent": 2.0,
    }
