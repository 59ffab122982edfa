import json

import pytest

from traceflow.dataflow import core
from traceflow.dataflow.core import PERSIST_VERSION
from traceflow.dataflow.errors import SchemaMismatchError


def test_todict(registry):
    d = registry.new_descriptor("basic.math")
    d.bind_input("input", "seismic")
    d.set_value("mode", "power")
    d.set_value("exponent", 0.5)
    assert d.todict() == {
        "version": PERSIST_VERSION,
        "transform": "basic.math",
        "parameters": {"mode": 2, "factor": 1.0, "shift": 0.0, "exponent": 0.5},
        "inputs": [{"label": "input", "binding": "seismic"}],
        "output": "trace",
    }


def test_round_trip(registry):
    d = registry.new_descriptor("basic.math")
    d.bind_input("input", "seismic")
    d.set_value("factor", 2.0)
    d.set_value("shift", 100.0)
    d.set_value("mode", "square")

    loaded = core.loads(d.dumps(), registry=registry)
    assert dict(loaded.values()) == dict(d.values())
    assert loaded.bindings == ["seismic"]
    # enablement is recomputed from the values
    assert not loaded.is_enabled("factor")
    assert not loaded.is_enabled("shift")
    assert loaded.is_enabled("mode")


def test_round_trip_nonfinite_values(registry):
    d = registry.new_descriptor("basic.clip")
    d.bind_input("input", "seismic")
    d.set_value("clip_high", False)
    d.set_value("high", float("inf"))
    text = d.dumps()
    assert "Infinity" not in text
    loaded = core.loads(text, registry=registry)
    assert loaded.get_value("high") == float("inf")
    assert not loaded.is_enabled("high")


def test_version_mismatch(registry):
    state = registry.new_descriptor("basic.math").todict()
    state["version"] = "0.9"
    with pytest.raises(SchemaMismatchError):
        core.load_descriptor(state, registry=registry)


def test_missing_version_reads_as_current(registry):
    d = registry.new_descriptor("basic.math")
    d.bind_input("input", "seismic")
    d.set_value("factor", 3.0)
    state = d.todict()
    del state["version"]
    loaded = core.load_descriptor(state, registry=registry)
    assert loaded.get_value("factor") == 3.0
    assert loaded.bindings == ["seismic"]
    assert loaded.todict()["version"] == PERSIST_VERSION


def test_unknown_transform(registry):
    state = registry.new_descriptor("basic.math").todict()
    state["transform"] = "basic.cube"
    with pytest.raises(SchemaMismatchError):
        core.load_descriptor(state, registry=registry)


def test_enum_index_out_of_range(registry):
    state = registry.new_descriptor("basic.math").todict()
    state["parameters"]["mode"] = 9
    with pytest.raises(SchemaMismatchError):
        core.load_descriptor(state, registry=registry)


def test_invalid_literal(registry):
    state = registry.new_descriptor("basic.math").todict()
    state["parameters"]["factor"] = 5000.0
    with pytest.raises(SchemaMismatchError):
        core.load_descriptor(state, registry=registry)


def test_unknown_input_label(registry):
    state = registry.new_descriptor("basic.math").todict()
    state["inputs"] = [{"label": "velocity", "binding": "v"}]
    with pytest.raises(SchemaMismatchError):
        core.load_descriptor(state, registry=registry)


def test_missing_key_uses_default(registry):
    state = registry.new_descriptor("basic.math").todict()
    state["parameters"]["factor"] = 3.0
    del state["parameters"]["shift"]
    with pytest.warns(UserWarning, match="shift"):
        d = core.load_descriptor(state, registry=registry)
    assert d.get_value("shift") == 0.0
    assert d.get_value("factor") == 3.0


def test_unknown_key_ignored(registry):
    state = registry.new_descriptor("basic.math").todict()
    state["parameters"]["gain"] = 2.0
    with pytest.warns(UserWarning, match="gain"):
        d = core.load_descriptor(state, registry=registry)
    assert "gain" not in d.params


def test_opt_by_name_accepted(registry):
    state = registry.new_descriptor("basic.math").todict()
    state["parameters"]["mode"] = "abs"
    d = core.load_descriptor(json.loads(json.dumps(state)), registry=registry)
    assert d.get_value("mode") == "abs"
    assert not d.is_enabled("exponent")
