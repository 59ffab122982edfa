import pytest

from traceflow.dataflow import core
from traceflow.dataflow.fetch import VolumeSource


@pytest.fixture
def registry():
    reg = core.Registry()
    core.load_transforms("basic", registry=reg)
    return reg


@pytest.fixture
def volumes():
    return VolumeSource({
        "seismic": {
            (0, 0): [0., 10., -5.],
            (0, 1): [1., 2., 3.],
            (1, 0): [4., float("nan"), 6.],
        },
        "velocity": {
            (0, 0): [2., 0., 1.],
            (0, 1): [1., 1., 1.],
        },
    })
