"""
Data sources for input traces.

A data source is any object with the method::

    fetch(slot_index, position, interval) -> ndarray or None

returning the samples of input slot *slot_index* for the trace at
*position* over the :class:`.provider.SampleInterval` *interval*, or None
if there is no trace there.  The provider treats None as an acquisition
failure for required inputs and as undefined samples for optional ones.
A source may also raise :class:`.errors.AcquisitionFailure`, which fails
the position without stopping the run.

:class:`VolumeSource` keeps volumes in memory, which is enough for tests,
examples and small jobs::

    from traceflow.dataflow.fetch import VolumeSource
    volumes = {
        "seismic": {(100, 200): trace, (100, 201): trace2, ...},
    }
    source = VolumeSource(volumes).bound_to(descriptor)
"""
import threading

import numpy as np

from .provider import UNDEFINED, SampleInterval


class VolumeSource(object):
    """
    In-memory volumes keyed by binding name.

    *volumes* : {name: {position: array}}
        Traces for each volume.  Each trace starts at sample 0.

    *bindings* : [name or None]
        Volume name for each input slot, as stored in the descriptor.
        Use :meth:`bound_to` to take them from a descriptor.

    Samples requested past the end of a trace are returned as undefined.
    Positions not in the volume return None.
    """
    def __init__(self, volumes=None, bindings=()):
        self.volumes = volumes if volumes is not None else {}
        self.bindings = tuple(bindings)
        self._lock = threading.Lock()

    def bound_to(self, descriptor):
        """
        Return a source sharing the volumes, resolving slots through the
        input bindings of *descriptor*.
        """
        source = VolumeSource(self.volumes, descriptor.bindings)
        source._lock = self._lock
        return source

    def add_trace(self, name, position, samples):
        with self._lock:
            self.volumes.setdefault(name, {})[position] = np.asarray(samples, dtype='d')

    def positions(self, name):
        with self._lock:
            return list(self.volumes.get(name, {}).keys())

    def fetch(self, slot_index, position, interval):
        interval = SampleInterval.coerce(interval)
        try:
            name = self.bindings[slot_index]
        except IndexError:
            return None
        if name is None:
            return None
        with self._lock:
            trace = self.volumes.get(name, {}).get(position, None)
        if trace is None:
            return None
        trace = np.asarray(trace, dtype='d')
        samples = np.full(interval.count, UNDEFINED)
        available = trace[interval.start:interval.stop]
        samples[:len(available)] = available
        return samples
