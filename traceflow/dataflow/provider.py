"""
Executable transform instances.

A :class:`Provider` binds a transform kernel to the parameter values of one
descriptor.  For each trace position the caller first runs
:meth:`Provider.acquire` to fetch the input samples from the data source,
then :meth:`Provider.compute` to fill an output buffer::

    provider = registry.create(descriptor, source)
    window = TraceWindow.allocate(position, interval)
    if provider.acquire(position, interval):
        provider.compute(window.output, position, window.start, window.count)

Undefined samples are represented by :data:`UNDEFINED` (NaN).  Unless the
transform declares that its kernel handles undefined values, any output
sample whose inputs include an undefined value is itself undefined.
"""
import logging
import threading
from collections import namedtuple
from types import MappingProxyType

import numpy as np

from .errors import InvalidRangeError, ComputeFailure, AcquisitionFailure

UNDEFINED = np.nan

logger = logging.getLogger(__name__)


class SampleInterval(namedtuple('SampleInterval', ['start', 'count'])):
    """
    Contiguous range of sample indices *[start, start+count)*.
    """
    __slots__ = ()

    def __new__(cls, start, count):
        start, count = int(start), int(count)
        if start < 0 or count < 0:
            raise InvalidRangeError("invalid sample range start=%d count=%d"
                                    % (start, count))
        return super(SampleInterval, cls).__new__(cls, start, count)

    @property
    def stop(self):
        return self.start + self.count

    @classmethod
    def coerce(cls, interval):
        """
        Accept a :class:`SampleInterval`, a *(start, count)* pair or a
        python *range* with unit step.
        """
        if isinstance(interval, cls):
            return interval
        if isinstance(interval, range):
            if interval.step != 1:
                raise InvalidRangeError("sample range must have unit step")
            return cls(interval.start, len(interval))
        start, count = interval
        return cls(start, count)

    def contains(self, start, count):
        return self.start <= start and start + count <= self.stop


class TraceWindow(object):
    """
    Per position compute buffer.

    *position* : (int, int)
        Position key of the trace.

    *start*, *count* : int
        Sample range of the output.

    *output* : ndarray
        Output samples, exactly *count* long.

    *inputs* : [ndarray or None]
        Input samples, when the caller keeps them.
    """
    def __init__(self, position, start, count, output, inputs=None):
        if start < 0 or count < 0:
            raise InvalidRangeError("invalid window start=%d count=%d"
                                    % (start, count))
        if len(output) != count:
            raise InvalidRangeError("output buffer has %d samples, expected %d"
                                    % (len(output), count))
        self.position = position
        self.start = start
        self.count = count
        self.output = output
        self.inputs = inputs

    @classmethod
    def allocate(cls, position, interval, dtype='d'):
        """
        Create a window whose output is filled with undefined samples.
        """
        interval = SampleInterval.coerce(interval)
        output = np.full(interval.count, UNDEFINED, dtype=dtype)
        return cls(position, interval.start, interval.count, output)

    @property
    def interval(self):
        return SampleInterval(self.start, self.count)

    def __repr__(self):
        return "TraceWindow(%r, start=%d, count=%d)" % (
            self.position, self.start, self.count)


class _Acquired(object):
    __slots__ = ('interval', 'buffers')

    def __init__(self, interval, buffers):
        self.interval = interval
        self.buffers = buffers


class Provider(object):
    """
    Transform instance bound to resolved parameter values.

    *transform* : :class:`.core.Transform`
        Schema and kernel of the transform.

    *descriptor* : :class:`.core.Descriptor`
        Parameter values and input bindings.  The values are copied at
        construction; later edits to the descriptor need a new provider.

    *source* : data source
        Object with *fetch(slot_index, position, interval)* returning the
        input samples for the interval, or None if there are none.

    If the descriptor is invalid, the provider is created with *ok=False*
    and *errmsg* giving the reasons.  A not-OK provider never acquires.

    Acquisition state lives in thread local storage keyed by position, so
    concurrent calls from different threads never see each other's
    buffers.
    """
    def __init__(self, transform, descriptor, source=None):
        self.transform = transform
        self.name = descriptor.name
        self.source = source
        self.kernel = transform.kernel
        self.undefined = transform.undefined
        self._parallel_safe = bool(transform.parallel_safe)
        self.params = MappingProxyType(dict(descriptor.values()))
        self.slots = tuple((slot.label, slot.required, slot.binding)
                           for slot in descriptor.inputs)
        problems = descriptor.problems()
        self.ok = not problems
        self.errmsg = "; ".join(problems)
        if not self.ok:
            logger.debug("provider %s not usable: %s", self.name, self.errmsg)
        self._local = threading.local()

    @property
    def bindings(self):
        return tuple(binding for _, _, binding in self.slots)

    def parallel_safe(self):
        """
        True if concurrent positions may share this transform.  This is a
        property of the transform, not of the current state.
        """
        return self._parallel_safe

    def _acquired(self):
        state = getattr(self._local, 'acquired', None)
        if state is None:
            state = self._local.acquired = {}
        return state

    def acquire(self, position, interval):
        """
        Fetch the input samples for *position* over *interval*.

        Returns False if the provider is not OK or any required input is
        unavailable, in which case the position must not be computed.
        Unbound or missing optional inputs read as undefined.  Any error
        raised by the data source is reported as :class:`AcquisitionFailure`.
        """
        state = self._acquired()
        state.pop(position, None)
        if not self.ok:
            return False
        interval = SampleInterval.coerce(interval)

        buffers = []
        for index, (label, required, binding) in enumerate(self.slots):
            data = None
            if binding is not None and self.source is not None:
                try:
                    data = self.source.fetch(index, position, interval)
                    if data is not None:
                        data = np.asarray(data, dtype='d')
                except AcquisitionFailure:
                    raise
                except Exception as exc:
                    raise AcquisitionFailure("%s: cannot read input %r at %s: %s"
                                             % (self.name, label, position, exc)) from exc
            if data is not None:
                if data.ndim != 1 or len(data) < interval.count:
                    logger.debug("%s: input %r at %s has %s samples, need %d",
                                 self.name, label, position, data.shape,
                                 interval.count)
                    data = None
                else:
                    data = data[:interval.count]
            if data is None and required:
                logger.debug("%s: input %r unavailable at %s",
                             self.name, label, position)
                return False
            buffers.append(data)

        state[position] = _Acquired(interval, buffers)
        return True

    def compute(self, output, position, start, count):
        """
        Fill *output[:count]* with the transformed samples *start* to
        *start+count* of the trace at *position*.

        Raises :class:`InvalidRangeError` if *start* or *count* is
        negative, if the range lies outside the acquired interval or if
        *output* is not *count* samples long.  A zero *count* succeeds
        without doing anything.  Returns False if no input was acquired for
        *position* on this thread.
        """
        if start < 0 or count < 0:
            raise InvalidRangeError("invalid sample range start=%d count=%d"
                                    % (start, count))
        if len(output) != count:
            raise InvalidRangeError("output buffer has %d samples, expected %d"
                                    % (len(output), count))
        if count == 0:
            self._acquired().pop(position, None)
            return True

        acquired = self._acquired().pop(position, None)
        if acquired is None:
            return False
        if not acquired.interval.contains(start, count):
            raise InvalidRangeError(
                "samples [%d, %d) outside acquired range [%d, %d) at %s"
                % (start, start+count, acquired.interval.start,
                   acquired.interval.stop, position))

        offset = start - acquired.interval.start
        samples = [
            (data[offset:offset+count] if data is not None
             else np.full(count, UNDEFINED))
            for data in acquired.buffers
        ]
        try:
            with np.errstate(all='ignore'):
                result = self.kernel(*samples, **self.params)
            result = np.broadcast_to(np.asarray(result, dtype='d'), (count,))
        except (ArithmeticError, ValueError, TypeError) as exc:
            raise ComputeFailure("%s failed at %s: %s"
                                 % (self.name, position, exc)) from exc

        output[:] = result
        if self.undefined == "propagate" and samples:
            undefined = np.zeros(count, dtype=bool)
            for data in samples:
                undefined |= np.isnan(data)
            output[undefined] = UNDEFINED
        return True

    def __repr__(self):
        state = "ok" if self.ok else "not ok"
        return "Provider(%r, %s)" % (self.name, state)
