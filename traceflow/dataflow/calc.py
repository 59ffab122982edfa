"""
Run a transform over a set of trace positions.

:func:`process_positions` evaluates a descriptor at each position, using a
thread pool when the transform is parallel safe and the calling thread
otherwise.  A failure at one position is recorded in the returned
:class:`RunResult` and the run continues with the next position.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from .core import REGISTRY
from .errors import (
    ConfigurationError, InvalidDescriptorError,
    AcquisitionFailure, ComputeFailure,
    )
from .provider import SampleInterval, TraceWindow

# Worker count used when process_positions is not given one.  Set from
# the "workers" configuration entry by configure.apply_config.
DEFAULT_WORKERS = 4

logger = logging.getLogger(__name__)


class RunResult(object):
    """
    Outcome of :func:`process_positions`.

    *succeeded* : [position]
        Positions whose output was computed.

    *failed* : {position: reason}
        Positions which could not be computed, with the reason.

    *skipped* : [position]
        Positions not started because the run was cancelled.

    *outputs* : {position: :class:`.provider.TraceWindow`}
        Computed windows, when no sink was given.

    *total* : int
        Number of positions requested.

    *cancelled* : boolean
        True if the cancel event was set during the run.
    """
    def __init__(self, total=0):
        self.succeeded = []
        self.failed = {}
        self.skipped = []
        self.outputs = {}
        self.total = total
        self.cancelled = False

    def merge(self, other):
        self.succeeded.extend(other.succeeded)
        self.failed.update(other.failed)
        self.skipped.extend(other.skipped)
        self.outputs.update(other.outputs)

    def todict(self):
        return {
            "total": self.total,
            "succeeded": [list(p) if isinstance(p, tuple) else p
                          for p in self.succeeded],
            "failed": [[list(p) if isinstance(p, tuple) else p, reason]
                       for p, reason in self.failed.items()],
            "skipped": [list(p) if isinstance(p, tuple) else p
                        for p in self.skipped],
            "cancelled": self.cancelled,
        }

    def __repr__(self):
        return ("RunResult(total=%d, succeeded=%d, failed=%d, skipped=%d%s)"
                % (self.total, len(self.succeeded), len(self.failed),
                   len(self.skipped), ", cancelled" if self.cancelled else ""))


def process_positions(descriptor, positions, interval, source=None,
                      workers=None, cancel=None, sink=None, registry=None):
    """
    Evaluate *descriptor* over *interval* at each of *positions*.

    *source* provides the input samples; see :mod:`.fetch`.

    *workers* is the number of threads for parallel safe transforms,
    defaulting to :data:`DEFAULT_WORKERS`.  Transforms which are not
    parallel safe run with one provider in the calling thread.

    *cancel* is a *threading.Event*.  It is checked before each position,
    and positions not yet started when it is set are reported as skipped.

    *sink(window)* receives each computed :class:`.provider.TraceWindow`.
    It may be called from worker threads, but never concurrently.  Without
    a sink, the windows are returned in *RunResult.outputs*.

    Raises :class:`UnknownTransformError` if the descriptor names no
    registered transform, :class:`InvalidDescriptorError` if the descriptor
    is not valid, :class:`InvalidRangeError` for a bad interval and
    :class:`ConfigurationError` for a bad worker count.  These are checked
    before any position is processed.
    """
    registry = registry if registry is not None else REGISTRY
    factory = registry.lookup(descriptor.name)
    interval = SampleInterval.coerce(interval)
    if workers is None:
        workers = DEFAULT_WORKERS
    if not isinstance(workers, int) or isinstance(workers, bool) or workers <= 0:
        raise ConfigurationError("worker count must be a positive integer, got %r"
                                 % (workers,))
    provider = factory(descriptor, source)
    if not provider.ok:
        raise InvalidDescriptorError("cannot run %s: %s"
                                     % (descriptor.name, provider.errmsg))

    positions = list(positions)
    result = RunResult(total=len(positions))
    deliver = _locked(sink) if sink is not None else None
    parallel = provider.parallel_safe() and workers > 1 and len(positions) > 1
    logger.info("running %s on %d positions, samples [%d, %d), %s",
                descriptor.name, len(positions), interval.start, interval.stop,
                ("%d workers" % workers) if parallel else "serial")

    if parallel:
        chunks = _partition(positions, workers)
        # the first chunk reuses the provider built for the checks above
        providers = [provider] + [factory(descriptor, source)
                                  for _ in chunks[1:]]
        with ThreadPoolExecutor(max_workers=len(chunks),
                                thread_name_prefix="traceflow") as pool:
            futures = [pool.submit(_run_chunk, p, chunk, interval, cancel, deliver)
                       for p, chunk in zip(providers, chunks)]
            # merge in chunk order so results follow the requested order
            for future in futures:
                result.merge(future.result())
    else:
        result.merge(_run_chunk(provider, positions, interval, cancel, deliver))

    result.cancelled = cancel is not None and cancel.is_set()
    logger.info("finished %s: %d succeeded, %d failed, %d skipped%s",
                descriptor.name, len(result.succeeded), len(result.failed),
                len(result.skipped), " (cancelled)" if result.cancelled else "")
    return result


def _locked(sink):
    lock = threading.Lock()
    def deliver(window):
        with lock:
            sink(window)
    return deliver


def _partition(positions, n):
    """
    Split *positions* into at most *n* contiguous chunks of nearly equal size.
    """
    n = min(n, len(positions))
    size, extra = divmod(len(positions), n)
    chunks = []
    start = 0
    for k in range(n):
        stop = start + size + (1 if k < extra else 0)
        chunks.append(positions[start:stop])
        start = stop
    return chunks


def _run_chunk(provider, positions, interval, cancel, deliver):
    result = RunResult(total=len(positions))
    for index, position in enumerate(positions):
        if cancel is not None and cancel.is_set():
            result.skipped.extend(positions[index:])
            break
        window, reason = _process_one(provider, position, interval)
        if window is None:
            logger.debug("%s failed at %s: %s", provider.name, position, reason)
            result.failed[position] = reason
            continue
        result.succeeded.append(position)
        if deliver is not None:
            deliver(window)
        else:
            result.outputs[position] = window
    return result


def _process_one(provider, position, interval):
    window = TraceWindow.allocate(position, interval)
    try:
        if not provider.acquire(position, interval):
            return None, "required input unavailable"
        if not provider.compute(window.output, position,
                                window.start, window.count):
            return None, "input not acquired"
    except (AcquisitionFailure, ComputeFailure) as exc:
        return None, str(exc)
    return window, None
