"""
Basic sample arithmetic on single traces.

Each kernel receives whole sample windows as numpy arrays and returns an
array of the same length.  Undefined samples are NaN.
"""
import threading

import numpy as np

from traceflow.dataflow.automod import (
    transform, serial, handles_undefined, update_rule,
    )


def _math_rule(values):
    linear = values["mode"] == "linear"
    return {
        "factor": linear,
        "shift": linear,
        "exponent": values["mode"] == "power",
    }

@transform
@update_rule(_math_rule, watch=["mode"])
def math(input, mode="linear", factor=1.0, shift=0.0, exponent=2.0):
    r"""
    Apply an arithmetic operation to each sample.

    The *linear* operation computes $factor \cdot x + shift$, *square*
    computes $x^2$, *power* computes $x^{exponent}$ and *abs* computes
    $|x|$.  Negative samples raised to a fractional power are undefined.

    **Inputs**

    input (trace): trace to transform

    mode {Operation} (opt:linear|square|power|abs) : operation applied to
    each sample

    factor (float:<-1000,1000>) : multiplier for linear mode

    shift (float) : offset for linear mode

    exponent (float:<-100,100>) : exponent for power mode

    **Returns**

    output (trace): transformed trace

    2024-05-02 traceflow
    """
    if mode == "linear":
        return factor*input + shift
    elif mode == "square":
        return input**2
    elif mode == "power":
        return np.power(input, exponent)
    elif mode == "abs":
        return np.abs(input)
    raise ValueError("unknown mode %r" % mode)


def _clip_rule(values):
    return {"high": values["clip_high"]}

@transform
@update_rule(_clip_rule, watch=["clip_high"])
def clip(input, low=0.0, high=1.0, clip_high=True):
    """
    Clamp samples to a range.

    Samples below *low* are set to *low*.  If *clip_high* is set, samples
    above *high* are set to *high*; otherwise there is no upper limit and
    *high* is disabled.

    **Inputs**

    input (trace): trace to clip

    low {Lower limit} (float) : smallest output value

    high {Upper limit} (float) : largest output value

    clip_high {Clip high} (bool) : apply the upper limit

    **Returns**

    output (trace): clipped trace

    2024-05-02 traceflow
    """
    if clip_high:
        if high < low:
            raise ValueError("upper limit %g is below lower limit %g" % (high, low))
        return np.clip(input, low, high)
    return np.maximum(input, low)


@transform
@handles_undefined
def combine(input, other, op="add", weight=1.0):
    """
    Combine two traces sample by sample.

    The second trace is scaled by *weight* before combining.  For *add*,
    *subtract*, *multiply* and *ratio* an undefined sample in either trace
    gives an undefined result, as does a ratio with a zero denominator.
    *coalesce* keeps the first trace where it is defined and fills the
    gaps from the second.

    If *other* is not bound, it is undefined everywhere.

    **Inputs**

    input (trace): first trace

    other (trace?): second trace

    op {Operation} (opt:add|subtract|multiply|ratio|coalesce) : how the
    traces are combined

    weight (float) : scale factor for the second trace

    **Returns**

    output (trace): combined trace

    2024-05-02 traceflow
    """
    other = weight*other
    if op == "add":
        return input + other
    elif op == "subtract":
        return input - other
    elif op == "multiply":
        return input*other
    elif op == "ratio":
        ratio = input/other
        ratio[other == 0] = np.nan
        return ratio
    elif op == "coalesce":
        return np.where(np.isnan(input), other, input)
    raise ValueError("unknown operation %r" % op)


@transform
@handles_undefined
def replace_undefined(input, value=0.0):
    """
    Replace undefined samples with a constant.

    **Inputs**

    input (trace): trace with gaps

    value {Fill value} (float) : value for undefined samples

    **Returns**

    output (trace): trace without undefined samples

    2024-05-02 traceflow
    """
    return np.where(np.isnan(input), value, input)


# Level tables shared by all quantize calls, keyed by (levels, low, high).
# The table is emptied when it reaches _LEVEL_CACHE_SIZE entries.
_LEVEL_CACHE = {}
_LEVEL_CACHE_SIZE = 64
_LEVEL_CACHE_LOCK = threading.Lock()

def _level_table(levels, low, high):
    key = (levels, low, high)
    with _LEVEL_CACHE_LOCK:
        table = _LEVEL_CACHE.get(key, None)
        if table is None:
            if len(_LEVEL_CACHE) >= _LEVEL_CACHE_SIZE:
                _LEVEL_CACHE.clear()
            table = _LEVEL_CACHE[key] = np.linspace(low, high, levels)
    return table

@transform
@serial
def quantize(input, levels=16, low=0.0, high=1.0):
    """
    Snap samples to equally spaced levels.

    The *levels* values are spread evenly over *[low, high]*, including the
    end points, and each sample is replaced by the nearest one.  Samples
    outside the range snap to the end points.

    The level tables are remembered between calls, so the transform does
    not run in parallel.

    **Inputs**

    input (trace): trace to quantize

    levels (int:<2,65536>) : number of output levels

    low {Lowest level} (float) : value of the lowest level

    high {Highest level} (float) : value of the highest level

    **Returns**

    output (trace): quantized trace

    2024-05-02 traceflow
    """
    if not high > low:
        raise ValueError("highest level %g must be above lowest level %g"
                         % (high, low))
    table = _level_table(levels, low, high)
    output = np.full(len(input), np.nan)
    defined = ~np.isnan(input)
    scaled = (input[defined] - low)/(high - low)*(levels - 1)
    index = np.clip(np.rint(scaled), 0, levels - 1).astype(int)
    output[defined] = table[index]
    return output
