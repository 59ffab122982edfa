"""
Dataflow architecture.

The dataflow architecture evaluates single trace transforms over volumes
of traces, such as seismic attributes computed sample by sample.

Transforms are organized by family, each contributing a set of numpy
kernels.  These are defined as :class:`.core.Transform`, with fields
(:class:`.params.Parameter`) for the settings of the computation and input
slots for the traces flowing in.  Kernels declare their interface in their
doc strings, which :func:`.automod.make_transforms` turns into transform
definitions.

A :class:`.core.Descriptor` is an editable instance of a transform.  It
holds parameter values and input bindings, and an update rule enables and
disables parameters as the values change.  Descriptors persist as plain
dictionaries, and :mod:`.editor` exchanges them with user interfaces.

Transforms are registered with :mod:`core`, which builds an executable
:class:`.provider.Provider` for a descriptor.  The provider acquires input
samples at a trace position then computes the output samples.  The
function :func:`.calc.process_positions` runs a provider over many
positions, in parallel when the transform allows it.
"""

__version__ = "0.1"
