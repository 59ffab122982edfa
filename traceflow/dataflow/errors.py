"""
Exceptions raised by the transform engine.

Errors fall into two families with different propagation rules.

Configuration errors (:class:`ConfigurationError` and subclasses) describe
a bad parameter, an unknown transform or an invalid descriptor.  They are
raised before a run starts, and the run does not begin.

Position errors (:class:`AcquisitionFailure`, :class:`ComputeFailure`) are
local to a single trace position.  The scheduler records them against the
position and carries on with the rest of the run.

:class:`RegistryConflict` is raised when a transform name is registered
twice.  It happens at plugin load time, and the offending transform is
unusable.
"""


class ConfigurationError(ValueError):
    """Bad or missing parameter, unknown transform or invalid descriptor."""


class UnknownParameterError(ConfigurationError, KeyError):
    """Parameter key is not part of the descriptor schema."""
    def __str__(self):
        # KeyError quotes its argument; keep the plain message
        return ConfigurationError.__str__(self)


class TypeMismatchError(ConfigurationError, TypeError):
    """Value does not match the declared parameter type."""


class OutOfRangeError(ConfigurationError):
    """Value lies outside the parameter limits or choice list."""


class UnknownTransformError(ConfigurationError, KeyError):
    """No factory registered under the transform name."""
    def __str__(self):
        return ConfigurationError.__str__(self)


class InvalidDescriptorError(ConfigurationError):
    """Descriptor fails validation, so no run can start."""


class SchemaMismatchError(ConfigurationError):
    """Persisted state does not fit any registered transform schema."""


class RegistryConflict(TypeError):
    """Transform registration clashes with an existing entry."""


class DuplicateNameError(RegistryConflict):
    """Transform name is already registered."""


class AcquisitionFailure(RuntimeError):
    """Input trace unavailable for a position."""


class ComputeFailure(RuntimeError):
    """Computation failed for a position."""


class InvalidRangeError(ComputeFailure, ValueError):
    """Negative or out of bounds sample range."""
