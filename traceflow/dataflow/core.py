"""
Core class definitions

:class:`Transform` is the schema of a named single-trace computation,
:class:`Descriptor` is one editable instance of that schema with parameter
values and input bindings, and :class:`Registry` maps transform names to
the factories which turn a descriptor into an executable provider.
"""
import importlib
import json
import logging
import threading
import warnings
from collections import OrderedDict
from copy import deepcopy

from numpy import nan, inf

from .anno_exc import annotate_exception
from .errors import (
    ConfigurationError, UnknownParameterError, UnknownTransformError,
    SchemaMismatchError, DuplicateNameError,
    )

PERSIST_VERSION = '1.0'

logger = logging.getLogger(__name__)


class InputSlot(object):
    """
    Named input of a descriptor.

    *label* : string
        Slot name, unique within the descriptor.  Input traces are passed
        to the kernel positionally in slot order.

    *required* : boolean
        If true, the descriptor is invalid until the slot is bound.  An
        optional slot with no binding, or with no data at a position,
        reads as all-undefined samples.

    *binding* : string or None
        Position independent reference to a data source, such as a volume
        name.  The data source collaborator resolves it.
    """
    def __init__(self, label, required=True, binding=None, description=""):
        self.label = label
        self.required = required
        self.binding = binding
        self.description = description

    def todict(self):
        return {"label": self.label, "binding": self.binding}

    def __repr__(self):
        flag = "" if self.required else "?"
        return "InputSlot(%r%s -> %r)" % (self.label, flag, self.binding)


class UpdateRule(object):
    """
    Dynamic parameter enablement.

    *function* maps a snapshot of the parameter values *{key: value}* to
    the enabled state of dependent parameters, either as a dict
    *{key: enabled}* or as a sequence of *(key, enabled)* pairs.  It must be
    pure; the result depends only on the snapshot.

    *watch* lists the parameter keys which trigger re-evaluation when set.
    If None, every parameter triggers it.
    """
    def __init__(self, function, watch=None):
        self.function = function
        self.watch = frozenset(watch) if watch is not None else None

    def watches(self, key):
        return self.watch is None or key in self.watch

    def __call__(self, values):
        changes = self.function(values)
        if hasattr(changes, 'items'):
            changes = changes.items()
        return [(key, bool(enabled)) for key, enabled in changes]


class Descriptor(object):
    """
    Schema and binding instance of a transform.

    *name* : string
        Transform name used to look up the provider factory.

    *params* : {key: :class:`.params.Parameter`}
        Parameters in schema order.

    *inputs* : [:class:`InputSlot`]
        Input slots in kernel argument order.

    *output_kind* : string
        Semantic type of the output trace.

    *update_rule* : :class:`UpdateRule`
        Enables and disables parameters as values change.

    Descriptors are usually created with :meth:`Transform.descriptor` or
    :func:`new_descriptor`, which fill in the schema and apply the update
    rule to the defaults.  They can also be assembled by hand::

        d = Descriptor("basic.math")
        d.add_input("input")
        d.add_param(Parameter.from_spec("factor", "float:<-1000,1000>", 1.0))
        d.add_output_kind("trace")
    """
    def __init__(self, name, update_rule=None):
        self.name = name
        self.params = OrderedDict()
        self.inputs = []
        self.output_kind = None
        self.update_rule = update_rule

    # === schema construction ===
    def add_param(self, parameter):
        if parameter.key in self.params:
            raise ConfigurationError("parameter %r already defined for %s"
                                     % (parameter.key, self.name))
        self.params[parameter.key] = parameter

    def add_input(self, label, required=True, description=""):
        if any(slot.label == label for slot in self.inputs):
            raise ConfigurationError("input %r already defined for %s"
                                     % (label, self.name))
        self.inputs.append(InputSlot(label, required, description=description))

    def add_output_kind(self, kind):
        self.output_kind = kind

    def set_update_rule(self, rule):
        """
        Install the update rule and apply it to the current values.
        """
        if rule is not None and not isinstance(rule, UpdateRule):
            rule = UpdateRule(rule)
        self.update_rule = rule
        self.apply_update_rule()

    # === parameter access ===
    def _param(self, key):
        try:
            return self.params[key]
        except KeyError:
            raise UnknownParameterError("no parameter %r in %s"
                                        % (key, self.name)) from None

    def get_param(self, key):
        return self._param(key)

    def get_value(self, key):
        return self._param(key).value

    def set_value(self, key, value):
        """
        Set the parameter value, then re-evaluate the update rule if the
        parameter is enabled and watched by it.

        Raises :class:`UnknownParameterError` for an unknown key, and
        :class:`TypeMismatchError` or :class:`OutOfRangeError` for a value
        which does not fit an enabled parameter.  On error the previous
        value is retained.
        """
        par = self._param(key)
        try:
            par.set(value)
        except ConfigurationError as exc:
            annotate_exception("in " + self.name, exc)
            raise
        if (par.enabled and self.update_rule is not None
                and self.update_rule.watches(key)):
            self.apply_update_rule()

    def is_enabled(self, key):
        return self._param(key).enabled

    def set_param_enabled(self, key, enabled):
        self._param(key).enabled = bool(enabled)

    def apply_update_rule(self):
        if self.update_rule is None:
            return
        for key, enabled in self.update_rule(self.values()):
            self.set_param_enabled(key, enabled)

    def values(self):
        """
        Snapshot of all parameter values, enabled or not, in schema order.
        """
        return OrderedDict((k, p.value) for k, p in self.params.items())

    # === input binding ===
    def _slot(self, label):
        if isinstance(label, int):
            try:
                return self.inputs[label]
            except IndexError:
                raise ConfigurationError("no input %d in %s"
                                         % (label, self.name)) from None
        for slot in self.inputs:
            if slot.label == label:
                return slot
        raise ConfigurationError("no input %r in %s" % (label, self.name))

    def bind_input(self, label, binding):
        """
        Bind input slot *label* (name or index) to a data source reference.
        """
        self._slot(label).binding = binding

    def unbind_input(self, label):
        self._slot(label).binding = None

    @property
    def bindings(self):
        return [slot.binding for slot in self.inputs]

    # === validation ===
    def problems(self):
        """
        Return the list of reasons the descriptor is invalid.
        """
        errors = []
        for slot in self.inputs:
            if slot.required and slot.binding is None:
                errors.append("required input %r is not bound" % slot.label)
        for par in self.params.values():
            if not par.enabled:
                continue
            try:
                par.check(par.value)
            except ConfigurationError as exc:
                errors.append(str(exc))
        return errors

    def validate(self):
        return not self.problems()

    @property
    def valid(self):
        return self.validate()

    def copy(self):
        d = Descriptor(self.name, update_rule=self.update_rule)
        d.params = OrderedDict((k, p.copy()) for k, p in self.params.items())
        d.inputs = deepcopy(self.inputs)
        d.output_kind = self.output_kind
        return d

    # === persistence ===
    def todict(self):
        """
        Flat persisted form; opt values are stored as the choice index.
        """
        parameters = OrderedDict()
        for par in self.params.values():
            value = par.value
            if par.datatype == "opt" and value in par.choices:
                value = par.choices.index(value)
            parameters[par.key] = value
        return {
            "version": PERSIST_VERSION,
            "transform": self.name,
            "parameters": parameters,
            "inputs": [slot.todict() for slot in self.inputs],
            "output": self.output_kind,
        }

    def dumps(self, **kw):
        """
        Convert descriptor to json.
        """
        return json.dumps(sanitizeForJSON(self.todict()), **kw)

    def __repr__(self):
        return "Descriptor(%r, %s)" % (self.name, dict(self.values()))


class Transform(object):
    """
    Single trace transform definition.

    *id* : string
        Transform name.  By convention this is a dotted structure
        '<family>.<operation>', such as "basic.math".

    *name* : string
        Display name of the transform.

    *description* : string
        Html description shown by the editor.

    *version*, *author* : string
        Version of the code implementing the kernel.  Increment the version
        if the results change, including bug fixes.

    *kernel* : callable
        Vectorised sample function *kernel(\\*inputs, \\*\\*params)* returning
        an array the length of the inputs.

    *inputs* : [{id, label, required, description}]
        Input slots, matching the positional arguments of the kernel.

    *fields* : [:class:`.params.Parameter`]
        Parameter schema, matching the keyword arguments of the kernel.

    *output* : {id, datatype, description}
        The single output terminal.  *datatype* is the output kind.

    *parallel_safe* : boolean
        True if the kernel writes no state shared between positions.

    *undefined* : string
        "propagate" if undefined input samples give undefined output, or
        "kernel" if the kernel handles undefined values itself.

    *update_rule* : :class:`UpdateRule` or None
        Dynamic parameter enablement.
    """
    def __init__(self, id, kernel, inputs, fields, output, name=None,
                 description="", version="", author="", kernel_id="",
                 parallel_safe=True, undefined="propagate", update_rule=None):
        if undefined not in ("propagate", "kernel"):
            raise ConfigurationError("unknown undefined policy %r for %s"
                                     % (undefined, id))
        self.id = id
        self.name = name if name is not None else id
        self.description = description
        self.version = version
        self.author = author
        self.kernel = kernel
        self.kernel_id = kernel_id
        self.inputs = inputs
        self.fields = fields
        self.output = output
        self.parallel_safe = parallel_safe
        self.undefined = undefined
        if update_rule is not None and not isinstance(update_rule, UpdateRule):
            update_rule = UpdateRule(update_rule)
        self.update_rule = update_rule

    def descriptor(self):
        """
        Build a fresh descriptor with default values.  The update rule is
        applied before returning so the initial enabled state is consistent.
        """
        d = Descriptor(self.id)
        for slot in self.inputs:
            d.add_input(slot["id"], slot["required"], slot.get("description", ""))
        for par in self.fields:
            d.add_param(par.copy())
        d.add_output_kind(self.output["datatype"])
        d.set_update_rule(self.update_rule)
        return d

    def create_provider(self, descriptor, source=None):
        """
        Default provider factory for the transform.
        """
        from .provider import Provider
        return Provider(self, descriptor, source)

    def get_definition(self):
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "author": self.author,
            "description": self.description,
            "inputs": deepcopy(self.inputs),
            "fields": [p.get_definition() for p in self.fields],
            "output": deepcopy(self.output),
            "parallel_safe": self.parallel_safe,
            "undefined": self.undefined,
            "kernel_id": self.kernel_id,
        }


class Registry(object):
    """
    Mapping from transform name to provider factory.

    *factory(descriptor, source)* returns a provider, which may be not-OK
    if the descriptor is invalid.  Registering a *transform* schema with
    the factory allows :meth:`new_descriptor` to build descriptors by name.

    Names are registered once.  There is no unregistration; a second
    registration under the same name raises :class:`DuplicateNameError`.
    """
    def __init__(self):
        self._factories = OrderedDict()
        self._transforms = {}
        self._lock = threading.RLock()

    def register(self, name, factory, transform=None):
        with self._lock:
            if name in self._factories:
                raise DuplicateNameError("Transform %r already registered" % name)
            self._factories[name] = factory
            if transform is not None:
                self._transforms[name] = transform
        logger.debug("registered transform %s", name)

    def lookup(self, name):
        """
        Return the factory for *name*.
        """
        with self._lock:
            try:
                return self._factories[name]
            except KeyError:
                raise UnknownTransformError("unknown transform %r" % (name,)) from None

    def transform(self, name):
        """
        Return the transform schema registered for *name*.
        """
        with self._lock:
            if name not in self._factories:
                raise UnknownTransformError("unknown transform %r" % (name,))
            try:
                return self._transforms[name]
            except KeyError:
                raise ConfigurationError("no schema registered for %r" % (name,)) from None

    def new_descriptor(self, name):
        return self.transform(name).descriptor()

    def create(self, descriptor, source=None):
        """
        Build a provider for *descriptor*.  Invalid descriptors give a
        provider with *ok=False* rather than an exception.
        """
        factory = self.lookup(descriptor.name)
        return factory(descriptor, source)

    def names(self):
        with self._lock:
            return list(self._factories.keys())

    def __contains__(self, name):
        with self._lock:
            return name in self._factories

    def __len__(self):
        with self._lock:
            return len(self._factories)


# Process-wide registry used by the host application
REGISTRY = Registry()

# direct access to singleton methods
register_transform = REGISTRY.register
lookup_transform = REGISTRY.lookup
new_descriptor = REGISTRY.new_descriptor
create_provider = REGISTRY.create
list_transforms = REGISTRY.names


def register_transforms(transforms, registry=None):
    """
    Register each :class:`Transform` under its id with its default factory.
    """
    registry = registry if registry is not None else REGISTRY
    for t in transforms:
        registry.register(t.id, t.create_provider, t)


_loaded_families = set()
_load_lock = threading.Lock()
def load_transforms(family, registry=None):
    """
    Load the transform definitions for *family*.

    This relies on a standard layout: the package *traceflow.{family}attr*
    contains the module *dataflow.py* with a function
    *define_transforms(registry)* which registers the transforms of the
    family.

    Without *registry*, the transforms are added to the process-wide
    :data:`REGISTRY`, and repeated calls with the same family are ignored.
    With *registry*, the family is always defined in that registry.
    """
    module_name = 'traceflow.%sattr.dataflow' % family
    module = importlib.import_module(module_name)
    if registry is not None:
        module.define_transforms(registry)
        return
    with _load_lock:
        if module_name in _loaded_families:
            return
        module.define_transforms(REGISTRY)
        _loaded_families.add(module_name)


def load_descriptor(state, registry=None):
    """
    Rebuild a descriptor from its persisted form.

    Raises :class:`SchemaMismatchError` if the version or the transform
    name does not match, if an input label is not in the schema, or if a
    stored value does not fit its parameter.  Parameters missing from
    *state* keep their defaults, with a warning.
    """
    registry = registry if registry is not None else REGISTRY
    state = sanitizeFromJSON(state)
    # a mapping without a version tag is read as the current version
    version = state.get('version', PERSIST_VERSION)
    if version != PERSIST_VERSION:
        raise SchemaMismatchError("descriptor version %r does not match %r"
                                  % (version, PERSIST_VERSION))
    name = state.get('transform')
    try:
        descriptor = registry.new_descriptor(name)
    except ConfigurationError as exc:
        raise SchemaMismatchError("cannot load %r: %s" % (name, exc)) from exc

    parameters = state.get('parameters', {})
    for key in parameters:
        if key not in descriptor.params:
            _warn("ignoring unknown parameter %r for %s" % (key, name))
    # Store all values before recomputing enablement, since a parameter
    # may be enabled by one which follows it in schema order.
    for par in descriptor.params.values():
        if par.key not in parameters:
            _warn("parameter %r missing for %s; using default %r"
                  % (par.key, name, par.default))
            continue
        par.value = _decode_literal(par, parameters[par.key], name)
    descriptor.apply_update_rule()
    for par in descriptor.params.values():
        if not par.enabled:
            continue
        try:
            par.value = par.check(par.value)
        except ConfigurationError as exc:
            annotate_exception("in " + name, exc)
            raise SchemaMismatchError(str(exc)) from exc

    for entry in state.get('inputs', []):
        try:
            descriptor.bind_input(entry['label'], entry.get('binding', None))
        except (ConfigurationError, KeyError, TypeError) as exc:
            raise SchemaMismatchError("bad input %r for %s" % (entry, name)) from exc
    return descriptor


def loads(text, registry=None):
    """
    Rebuild a descriptor from json.
    """
    return load_descriptor(json.loads(text), registry=registry)


def _decode_literal(par, value, name):
    if par.datatype == "opt" and isinstance(value, int) and not isinstance(value, bool):
        choices = par.choices
        if not 0 <= value < len(choices):
            raise SchemaMismatchError("choice index %d out of range for %r in %s"
                                      % (value, par.key, name))
        return choices[value]
    return value


def _warn(msg):
    logger.warning(msg)
    warnings.warn(msg)


# Inf/NaN representation options:
#     javascript names: "Infinity", "-Infinity", "NaN"
#     python names: "inf", "-inf", "nan"
#     unicode symbols: u"\u221E", u"-\u221E", u"\u26A0"
#     u26A0 is WARNING SIGN (! in triangle)
_NAN_STRING = u"\u26A0"  # WARNING SIGN (! in triangle)
_INF_STRING = u"\u221E"  # INFINITY
_MINUS_INF_STRING = u"-\u221E"  # -INFINITY
def sanitizeForJSON(obj):
    """
    Take an object made of python objects and remove inf and nan
    """
    if isinstance(obj, dict):
        return OrderedDict((k, sanitizeForJSON(v)) for k, v in obj.items())
    elif isinstance(obj, (list, tuple)):
        return [sanitizeForJSON(v) for v in obj]
    elif isinstance(obj, float):
        if obj == inf:
            return _INF_STRING
        elif obj == -inf:
            return _MINUS_INF_STRING
        elif obj != obj:
            return _NAN_STRING
    return obj


def sanitizeFromJSON(obj):
    """
    Convert inf/nan from json representation to python.
    """
    if isinstance(obj, dict):
        return OrderedDict((k, sanitizeFromJSON(v)) for k, v in obj.items())
    elif isinstance(obj, list):
        return [sanitizeFromJSON(v) for v in obj]
    elif obj == _INF_STRING:
        return inf
    elif obj == _MINUS_INF_STRING:
        return -inf
    elif obj == _NAN_STRING:
        return nan
    else:
        return obj
