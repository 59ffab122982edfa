"""
Editor transfer objects.

An editor works on an :class:`EditorState`, a plain snapshot of a
descriptor which can be sent to a user interface as JSON.  Edits are
recorded without checking.  :func:`store_to_descriptor` applies the update
rule to the edited values, then validates the parameters left enabled.
"""
from copy import deepcopy

from .anno_exc import annotate_exception
from .core import REGISTRY
from .errors import ConfigurationError


class EditorState(object):
    """
    Snapshot of a descriptor for editing.

    *transform* : string
        Transform name.

    *fields* : [{id, label, datatype, typeattr, value, enabled, description}]
        Parameters in schema order.

    *inputs* : [{label, required, binding}]
        Input slots in kernel argument order.

    *output* : string
        Output kind.
    """
    def __init__(self, transform, fields, inputs, output):
        self.transform = transform
        self.fields = fields
        self.inputs = inputs
        self.output = output

    def _field(self, key):
        for field in self.fields:
            if field["id"] == key:
                return field
        raise KeyError(key)

    def set(self, key, value):
        """
        Record a user edit.  The value is checked when stored.
        """
        self._field(key)["value"] = value

    def value(self, key):
        return self._field(key)["value"]

    def bind(self, label, binding):
        for slot in self.inputs:
            if slot["label"] == label:
                slot["binding"] = binding
                return
        raise KeyError(label)

    def todict(self):
        return {
            "transform": self.transform,
            "fields": deepcopy(self.fields),
            "inputs": deepcopy(self.inputs),
            "output": self.output,
        }


def load_from_descriptor(descriptor):
    """
    Build the editor state for *descriptor*.
    """
    fields = []
    for par in descriptor.params.values():
        fields.append({
            "id": par.key,
            "label": par.label,
            "datatype": par.datatype,
            "typeattr": deepcopy(par.typeattr),
            "value": par.value,
            "enabled": par.enabled,
            "description": par.description,
        })
    inputs = [{"label": slot.label, "required": slot.required,
               "binding": slot.binding}
              for slot in descriptor.inputs]
    return EditorState(descriptor.name, fields, inputs, descriptor.output_kind)


def store_to_descriptor(state, descriptor=None, registry=None):
    """
    Write the editor state into *descriptor*, or into a fresh descriptor
    from the registry if none is given.  Returns the descriptor.

    Enablement is decided from all the edited values at once, so an edit
    to a parameter which a later field enables is kept.  Parameters which
    end up enabled are validated.  Parameters which end up disabled keep
    the value already in *descriptor*; a fresh descriptor takes the value
    from the state unchecked.  Input bindings are copied.

    Raises :class:`TypeMismatchError` or :class:`OutOfRangeError` for a
    value which does not fit its parameter.  On error *descriptor* is left
    unchanged.
    """
    fresh = descriptor is None
    if fresh:
        registry = registry if registry is not None else REGISTRY
        descriptor = registry.new_descriptor(state.transform)

    work = descriptor.copy()
    edits = dict((field["id"], field["value"]) for field in state.fields
                 if field["id"] in work.params)
    for key, value in edits.items():
        work.params[key].value = value
    work.apply_update_rule()

    for key, par in work.params.items():
        if par.enabled:
            try:
                par.value = par.check(par.value)
            except ConfigurationError as exc:
                annotate_exception("in " + work.name, exc)
                raise
        elif not fresh:
            par.value = descriptor.params[key].value
    for slot in state.inputs:
        work.bind_input(slot["label"], slot["binding"])

    descriptor.params = work.params
    descriptor.inputs = work.inputs
    return descriptor
