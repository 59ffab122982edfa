"""
Typed, bounded transform parameters.

A :class:`Parameter` is one value slot in a transform schema.  Its type is
given by the same small grammar used in transform docstrings:

    *float:units<min,max>*, *int:<min,max>*, *opt:a|b|c*, *str*, *bool*

:func:`parse_datatype` turns the grammar into a *(datatype, typeattr)*
pair, and :func:`validate` checks a value against it.
"""
import re
from copy import deepcopy

import numpy as np
from numpy import inf

from .errors import OutOfRangeError, TypeMismatchError

FIELD_TYPES = set("float int opt str bool".split())
# Limits standing in for "no limit"; keeps ranges JSON friendly.
FLOAT_LIMIT = 1e300
INT_LIMIT = int(1e9)


class Parameter(object):
    """
    Named, typed value slot.

    *key* : string
        Identifier for the parameter, unique within a descriptor.  This
        is also the keyword name passed to the transform kernel.

    *datatype* : string
        One of *float*, *int*, *opt*, *str* or *bool*.

    *default* : object
        Initial value.  Checked against the type when the parameter is
        created.

    *typeattr* : dict
        Type attributes; *range: [min, max]* for numbers, *units* for
        float, *choices: [[id, label], ...]* for opt.

    *label*, *description* : string
        Display name and tooltip for an editor.

    *enabled* : boolean
        Disabled parameters keep their value but are not validated, and
        changes to them do not trigger the update rule.
    """
    def __init__(self, key, datatype="float", default=None, typeattr=None,
                 label=None, description="", enabled=True):
        if datatype not in FIELD_TYPES:
            raise TypeMismatchError("Invalid type %s for parameter %s"
                                    % (datatype, key))
        self.key = check_key(key)
        self.datatype = datatype
        self.typeattr = _default_typeattr(datatype, typeattr)
        self.label = label if label is not None else _unsplit_name(key)
        self.description = description
        self.enabled = enabled
        if default is not None:
            default = validate(self, default)
        self.default = default
        self.value = default

    @classmethod
    def from_spec(cls, key, spec, default=None, **kw):
        """
        Build a parameter from a type string such as *"float:<-1000,1000>"*.
        """
        datatype, typeattr = parse_datatype(key, spec)
        return cls(key, datatype, default=default, typeattr=typeattr, **kw)

    @property
    def limits(self):
        """
        Numeric limits as *(min, max)*, or None for non-numeric types.
        """
        if self.datatype in ("float", "int"):
            return tuple(self.typeattr["range"])
        return None

    @property
    def choices(self):
        """
        Choice ids for an opt parameter, or None.
        """
        if self.datatype == "opt":
            return [c[0] for c in self.typeattr["choices"]]
        return None

    def check(self, value):
        """
        Return *value* converted to the parameter type, raising
        :class:`TypeMismatchError` or :class:`OutOfRangeError` if it does
        not fit.
        """
        return validate(self, value)

    def set(self, value):
        """
        Store a new value.  The previous value is retained if the new one
        fails validation.  Disabled parameters store the value unchecked.
        """
        if self.enabled:
            value = self.check(value)
        self.value = value

    def is_valid(self):
        try:
            self.check(self.value)
        except (TypeMismatchError, OutOfRangeError):
            return False
        return True

    def copy(self):
        return deepcopy(self)

    def get_definition(self):
        return {
            "id": self.key,
            "label": self.label,
            "datatype": self.datatype,
            "typeattr": deepcopy(self.typeattr),
            "default": self.default,
            "description": self.description,
        }

    def __repr__(self):
        state = "" if self.enabled else ", disabled"
        return "Parameter(%r, %s, value=%r%s)" % (
            self.key, self.datatype, self.value, state)


def _unsplit_name(name):
    """
    Convert "this_name" into "This Name".
    """
    return " ".join(s.capitalize() for s in name.split('_'))


def _default_typeattr(datatype, typeattr):
    attr = dict(typeattr) if typeattr else {}
    if datatype == "float":
        attr.setdefault("units", "")
        attr["range"] = list(attr.get("range", [-FLOAT_LIMIT, FLOAT_LIMIT]))
    elif datatype == "int":
        attr["range"] = list(attr.get("range", [-INT_LIMIT, INT_LIMIT]))
    elif datatype == "opt":
        choices = attr.get("choices", None)
        if not choices:
            raise TypeMismatchError("options not specified for opt parameter")
        attr["choices"] = [list(c) if isinstance(c, (list, tuple)) else [c, c]
                           for c in choices]
    return attr


def parse_datatype(name, spec):
    r"""
    Interpret a type specifier into a base type and attributes.

    *str* : String input.

    *bool* : True/false, shown as a check box.

    *int:<min,max>* : Integer value.

        If a range is given, then the value should lie within the range.
        The type attribute is set as *typeattr={range: [min, max]}*, with
        range defaulting to *[-1e9, 1e9]* if no range is given.

    *float:units<min,max>* : Floating point value.

        Units should be a string, which may be empty if the value is
        unitless.  The type attribute is set as
        *typeattr={units: "units", range: [min, max]}*, with range
        defaulting to *[-1e300, 1e300]* if no range is given.  Either end
        of the range may be left blank, as in *<0,>* for non-negative.

    *opt:opt1|...|optn* : Choice list.

        Select from the list of options.  Options are sent as string
        values.  The option id matches the option label unless the option
        is given as "...|id=label|...".  The type attribute is set as
        *typeattr={choices: [[id1, label1], ...]}*.

    Returns *(datatype, typeattr)*.
    """
    spec = spec.strip() if spec else "str"
    type, _, attrstr = spec.partition(":")
    type = type.strip()
    attrstr = attrstr.strip()
    attr = {}

    if type == "int":
        try:
            min, max = parse_range(attrstr, limit=INT_LIMIT)
            if int(min) != min or int(max) != max:
                raise ValueError("use integers for int range")
        except ValueError as exc:
            raise TypeMismatchError("invalid range for %s: %s" % (name, exc))
        attr["range"] = [int(min), int(max)]

    elif type == "float":
        split_index = attrstr.find("<")
        if split_index >= 0:
            units, range = attrstr[:split_index], attrstr[split_index:]
        else:
            units, range = attrstr, ""
        try:
            min, max = parse_range(range, limit=FLOAT_LIMIT)
        except ValueError as exc:
            raise TypeMismatchError("invalid range for %s: %s" % (name, exc))
        attr["units"] = units.strip()
        attr["range"] = [min, max]

    elif type in ("opt", "enum"):
        type = "opt"
        if "|" not in attrstr:
            raise TypeMismatchError("options not specified for " + name)
        choices = [v.split('=', 1) for v in attrstr.split("|")]
        choices = [(v*2 if len(v) == 1 else v) for v in choices]
        attr["choices"] = [[v[0].strip(), v[1].strip()] for v in choices]

    elif type in ("str", "bool"):
        if attrstr:
            raise TypeMismatchError("No restrictions on type %s for parameter %s"
                                    % (type, name))

    else:
        raise TypeMismatchError("Invalid type %s for parameter %s" % (type, name))

    return type, attr


def parse_range(range, limit=inf):
    """
    Parse the range string *<min,max>*.

    *limit* sets the limiting value for the range, to use in place of inf or
    a missing limit.

    Returns (*min, max*), or *(-limit, limit)* if no range is provided.
    """
    range = range.strip()
    if range == "":
        return -limit, limit
    if not (range.startswith('<') and range.endswith('>') and "," in range):
        raise ValueError("expected <min, max>")
    minstr, maxstr = [v.strip() for v in range[1:-1].split(',', 1)]
    min = float(minstr) if minstr and minstr != "-inf" else -limit
    max = float(maxstr) if maxstr and maxstr != "inf" else limit
    if min > max:
        raise ValueError("min must not exceed max in (%g,%g)" % (min, max))
    if min < -limit:
        raise ValueError("min value %g must be more than %g" % (min, -limit))
    if max > limit:
        raise ValueError("max value %g must be less than %g" % (max, limit))
    return min, max


def validate(par, value):
    """
    Check the parameter value.

    Returns the value, possibly converted to the correct type.

    Raises :class:`TypeMismatchError` if the value has the wrong type and
    :class:`OutOfRangeError` if it falls outside the limits or choices.
    """
    datatype = par.datatype
    name = par.key

    if datatype == "float":
        value = _type_check(name, value, float)
        _range_check(name, value, par.typeattr["range"])

    elif datatype == "int":
        value = _type_check(name, value, int)
        _range_check(name, value, par.typeattr["range"])

    elif datatype == "opt":
        value = _type_check(name, value, str)
        choices = [c[0] for c in par.typeattr["choices"]]
        if value not in choices:
            raise OutOfRangeError("value %r not in choice list %s for %s"
                                  % (value, "|".join(choices), name))

    elif datatype == "str":
        value = _type_check(name, value, str)

    elif datatype == "bool":
        value = _type_check(name, value, bool)

    else:
        raise TypeMismatchError("no %s type check for %s" % (datatype, name))

    return value


def _range_check(name, value, range):
    min, max = range
    # NaN fails both comparisons and is rejected here
    if not min <= value <= max:
        raise OutOfRangeError("invalid value for %s, %s not in [%s, %s]"
                              % (name, value, min, max))


def _type_check(name, value, ptype):
    if isinstance(value, np.generic):
        value = value.item()
    if ptype is bool:
        if not isinstance(value, bool):
            raise TypeMismatchError("expected bool for %s but got %s"
                                    % (name, type(value).__name__))
        return value
    if isinstance(value, bool) and ptype in (int, float):
        raise TypeMismatchError("expected %s for %s but got bool"
                                % (ptype.__name__, name))
    if ptype is int and isinstance(value, float):
        if not value.is_integer():
            raise TypeMismatchError("expected int for %s but got %r"
                                    % (name, value))
        value = int(value)
    elif ptype is float and isinstance(value, int):
        value = float(value)
    elif ptype is str and isinstance(value, bytes):
        value = value.decode('utf-8')
    if not isinstance(value, ptype):
        raise TypeMismatchError("expected %s for %s but got %s"
                                % (ptype.__name__, name, type(value).__name__))
    return value


_identifier = re.compile(r"\A[A-Za-z_]\w*\Z")
def check_key(key):
    """
    Parameter keys double as kernel keyword names, so they must be valid
    python identifiers.
    """
    if not isinstance(key, str) or not _identifier.match(key):
        raise TypeMismatchError("invalid parameter key %r" % (key,))
    return key
