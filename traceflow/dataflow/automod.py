"""
Generate transform definitions from kernel declarations.

:func:`make_transforms` defines the transforms of a family given a list of
kernel functions.  The doc strings of the kernels define the interface.

Kernels are marked with decorators:

    *@transform* collects the kernel for :func:`get_kernels`.

    *@serial* declares that the kernel writes state shared between
    positions, so it must never run concurrently.

    *@handles_undefined* declares that the kernel receives undefined (NaN)
    samples and decides itself what to do with them, rather than having
    undefined propagated to the output.

    *@update_rule(function, watch)* attaches the parameter enablement rule.
"""
import inspect
import re

from .anno_exc import annotate_exception
from .core import Transform, UpdateRule
from .errors import ConfigurationError
from .params import Parameter, FIELD_TYPES, _unsplit_name
from .rst2html import rst2html


def transform(tag=""):
    """
    Decorator adds *group=tag* as an attribute to the function.

    This marks a kernel as a transform to be included in the list of
    transforms for the family.  If used as a bare decorator then the tag
    defaults to "".

    For example::

        @transform
        def kernel(input, par=1.0):
            ...

    Kernels can be retrieved from a python module using :func:`get_kernels`.
    """
    # Called as @transform
    if callable(tag):
        tag.group = ""
        return tag

    # Called as @transform("tag")
    def wrapper(fn):
        fn.group = tag
        return fn
    return wrapper


def serial(kernel):
    """
    Decorator which marks the kernel as unsafe for parallel execution.
    """
    kernel.parallel_safe = False
    return kernel


def handles_undefined(kernel):
    """
    Decorator which passes undefined samples to the kernel instead of
    propagating them to the output.  The kernel docstring should say what
    it does with them.
    """
    kernel.undefined = "kernel"
    return kernel


def update_rule(function, watch=None):
    """
    Decorator which attaches a parameter enablement rule to the kernel.

    *function(values)* receives *{key: value}* for all parameters and
    returns *{key: enabled}* for the parameters it controls.  *watch*
    lists the keys whose changes re-evaluate the rule, or None for all.

    For example::

        def _power_only(values):
            return {"exponent": values["mode"] == "power"}

        @transform
        @update_rule(_power_only, watch=["mode"])
        def kernel(input, mode="linear", exponent=2.0):
            ...
    """
    def wrapper(kernel):
        kernel.update_rule = UpdateRule(function, watch)
        return kernel
    return wrapper


def get_kernels(module, sorted=True):
    """
    Retrieve @transform kernels from a python module.

    If *sorted*, sort the kernels by name, otherwise they appear in
    definition order.
    """
    kernels = [
        fn for name, fn in vars(module).items()
        if callable(fn) and hasattr(fn, 'group')
    ]
    if sorted:
        kernels.sort(key=lambda fn: fn.__name__)
    return kernels


def make_transforms(kernels, prefix=""):
    """
    Convert a list of kernel functions into transforms using auto_transform.

    All ids are prefixed with prefix.
    """
    transforms = []
    for kernel in kernels:
        definition = auto_transform(kernel)
        definition['id'] = prefix + definition['id']
        transforms.append(Transform(**definition))
    return transforms


def auto_transform(kernel):
    """
    Given a kernel function, parse the docstring and return the transform
    definition.

    The docstring is highly stylized.

    The description is first.  It can span multiple lines.

    The parameter sections are ``**Inputs**`` and ``**Returns**``.
    These must occur on a line by themselves, with the ``**...**`` markup
    to make them show up bold in the sphinx docs.  The Inputs are split
    into input slots and parameters depending on whether a default value
    is given in the function definition.

    Each entry has name, optional {label}, type in (parentheses), then ':'
    and a description string.  The definition can span multiple lines, but
    the description will be joined to a single line.

    Input slots name their data kind, such as *(trace)*.  If the slot is
    optional, mark the kind with '?' as in *(trace?)*; an optional slot
    which is not bound reads as undefined samples.

    Parameter types are given by the grammar of
    :func:`.params.parse_datatype`, and the default comes from the keyword
    argument in the function definition.

    Returns must list exactly one output, whose type is the output kind.

    The docstring ends with a line giving the date of the last change to
    the calculation and the author.  The date is used as the version.

    For example::

        @transform
        def scale(input, factor=1.0):
            \"""
            Multiply each sample by a constant.

            **Inputs**

            input (trace): trace to scale

            factor (float:<-1000,1000>): scale factor

            **Returns**

            output (trace): scaled trace

            2024-05-02 traceflow
            \"""
            return factor*input
    """
    try:
        return _parse_function(kernel)
    except ValueError as exc:
        annotate_exception("while declaring transform " + kernel.__name__, exc)
        raise


timestamp = re.compile(r"^(?P<date>[0-9]{4}-[0-9]{2}-[0-9]{2})\s+(?P<author>.*?)\s*$")
def _parse_function(kernel):
    # grab arguments and defaults from the function definition
    argspec = inspect.getfullargspec(kernel)
    args = argspec.args
    defaults = (dict(zip(args[-len(argspec.defaults):], argspec.defaults))
                if argspec.defaults else {})
    if (argspec.varargs is not None or argspec.varkw is not None
            or argspec.kwonlyargs):
        raise ConfigurationError("function contains *args, **kwargs or keyword only arguments")

    docstr = inspect.getdoc(kernel)
    if not docstr:
        raise ConfigurationError("missing docstring")

    # Split docstring into sections
    description_lines = []
    input_lines = []
    output_lines = []
    version, author = "", ""
    state = 0 # processing description
    for line in docstr.split('\n'):
        match = timestamp.match(line)
        stripped = line.strip()
        if match is not None:
            state = 3
            version = match.group('date')
            author = match.group('author')
        elif stripped == "**Inputs**":
            state = 1
        elif stripped == "**Returns**":
            state = 2
        elif state == 0:
            description_lines.append(line)
        elif state == 1:
            input_lines.append(line)
        elif state == 2:
            output_lines.append(line)
        elif stripped:
            raise ConfigurationError("docstring continues after time stamp")

    # parse the sections
    name = _unsplit_name(kernel.__name__)
    heading = "\n".join(("="*len(name), name, "="*len(name), ""))
    description = rst2html(heading + "\n".join(description_lines),
                           part="whole", math_output="mathjax")
    inputs = parse_parameters(input_lines)
    outputs = parse_parameters(output_lines)

    # Check that all defined arguments are described
    defined = set(args)
    described = set(p['id'] for p in inputs)
    if defined-described:
        raise ConfigurationError("Parameters defined but not described: "
                                 + ",".join(sorted(defined-described)))
    if described-defined:
        raise ConfigurationError("Parameters described but not defined: "
                                 + ",".join(sorted(described-defined)))
    if len(outputs) != 1:
        raise ConfigurationError("transform must return exactly one output")

    # Split parameters into input slots (positional) and fields (keyword)
    slots = []
    fields = []
    for p in inputs:
        if p['id'] in defaults:
            fields.append(_make_field(p, defaults[p['id']]))
        else:
            slots.append(_make_slot(p))
    output = outputs[0]
    if output['optional'] or output['datatype'] in FIELD_TYPES:
        raise ConfigurationError("Invalid output type %s" % output['datatype'])

    rule = getattr(kernel, 'update_rule', None)
    if rule is not None:
        _check_rule(rule, fields)

    return {
        'id': kernel.__name__,
        'name': name,
        'kernel': kernel,
        'kernel_id': kernel.__module__ + "." + kernel.__name__,
        'description': description,
        'inputs': slots,
        'fields': fields,
        'output': {
            'id': output['id'],
            'datatype': output['datatype'],
            'description': output['description'],
        },
        'version': version,
        'author': author,
        'parallel_safe': getattr(kernel, 'parallel_safe', True),
        'undefined': getattr(kernel, 'undefined', "propagate"),
        'update_rule': rule,
    }


def _make_slot(p):
    if p['datatype'] in FIELD_TYPES or p['typeattr']:
        raise ConfigurationError("Invalid type %s for input %s; missing default?"
                                 % (p['datatype'], p['id']))
    return {
        'id': p['id'],
        'label': p['label'],
        'datatype': p['datatype'],
        'required': not p['optional'],
        'description': p['description'],
    }


def _make_field(p, default):
    if p['optional']:
        raise ConfigurationError("parameter %s cannot be optional" % p['id'])
    if default is None:
        raise ConfigurationError("parameter %s needs a default" % p['id'])
    spec = p['datatype']
    if p['typeattr']:
        spec += ":" + p['typeattr']
    # Note: from_spec checks the default against the declared type
    return Parameter.from_spec(p['id'], spec, default,
                               label=p['label'], description=p['description'])


def _check_rule(rule, fields):
    keys = set(p.key for p in fields)
    if rule.watch is not None and rule.watch - keys:
        raise ConfigurationError("update rule watches unknown parameters: "
                                 + ",".join(sorted(rule.watch - keys)))
    values = dict((p.key, p.default) for p in fields)
    named = set(key for key, _ in rule(values))
    if named - keys:
        raise ConfigurationError("update rule sets unknown parameters: "
                                 + ",".join(sorted(named - keys)))


# parameter definition regular expression
parameter_re = re.compile(r"""\A
    \s*(?P<id>\w+)                           # name
    \s*(\{\s*(?P<label>.*?)\s*\})?           # { label }    (optional)
    \s*(\(                                   # (
        \s*(?P<datatype>[a-z_][\w.]*)        #    datatype
        \s*(?P<optional>[?])?                #    optional  (inputs only)
        \s*(:\s*(?P<typeattr>.*?))?          #    :typeattr (optional)
    \s*\))?                                  # )
    \s*:                                     # :
    \s*(?P<description>.*?)                  # description  (non-greedy)
    \s*\Z""", re.VERBOSE)
def parse_parameters(lines):
    """
    Interpret the doc strings for the parameters.

    Each parameter must use the form defined by the following syntax:

        id {label} (type?:attr): description

    The *(type)* specifier is optional, defaulting to str.  The *?* marks
    an optional input slot.

    *lines* is the set of lines after ``**Inputs**`` and ``**Returns**``.
    Note that parameters are defined by consecutive non-blank lines separated
    by blank lines.  :func:`get_paragraphs` is used to gather all of the
    relevant lines together, skipping the blank bits.
    """
    ret = []
    for group in get_paragraphs(lines):
        s = " ".join(s.strip() for s in group)
        match = parameter_re.match(s)
        if match is None:
            raise ConfigurationError("unable to parse parameter:\n  "+"  ".join(group))
        d = match.groupdict()
        d['optional'] = d['optional'] is not None
        if d['datatype'] is None:
            d['datatype'] = "str"
        if d['label'] is None:
            d['label'] = _unsplit_name(d['id'])
        ret.append(d)
    return ret


def get_paragraphs(lines):
    """
    Yield a list of paragraphs defined as lines separated by blank lines.

    Each paragraph is returned as a list of lines.
    """
    group = []
    for line in lines:
        if line.strip() == "":
            if group:
                yield group
            group = []
        else:
            group.append(line)
    if group:
        yield group
