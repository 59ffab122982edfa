"""
Attach context to an exception on its way up the stack.

For example::

    try:
        transform = auto_transform(kernel)
    except ValueError as exc:
        annotate_exception("while declaring transform " + kernel.__name__, exc)
        raise

The exception keeps its class, so callers that catch a specific error
still see it, but the message now says where it happened.
"""
import sys


def annotate_exception(msg, exc=None):
    """
    Append *msg* to the message of *exc*, or of the exception currently
    being handled if *exc* is not given.

    Re-raise with a bare *raise* to forward the annotated exception.
    """
    if exc is None:
        exc = sys.exc_info()[1]

    args = exc.args
    if not args:
        exc.args = (msg,)
    elif isinstance(args[0], str):
        exc.args = (" ".join((args[0], msg)),) + tuple(args[1:])
    else:
        exc.args = args + (msg,)
