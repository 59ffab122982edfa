from traceflow.dataflow import core as df
from traceflow.dataflow.automod import make_transforms, get_kernels

from . import steps

FAMILY = "basic"

def define_transforms(registry=None):
    # Define transforms
    transforms = make_transforms(get_kernels(steps, sorted=False),
                                 prefix=FAMILY+'.')

    # Register transforms
    df.register_transforms(transforms, registry=registry)
    return transforms
