import copy
import importlib
import logging

from .core import load_transforms
from .errors import ConfigurationError
from . import calc
from traceflow.configurations import default

DEFAULT_CONFIG = copy.deepcopy(default.config)

def load_update(name="config_overrides"):
    """
    Load named configuration from traceflow.configurations folder, and update
    a copy of default configuration with user settings
    """
    config_module = importlib.import_module("traceflow.configurations.{name}".format(name=name))
    config_overrides = copy.deepcopy(config_module.config)
    config = copy.deepcopy(DEFAULT_CONFIG)
    config.update(config_overrides)
    return config

def load_config(name="config", fallback=True):
    """
    Look for configurations defined in the configurations directory
    if the name is not found, use the default config if fallback==True
    """
    try:
        config_module = importlib.import_module("traceflow.configurations.{name}".format(name=name))
        return copy.deepcopy(config_module.config)
    except ImportError:
        if fallback:
            return copy.deepcopy(DEFAULT_CONFIG)
        else:
            raise

def apply_config(user_config=None, user_overrides=None):
    if user_config is not None:
        config = copy.deepcopy(user_config)
    else:
        config = copy.deepcopy(DEFAULT_CONFIG)

    if user_overrides is not None:
        config.update(user_overrides)

    workers = config.get("workers", calc.DEFAULT_WORKERS)
    if not isinstance(workers, int) or isinstance(workers, bool) or workers <= 0:
        raise ConfigurationError("workers must be a positive integer, got %r"
                                 % (workers,))
    calc.DEFAULT_WORKERS = workers

    log_level = config.get("log_level", None)
    if log_level is not None:
        logging.basicConfig(level=log_level)
        logging.getLogger().setLevel(log_level)

    # Load the basic transforms if nothing specified in config.
    for family in config.get("transforms", ["basic"]):
        load_transforms(family)

    return config
