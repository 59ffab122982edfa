###########################################################
# copy this file to config.py in this directory to change #
# the settings for an installation                        #
###########################################################

config = {
    # threads used by process_positions for parallel safe transforms
    "workers": 4,

    # transform families to load into the process-wide registry; each
    # name refers to the package traceflow.<name>attr
    "transforms": ["basic"],

    # level for logging.basicConfig; None leaves logging unconfigured
    "log_level": "WARNING",
}
