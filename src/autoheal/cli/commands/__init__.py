# autoheal/cli/commands: Command modules for the autoheal CLI.
#
# Each module in this package provides one or more CLI commands.

from .cycle import cycle, watch
from .decide import decide, record_choice
from .detect import detect, report_error
from .patterns import patterns_app

__all__ = [
    # cycle.py
    "cycle",
    "watch",
    # decide.py
    "decide",
    "record_choice",
    # detect.py
    "detect",
    "report_error",
    # patterns.py
    "patterns_app",
]
