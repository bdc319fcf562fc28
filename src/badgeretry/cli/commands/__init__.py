# badgeretry/cli/commands: Command modules for the badge-retry CLI.
#
# Each module in this package provides one or more CLI commands.

from .analyze import analyze
from .classify import classify, delay
from .config_cmd import config_app
from .history import history

__all__ = [
    # analyze.py
    "analyze",
    # classify.py
    "classify",
    "delay",
    # config_cmd.py
    "config_app",
    # history.py
    "history",
]
