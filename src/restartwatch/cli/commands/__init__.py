# restartwatch/cli/commands: Command modules for the restartwatch CLI.

from .daemon import kill, restart, run_config, wait_up

__all__ = [
    "kill",
    "restart",
    "run_config",
    "wait_up",
]
