"""restartwatch - verify cluster daemons recover cleanly after a forced restart."""

__version__ = "0.1.0"
