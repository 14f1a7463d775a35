"""BackgroundTimer: background countdown timers that outlive the terminal."""

__version__ = "1.0.0"
