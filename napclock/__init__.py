"""napclock -- a pomodoro clock that alternates work sessions and naps."""

__version__ = "0.1.0"
