"""Records behaviour-driven browser test runs as replayable traces."""

__version__ = "0.1.0"
