"""School library circulation engine."""

__version__ = "0.1.0"
