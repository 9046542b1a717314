"""plan-dispatch: versioned plans behind a single op-dispatch endpoint."""

__version__ = "0.1.0"
