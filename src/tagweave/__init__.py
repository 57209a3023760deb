"""tagweave - tag association store, reports and tag clouds."""

__version__ = "0.1.0"
