"""Release build and distribution reconciliation engine."""

__version__ = "0.1.0"
