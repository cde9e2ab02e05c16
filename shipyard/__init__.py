"""Release pipeline for a signed, notarized desktop application."""

__version__ = "0.3.0"
