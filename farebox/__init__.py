"""Farebox - real-time driving fare meter."""

__version__ = "0.1.0"
