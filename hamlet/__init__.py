"""Hamlet - socket-based Wave Function Collapse town generator."""

__version__ = "0.1.0"
