"""Workday check-in recording and reminder scheduling."""

__version__ = "0.1.0"
