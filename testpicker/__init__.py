"""Fuzzy test block picker for Julia test suites."""

__version__ = "0.4.0"
