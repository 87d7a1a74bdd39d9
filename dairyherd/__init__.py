"""Dairy herd lifecycle and breeding service."""

__version__ = "1.0.0"
