"""Affiliate offer synchronization."""

__version__ = "0.1.0"
