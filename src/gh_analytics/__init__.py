"""Collect GitHub repository activity and summarise it across repositories."""

__version__ = "1.0.0"
