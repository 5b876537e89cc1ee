"""Metric derivation and cross-repository aggregation."""

from .processor import process_data

__all__ = ["process_data"]
