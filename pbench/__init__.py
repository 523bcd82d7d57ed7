"""Presto benchmark helpers: config generation, decimal rounding, result comparison and logging."""

__version__ = "0.1.0"