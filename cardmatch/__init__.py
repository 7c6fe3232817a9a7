"""Hybrid purchase categorization and credit-card ranking engine."""

__version__ = "0.1.0"
