"""Tally: group, aggregate, sort and transpose text tables."""

__version__ = "0.1.0"
