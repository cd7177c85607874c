"""Nodes that load tables."""
