"""Nodes that transform tables."""
