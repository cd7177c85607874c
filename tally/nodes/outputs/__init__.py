"""Nodes that render tables."""
