"""Pipeline registry and executor."""
