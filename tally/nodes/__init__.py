"""Pipeline node types."""
