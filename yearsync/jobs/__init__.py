"""Background jobs module."""
