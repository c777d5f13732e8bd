"""Dashboard module."""
