"""Task tracking module."""
