"""Scheduling module — shifts and schedule assignments."""
