"""Attendance module."""
