"""HRMS API — employee records, attendance, leave, scheduling and reporting."""

__version__ = "1.0.0"
