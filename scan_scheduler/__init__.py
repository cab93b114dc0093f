"""Scan Scheduler - recurring security scans with a polling daemon."""

__version__ = "0.1.0"
