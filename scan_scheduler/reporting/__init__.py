"""Terminal output."""

from .console import ConsoleReporter

__all__ = ["ConsoleReporter"]
