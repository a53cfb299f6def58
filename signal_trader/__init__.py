"""Periodic signal-driven trading control loop."""

__version__ = "0.1.0"
