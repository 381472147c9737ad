"""Reservation charge computation and room availability engine."""

__version__ = "1.0.0"
