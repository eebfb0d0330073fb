"""Maintenance, reconciliation and seeding tools for the clinic platform."""

__version__ = "0.1.0"
