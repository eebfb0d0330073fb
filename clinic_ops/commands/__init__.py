"""Runnable operator commands, one module per task."""
