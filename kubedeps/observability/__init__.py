"""Logging and metrics for kubedeps."""
