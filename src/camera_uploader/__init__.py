"""Unattended camera upload agent for remote storage accounts."""

__version__ = "1.0.0"
