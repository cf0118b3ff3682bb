"""Notification intake, importance tracking and re-alert agent."""

__version__ = "0.1.0"
