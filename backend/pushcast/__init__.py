"""Pushcast - push-notification campaign dispatcher."""

__version__ = "1.0.0"
