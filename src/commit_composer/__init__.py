"""Automatic git commits with AI-generated messages."""

__version__ = "0.3.0"
