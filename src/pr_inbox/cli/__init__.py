"""Command-line interface for PR Inbox."""

from .app import app

__all__ = ["app"]
