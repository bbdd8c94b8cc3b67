"""PR Inbox - pull request sync and attention engine."""

__version__ = "0.1.0"
