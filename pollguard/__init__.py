"""PollGuard - request-security layer for the polling web application."""

__version__ = "0.1.0"
