"""Kyooar feedback console: API client, session state and page guards."""

__version__ = "0.1.0"
