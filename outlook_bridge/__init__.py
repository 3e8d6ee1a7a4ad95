"""Outlook bridge: Microsoft Graph access with managed OAuth credentials."""

__version__ = "0.1.0"
