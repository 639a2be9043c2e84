"""Data collection interfaces for background refreshes."""

from .refresh_client import RefreshClient, RefreshError, RefreshResult

__all__ = ["RefreshClient", "RefreshError", "RefreshResult"]
