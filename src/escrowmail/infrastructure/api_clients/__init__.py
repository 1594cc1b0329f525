"""
External HTTP API clients.
"""

from .base import APIClient, APIError
from .remote_transfer_client import RemoteTransferService

__all__ = ["APIClient", "APIError", "RemoteTransferService"]
