"""Remote storage clients."""

from .base import (
    BaseRemoteClient,
    RemoteNode,
    RemoteNodeTree,
    NodeType,
    TransferResult,
    RemoteClientError,
    AuthenticationError,
    RemoteConnectionError,
    RateLimitError
)

from .google_drive import GoogleDriveClient, build_fingerprint
from .factory import RemoteClientFactory

__all__ = [
    # Base classes and exceptions
    "BaseRemoteClient",
    "RemoteNode",
    "RemoteNodeTree",
    "NodeType",
    "TransferResult",
    "RemoteClientError",
    "AuthenticationError",
    "RemoteConnectionError",
    "RateLimitError",

    # Client implementations
    "GoogleDriveClient",
    "build_fingerprint",

    # Factory
    "RemoteClientFactory"
]
