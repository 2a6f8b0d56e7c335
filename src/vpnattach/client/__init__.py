"""Remote clients for Network Manager attachments."""

from vpnattach.client.base import AttachmentClient
from vpnattach.client.networkmanager import NetworkManagerClient, create_client

__all__ = [
    "AttachmentClient",
    "NetworkManagerClient",
    "create_client",
]
