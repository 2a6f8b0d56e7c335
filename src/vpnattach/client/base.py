"""Remote client interface for attachment operations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping

from vpnattach.models import VpnAttachment


class AttachmentClient(ABC):
    """
    The calls the lifecycle needs from the remote service.

    Implementations raise ``AttachmentNotFoundError`` when the service reports
    the attachment missing, ``EmptyResultError`` for an unusable payload and
    ``TransportError`` for everything else.
    """

    @abstractmethod
    def create(self, core_network_id: str, vpn_arn: str, tags: Mapping[str, str]) -> str:
        """
        Create an attachment.

        Returns:
            The attachment ID assigned by the service
        """

    @abstractmethod
    def get(self, resource_id: str) -> VpnAttachment:
        """Fetch the current attachment record."""

    @abstractmethod
    def delete(self, resource_id: str) -> None:
        """Request deletion. A missing attachment is not an error."""

    @abstractmethod
    def update_tags(
        self,
        resource_id: str,
        old_tags: Mapping[str, str],
        new_tags: Mapping[str, str],
    ) -> None:
        """Replace the attachment's tags with ``new_tags``."""
