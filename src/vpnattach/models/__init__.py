"""Data models for vpnattach."""

from vpnattach.models.attachment import (
    ACCEPTANCE_STATES,
    REMOTE_STATES,
    AttachmentState,
    CreateAttachmentRequest,
    VpnAttachment,
)

__all__ = [
    "AttachmentState",
    "REMOTE_STATES",
    "ACCEPTANCE_STATES",
    "VpnAttachment",
    "CreateAttachmentRequest",
]
