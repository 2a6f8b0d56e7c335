"""Lifecycle operations for VPN attachments."""

from vpnattach.lifecycle.orchestrator import AttachmentLifecycle

__all__ = ["AttachmentLifecycle"]
