"""vpnattach - lifecycle management for Cloud WAN site-to-site VPN attachments."""

__version__ = "0.3.0"
