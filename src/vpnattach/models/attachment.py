"""Data models for Cloud WAN site-to-site VPN attachments."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class AttachmentState(str, Enum):
    """
    Attachment states as reported by Network Manager.

    ABSENT and UNKNOWN never come off the wire: ABSENT is synthesized when
    the service says the attachment does not exist, UNKNOWN stands in for
    any value outside the documented vocabulary.
    """

    CREATING = "CREATING"
    PENDING_NETWORK_UPDATE = "PENDING_NETWORK_UPDATE"
    PENDING_ATTACHMENT_ACCEPTANCE = "PENDING_ATTACHMENT_ACCEPTANCE"
    PENDING_TAG_ACCEPTANCE = "PENDING_TAG_ACCEPTANCE"
    AVAILABLE = "AVAILABLE"
    UPDATING = "UPDATING"
    DELETING = "DELETING"
    REJECTED = "REJECTED"
    FAILED = "FAILED"

    # Local only
    ABSENT = "absent"
    UNKNOWN = "unknown"

    @classmethod
    def from_wire(cls, value: Optional[str]) -> "AttachmentState":
        """Parse a state string from an API payload."""
        if value in _REMOTE_VALUES:
            return cls(value)
        return cls.UNKNOWN

    def is_remote(self) -> bool:
        """Check if the service itself can report this state."""
        return self not in (AttachmentState.ABSENT, AttachmentState.UNKNOWN)


REMOTE_STATES: frozenset[AttachmentState] = frozenset(
    s for s in AttachmentState if s not in (AttachmentState.ABSENT, AttachmentState.UNKNOWN)
)
_REMOTE_VALUES = frozenset(s.value for s in REMOTE_STATES)

# States that only an external accept action can move an attachment out of
ACCEPTANCE_STATES: frozenset[AttachmentState] = frozenset({
    AttachmentState.PENDING_ATTACHMENT_ACCEPTANCE,
    AttachmentState.PENDING_TAG_ACCEPTANCE,
})


@dataclass(frozen=True)
class VpnAttachment:
    """
    Snapshot of a site-to-site VPN attachment.

    Attributes:
        attachment_id: ID assigned by Network Manager at creation
        state: Parsed state
        raw_state: State string exactly as the service reported it
        core_network_id: Parent core network
        resource_arn: ARN of the backing VPN connection
        tags: Read-only view of the tags on the attachment
    """

    attachment_id: str
    state: AttachmentState
    raw_state: str = ""
    core_network_id: Optional[str] = None
    core_network_arn: Optional[str] = None
    attachment_policy_rule_number: Optional[int] = None
    attachment_type: Optional[str] = None
    owner_account_id: Optional[str] = None
    edge_location: Optional[str] = None
    resource_arn: Optional[str] = None
    segment_name: Optional[str] = None
    tags: Mapping[str, str] = field(default_factory=dict, hash=False)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "VpnAttachment":
        """
        Create from a SiteToSiteVpnAttachment API structure.

        Args:
            payload: The ``SiteToSiteVpnAttachment`` member of a response

        Raises:
            KeyError: If the wrapped Attachment, its ID or its State is missing
            ValueError: If the State is empty
        """
        attachment = payload["Attachment"]
        raw_state = attachment["State"]
        if not raw_state:
            raise ValueError("attachment has an empty State")
        return cls(
            attachment_id=attachment["AttachmentId"],
            state=AttachmentState.from_wire(raw_state),
            raw_state=raw_state,
            core_network_id=attachment.get("CoreNetworkId"),
            core_network_arn=attachment.get("CoreNetworkArn"),
            attachment_policy_rule_number=attachment.get("AttachmentPolicyRuleNumber"),
            attachment_type=attachment.get("AttachmentType"),
            owner_account_id=attachment.get("OwnerAccountId"),
            edge_location=attachment.get("EdgeLocation"),
            resource_arn=attachment.get("ResourceArn") or payload.get("VpnConnectionArn"),
            segment_name=attachment.get("SegmentName"),
            tags={t["Key"]: t.get("Value", "") for t in attachment.get("Tags") or []},
            created_at=attachment.get("CreatedAt"),
            updated_at=attachment.get("UpdatedAt"),
        )

    def arn(self, partition: str = "aws") -> str:
        """Build the attachment ARN. Network Manager ARNs carry no region."""
        return (
            f"arn:{partition}:networkmanager::{self.owner_account_id or ''}"
            f":attachment/{self.attachment_id}"
        )

    def to_dict(self, partition: str = "aws") -> dict:
        """Flatten into the attribute set shown to callers."""
        return {
            "id": self.attachment_id,
            "arn": self.arn(partition),
            "attachment_policy_rule_number": self.attachment_policy_rule_number,
            "attachment_type": self.attachment_type,
            "core_network_arn": self.core_network_arn,
            "core_network_id": self.core_network_id,
            "edge_location": self.edge_location,
            "owner_account_id": self.owner_account_id,
            "resource_arn": self.resource_arn,
            "segment_name": self.segment_name,
            "state": self.raw_state or self.state.value,
            "tags": dict(self.tags),
            "vpn_arn": self.resource_arn,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class CreateAttachmentRequest:
    """Inputs for creating an attachment."""

    core_network_id: str
    vpn_arn: str
    tags: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.core_network_id:
            raise ValueError("core_network_id is required")
        if not self.vpn_arn.startswith("arn:"):
            raise ValueError(f"vpn_arn is not a valid ARN: {self.vpn_arn!r}")
