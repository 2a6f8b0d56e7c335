"""boto3 adapter for the Network Manager attachment API."""

from __future__ import annotations

import uuid
from typing import Any, Mapping, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from vpnattach.client.base import AttachmentClient
from vpnattach.errors import AttachmentNotFoundError, EmptyResultError, TransportError
from vpnattach.models import VpnAttachment
from vpnattach.utils.logging import get_logger

logger = get_logger("client.networkmanager")

NOT_FOUND_CODE = "ResourceNotFoundException"

# Network Manager is a global service homed in us-west-2
DEFAULT_REGION = "us-west-2"


def _error_code(err: ClientError) -> str:
    return err.response.get("Error", {}).get("Code", "")


class NetworkManagerClient(AttachmentClient):
    """
    Attachment client backed by a boto3 ``networkmanager`` client.

    Only the retries configured on the botocore client are performed;
    failures surface as ``TransportError``.
    """

    def __init__(self, client: Any, partition: str = "aws") -> None:
        """
        Initialize the adapter.

        Args:
            client: boto3 networkmanager client
            partition: AWS partition used when building attachment ARNs
        """
        self._client = client
        self.partition = partition

    def create(self, core_network_id: str, vpn_arn: str, tags: Mapping[str, str]) -> str:
        params: dict[str, Any] = {
            "CoreNetworkId": core_network_id,
            "VpnConnectionArn": vpn_arn,
            "ClientToken": str(uuid.uuid4()),
        }
        if tags:
            params["Tags"] = [{"Key": k, "Value": v} for k, v in tags.items()]

        logger.debug("create_attachment_request", core_network_id=core_network_id, vpn_arn=vpn_arn)
        try:
            output = self._client.create_site_to_site_vpn_attachment(**params)
        except (ClientError, BotoCoreError) as e:
            raise TransportError("", "create", e) from e

        try:
            return output["SiteToSiteVpnAttachment"]["Attachment"]["AttachmentId"]
        except (KeyError, TypeError) as e:
            raise EmptyResultError("", "create") from e

    def get(self, resource_id: str) -> VpnAttachment:
        try:
            output = self._client.get_site_to_site_vpn_attachment(AttachmentId=resource_id)
        except ClientError as e:
            if _error_code(e) == NOT_FOUND_CODE:
                raise AttachmentNotFoundError(resource_id, "get") from e
            raise TransportError(resource_id, "get", e) from e
        except BotoCoreError as e:
            raise TransportError(resource_id, "get", e) from e

        payload = (output or {}).get("SiteToSiteVpnAttachment")
        if not payload or not payload.get("Attachment"):
            raise EmptyResultError(resource_id, "get")

        try:
            return VpnAttachment.from_api(payload)
        except KeyError as e:
            raise EmptyResultError(resource_id, "get", f"malformed payload, missing {e}") from e
        except (TypeError, ValueError) as e:
            raise EmptyResultError(resource_id, "get", f"malformed payload: {e}") from e

    def delete(self, resource_id: str) -> None:
        logger.debug("delete_attachment_request", resource_id=resource_id)
        try:
            self._client.delete_attachment(AttachmentId=resource_id)
        except ClientError as e:
            if _error_code(e) == NOT_FOUND_CODE:
                logger.debug("delete_attachment_already_gone", resource_id=resource_id)
                return
            raise TransportError(resource_id, "delete", e) from e
        except BotoCoreError as e:
            raise TransportError(resource_id, "delete", e) from e

    def update_tags(
        self,
        resource_id: str,
        old_tags: Mapping[str, str],
        new_tags: Mapping[str, str],
    ) -> None:
        arn = self.get(resource_id).arn(self.partition)

        removed = [k for k in old_tags if k not in new_tags]
        changed = {k: v for k, v in new_tags.items() if old_tags.get(k) != v}

        try:
            if removed:
                self._client.untag_resource(ResourceArn=arn, TagKeys=removed)
            if changed:
                self._client.tag_resource(
                    ResourceArn=arn,
                    Tags=[{"Key": k, "Value": v} for k, v in changed.items()],
                )
        except (ClientError, BotoCoreError) as e:
            raise TransportError(resource_id, "update tags", e) from e

        logger.debug(
            "attachment_tags_updated",
            resource_id=resource_id,
            removed=len(removed),
            changed=len(changed),
        )


def create_client(
    region: str = DEFAULT_REGION,
    profile: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    partition: Optional[str] = None,
    max_attempts: int = 5,
) -> NetworkManagerClient:
    """
    Build a NetworkManagerClient from a fresh boto3 session.

    Args:
        region: AWS region for the API endpoint
        profile: Named profile from the shared credentials file
        endpoint_url: Override endpoint, e.g. a LocalStack URL
        partition: AWS partition (derived from region if not given)
        max_attempts: botocore retry budget per call

    Returns:
        Configured client adapter
    """
    session = boto3.Session(profile_name=profile, region_name=region)
    client = session.client(
        "networkmanager",
        endpoint_url=endpoint_url,
        config=Config(retries={"max_attempts": max_attempts, "mode": "standard"}),
    )
    return NetworkManagerClient(
        client,
        partition=partition or session.get_partition_for_region(region),
    )
