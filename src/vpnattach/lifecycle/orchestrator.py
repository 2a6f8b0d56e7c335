"""Attachment lifecycle: mutating calls followed by reconciler waits."""

from __future__ import annotations

import asyncio
from typing import Iterable, Mapping, Optional, Union

from vpnattach.client.base import AttachmentClient
from vpnattach.config.settings import PollingConfig, TimeoutConfig
from vpnattach.errors import AttachmentError, AttachmentNotFoundError, DeleteGuardError
from vpnattach.models import ACCEPTANCE_STATES, CreateAttachmentRequest, VpnAttachment
from vpnattach.reconciler import AttachmentStatusProbe, StateReconciler, WaitSpec
from vpnattach.utils.logging import bind_operation, get_logger

logger = get_logger("lifecycle.orchestrator")


class AttachmentLifecycle:
    """
    Create, delete and wait on VPN attachments.

    The client is passed in explicitly; nothing here is shared between
    instances. Callers must not run overlapping create/delete operations on
    the same attachment ID; the outcome of doing so is undefined.
    """

    def __init__(
        self,
        client: AttachmentClient,
        timeouts: Optional[TimeoutConfig] = None,
        polling: Optional[PollingConfig] = None,
        reconciler: Optional[StateReconciler] = None,
    ) -> None:
        """
        Initialize the lifecycle.

        Args:
            client: Remote attachment client
            timeouts: Default per-operation timeouts
            polling: Polling cadence for waits
            reconciler: Wait engine (a fresh one if not given)
        """
        self.client = client
        self.timeouts = timeouts or TimeoutConfig()
        self.polling = polling or PollingConfig()
        self.reconciler = reconciler or StateReconciler()

    async def create_and_wait(
        self,
        request: CreateAttachmentRequest,
        timeout: Optional[float] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> VpnAttachment:
        """
        Create an attachment and wait for it to settle.

        The wait accepts PENDING_ATTACHMENT_ACCEPTANCE as well as AVAILABLE,
        since acceptance is an external step. An attachment whose wait fails
        or times out is left in place.

        Raises:
            AttachmentError: On create failure or an unsuccessful wait
        """
        timeout = timeout or self.timeouts.create

        with bind_operation("create"):
            logger.info(
                "attachment_create_started",
                core_network_id=request.core_network_id,
                vpn_arn=request.vpn_arn,
            )
            resource_id = await asyncio.to_thread(
                self.client.create,
                request.core_network_id,
                request.vpn_arn,
                dict(request.tags),
            )
            logger.info("attachment_created", resource_id=resource_id)

            outcome = await self.reconciler.wait(
                AttachmentStatusProbe(self.client, resource_id),
                WaitSpec.for_create(timeout, **self.polling.cadence()),
                resource_id=resource_id,
                operation="create",
                cancel=cancel,
            )
            return outcome.unwrap()

    async def delete_and_wait(
        self,
        resource_id: str,
        timeout: Optional[float] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> None:
        """
        Delete an attachment and wait until it is gone.

        Deleting an attachment that does not exist succeeds. Attachments
        waiting on acceptance are refused without any remote delete call.

        Raises:
            DeleteGuardError: If the attachment is pending acceptance
            AttachmentError: On any other failure
        """
        timeout = timeout or self.timeouts.delete

        with bind_operation("delete", resource_id):
            try:
                current = await asyncio.to_thread(self.client.get, resource_id)
            except AttachmentNotFoundError:
                logger.info("attachment_already_absent", resource_id=resource_id)
                return

            if current.state in ACCEPTANCE_STATES:
                logger.warning(
                    "delete_refused",
                    resource_id=resource_id,
                    state=current.raw_state,
                )
                raise DeleteGuardError(resource_id, current.state)

            logger.info("attachment_delete_started", resource_id=resource_id, state=current.raw_state)
            await asyncio.to_thread(self.client.delete, resource_id)

            outcome = await self.reconciler.wait(
                AttachmentStatusProbe(self.client, resource_id),
                WaitSpec.for_delete(
                    timeout,
                    not_found_tolerance=self.polling.delete_not_found_tolerance,
                    **self.polling.cadence(),
                ),
                resource_id=resource_id,
                operation="delete",
                cancel=cancel,
            )
            outcome.unwrap()
            logger.info("attachment_deleted", resource_id=resource_id)

    async def await_available(
        self,
        resource_id: str,
        timeout: Optional[float] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> VpnAttachment:
        """Wait for an attachment to become AVAILABLE."""
        timeout = timeout or self.timeouts.create

        with bind_operation("await available", resource_id):
            outcome = await self.reconciler.wait(
                AttachmentStatusProbe(self.client, resource_id),
                WaitSpec.for_available(timeout, **self.polling.cadence()),
                resource_id=resource_id,
                operation="await available",
                cancel=cancel,
            )
            return outcome.unwrap()

    async def read(self, resource_id: str) -> Optional[VpnAttachment]:
        """
        Read the current attachment.

        Returns:
            The record, or None if the attachment no longer exists
        """
        with bind_operation("read", resource_id):
            try:
                return await asyncio.to_thread(self.client.get, resource_id)
            except AttachmentNotFoundError:
                logger.warning("attachment_not_found", resource_id=resource_id)
                return None

    async def update_tags(
        self,
        resource_id: str,
        old_tags: Mapping[str, str],
        new_tags: Mapping[str, str],
    ) -> VpnAttachment:
        """Apply a tag change and re-read. Tag changes are not waited on."""
        with bind_operation("update", resource_id):
            if dict(old_tags) != dict(new_tags):
                await asyncio.to_thread(
                    self.client.update_tags,
                    resource_id,
                    dict(old_tags),
                    dict(new_tags),
                )
            return await asyncio.to_thread(self.client.get, resource_id)

    async def await_available_many(
        self,
        resource_ids: Iterable[str],
        timeout: Optional[float] = None,
        parallelism: int = 4,
    ) -> dict[str, Union[VpnAttachment, AttachmentError]]:
        """
        Wait on several attachments concurrently.

        Each wait is independent; one failing does not stop the others.

        Returns:
            Mapping of attachment ID to its record or the error it ended with
        """
        semaphore = asyncio.Semaphore(parallelism)
        results: dict[str, Union[VpnAttachment, AttachmentError]] = {}

        async def run_one(resource_id: str) -> None:
            async with semaphore:
                try:
                    results[resource_id] = await self.await_available(resource_id, timeout)
                except AttachmentError as e:
                    results[resource_id] = e

        ids = list(dict.fromkeys(resource_ids))
        logger.info("await_many_started", attachments=len(ids), parallelism=parallelism)
        await asyncio.gather(*(run_one(rid) for rid in ids))

        logger.info(
            "await_many_completed",
            total=len(ids),
            available=sum(1 for r in results.values() if isinstance(r, VpnAttachment)),
            failed=sum(1 for r in results.values() if isinstance(r, AttachmentError)),
        )
        return results
