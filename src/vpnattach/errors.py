"""Error taxonomy for VPN attachment lifecycle operations.

Every error names the attachment and the operation that failed, so a
message read out of a CI log is enough to find the resource again.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Optional

if TYPE_CHECKING:
    from vpnattach.models.attachment import AttachmentState, VpnAttachment


class AttachmentError(Exception):
    """Base class for all attachment lifecycle failures."""

    def __init__(self, resource_id: str, operation: str, message: str) -> None:
        self.resource_id = resource_id
        self.operation = operation
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"{self.operation} VPN attachment ({self.resource_id or 'unassigned'}): {self.message}"


class AttachmentNotFoundError(AttachmentError):
    """The remote service reports that the attachment does not exist."""

    def __init__(self, resource_id: str, operation: str, message: str = "not found") -> None:
        super().__init__(resource_id, operation, message)


class EmptyResultError(AttachmentError):
    """The service answered, but the payload held no usable attachment."""

    def __init__(self, resource_id: str, operation: str, message: str = "empty result") -> None:
        super().__init__(resource_id, operation, message)


class UnexpectedStateError(AttachmentError):
    """The attachment reached a state outside both the pending and target sets."""

    def __init__(
        self,
        resource_id: str,
        operation: str,
        state: str,
        expected: Iterable["AttachmentState"] = (),
    ) -> None:
        self.state = state
        self.expected = sorted(s.value for s in expected)
        super().__init__(
            resource_id,
            operation,
            f"unexpected state '{state}', wanted one of {', '.join(self.expected) or 'nothing'}",
        )


class WaitTimeoutError(AttachmentError):
    """The deadline passed while the attachment was still transitioning."""

    def __init__(
        self,
        resource_id: str,
        operation: str,
        timeout: float,
        last_state: Optional["AttachmentState"] = None,
        last_record: Optional["VpnAttachment"] = None,
    ) -> None:
        self.timeout = timeout
        self.last_state = last_state
        self.last_record = last_record
        state = last_state.value if last_state is not None else "none"
        super().__init__(
            resource_id,
            operation,
            f"timeout while waiting for state change (last state: '{state}', timeout: {timeout:g}s)",
        )


class WaitCancelledError(AttachmentError):
    """The caller cancelled the wait before it resolved."""

    def __init__(self, resource_id: str, operation: str) -> None:
        super().__init__(resource_id, operation, "wait cancelled")


class TransportError(AttachmentError):
    """Opaque failure from the remote client. Never retried here."""

    def __init__(self, resource_id: str, operation: str, cause: Any) -> None:
        self.cause = cause
        super().__init__(resource_id, operation, str(cause))


class DeleteGuardError(AttachmentError):
    """Deletion refused because an external acceptance step is outstanding."""

    def __init__(self, resource_id: str, state: "AttachmentState") -> None:
        self.state = state
        super().__init__(
            resource_id,
            "delete",
            f"cannot delete in {state.value} state; the attachment must be accepted first",
        )
