"""Status probe: one read of an attachment's current state."""

from __future__ import annotations

from typing import Callable

from vpnattach.client.base import AttachmentClient
from vpnattach.errors import AttachmentNotFoundError
from vpnattach.reconciler.states import Observation

Probe = Callable[[], Observation]


class AttachmentStatusProbe:
    """
    Adapts an AttachmentClient into a single-shot state read.

    A not-found answer is reported as an absent observation rather than an
    error. Every other client error, including EmptyResultError, propagates.
    """

    def __init__(self, client: AttachmentClient, resource_id: str) -> None:
        self.client = client
        self.resource_id = resource_id
        self.calls = 0

    def __call__(self) -> Observation:
        self.calls += 1
        try:
            record = self.client.get(self.resource_id)
        except AttachmentNotFoundError:
            return Observation.absent()
        return Observation.of(record)
