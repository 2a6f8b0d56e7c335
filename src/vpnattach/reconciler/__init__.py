"""State-polling reconciler for asynchronously provisioned attachments.

Network Manager finishes attachment changes well after the mutating call
returns. A wait polls a status probe and classifies each observed state
against the pending and target sets of a WaitSpec:

    POLLING --(state in target, or gone when target is empty)--> RESOLVED
       |
       +--(deadline passes)--> TIMED_OUT
       |
       +--(probe error, unmodeled state, cancel)--> FAILED

The same engine serves create, delete and availability waits; only the
WaitSpec differs.
"""

from vpnattach.reconciler.machine import StateReconciler, wait_for_state
from vpnattach.reconciler.probe import AttachmentStatusProbe, Probe
from vpnattach.reconciler.states import (
    Failed,
    Observation,
    Outcome,
    Resolved,
    TimedOut,
    WaitPhase,
    WaitSpec,
)

__all__ = [
    # States
    "WaitPhase",
    "WaitSpec",
    "Observation",
    "Outcome",
    "Resolved",
    "TimedOut",
    "Failed",
    # Probe
    "Probe",
    "AttachmentStatusProbe",
    # Machine
    "StateReconciler",
    "wait_for_state",
]
