"""Wait specifications, observations and outcomes for the reconciler."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterable, Optional, Union

from vpnattach.errors import AttachmentError, WaitTimeoutError
from vpnattach.models import AttachmentState, VpnAttachment

# Cadence defaults, overridden from PollingConfig by the lifecycle
DEFAULT_MIN_INTERVAL = 0.5  # seconds
DEFAULT_MAX_INTERVAL = 10.0  # seconds
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_NOT_FOUND_CHECKS = 20
DEFAULT_NOT_FOUND_TOLERANCE = 1


class WaitPhase(Enum):
    """States of a wait operation (not of the attachment)."""

    POLLING = auto()

    # Terminal states
    RESOLVED = auto()
    TIMED_OUT = auto()
    FAILED = auto()

    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self is not WaitPhase.POLLING


@dataclass(frozen=True)
class Observation:
    """One probe result: the record (None when absent) and its state."""

    record: Optional[VpnAttachment]
    state: AttachmentState

    @classmethod
    def absent(cls) -> "Observation":
        return cls(record=None, state=AttachmentState.ABSENT)

    @classmethod
    def of(cls, record: VpnAttachment) -> "Observation":
        return cls(record=record, state=record.state)

    @property
    def is_absent(self) -> bool:
        return self.state is AttachmentState.ABSENT

    @property
    def raw_state(self) -> str:
        """State string as reported, for error messages."""
        if self.record is not None and self.record.raw_state:
            return self.record.raw_state
        return self.state.value


@dataclass(frozen=True)
class WaitSpec:
    """
    What a wait is waiting for.

    An empty ``target`` means the wait succeeds once the attachment is gone.

    Attributes:
        pending: States that keep the wait polling
        target: States that resolve the wait
        timeout: Seconds until the wait gives up
        not_found_tolerance: Consecutive absences that resolve a delete wait
        not_found_checks: Consecutive absences tolerated by any other wait
        delay: Seconds before the first probe
        min_interval: First pause between probes
        max_interval: Cap for the growing pause
        backoff_factor: Growth of the pause after each unresolved probe
    """

    pending: frozenset[AttachmentState]
    target: frozenset[AttachmentState]
    timeout: float
    not_found_tolerance: int = DEFAULT_NOT_FOUND_TOLERANCE
    not_found_checks: int = DEFAULT_NOT_FOUND_CHECKS
    delay: float = 0.0
    min_interval: float = DEFAULT_MIN_INTERVAL
    max_interval: float = DEFAULT_MAX_INTERVAL
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR

    def __post_init__(self) -> None:
        # Accept any iterable for the state sets
        object.__setattr__(self, "pending", frozenset(self.pending))
        object.__setattr__(self, "target", frozenset(self.target))

        overlap = self.pending & self.target
        if overlap:
            raise ValueError(
                f"pending and target overlap: {sorted(s.value for s in overlap)}"
            )
        local = {s for s in self.pending | self.target if not s.is_remote()}
        if local:
            raise ValueError(f"local-only states cannot be awaited: {sorted(s.value for s in local)}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.not_found_tolerance < 1:
            raise ValueError(f"not_found_tolerance must be at least 1, got {self.not_found_tolerance}")
        if self.not_found_checks < 0:
            raise ValueError(f"not_found_checks must not be negative, got {self.not_found_checks}")
        if self.min_interval <= 0 or self.max_interval < self.min_interval:
            raise ValueError(
                f"invalid poll interval range [{self.min_interval}, {self.max_interval}]"
            )
        if self.backoff_factor < 1.0:
            raise ValueError(f"backoff_factor must be at least 1.0, got {self.backoff_factor}")

    @property
    def waits_for_absence(self) -> bool:
        """Delete-style wait: resolved by the attachment disappearing."""
        return not self.target

    @property
    def expected(self) -> frozenset[AttachmentState]:
        return self.pending | self.target

    @classmethod
    def for_create(cls, timeout: float, **cadence) -> "WaitSpec":
        """Wait after create. Pending acceptance counts as done."""
        return cls(
            pending=frozenset({
                AttachmentState.CREATING,
                AttachmentState.PENDING_NETWORK_UPDATE,
            }),
            target=frozenset({
                AttachmentState.AVAILABLE,
                AttachmentState.PENDING_ATTACHMENT_ACCEPTANCE,
            }),
            timeout=timeout,
            **cadence,
        )

    @classmethod
    def for_delete(cls, timeout: float, not_found_tolerance: int = 1, **cadence) -> "WaitSpec":
        """Wait after delete until the attachment is gone."""
        return cls(
            pending=frozenset({AttachmentState.DELETING}),
            target=frozenset(),
            timeout=timeout,
            not_found_tolerance=not_found_tolerance,
            **cadence,
        )

    @classmethod
    def for_available(cls, timeout: float, **cadence) -> "WaitSpec":
        """Wait until the attachment is fully available."""
        return cls(
            pending=frozenset({
                AttachmentState.CREATING,
                AttachmentState.PENDING_ATTACHMENT_ACCEPTANCE,
                AttachmentState.PENDING_NETWORK_UPDATE,
            }),
            target=frozenset({AttachmentState.AVAILABLE}),
            timeout=timeout,
            **cadence,
        )


@dataclass(frozen=True)
class Resolved:
    """The wait reached a target state (or absence, for delete waits)."""

    record: Optional[VpnAttachment]
    state: AttachmentState
    probes: int

    @property
    def phase(self) -> WaitPhase:
        return WaitPhase.RESOLVED

    def unwrap(self) -> Optional[VpnAttachment]:
        return self.record


@dataclass(frozen=True)
class TimedOut:
    """The deadline passed while the attachment was still transitioning."""

    resource_id: str
    operation: str
    timeout: float
    record: Optional[VpnAttachment]
    state: Optional[AttachmentState]
    probes: int

    @property
    def phase(self) -> WaitPhase:
        return WaitPhase.TIMED_OUT

    def to_error(self) -> WaitTimeoutError:
        return WaitTimeoutError(
            self.resource_id,
            self.operation,
            self.timeout,
            last_state=self.state,
            last_record=self.record,
        )

    def unwrap(self) -> Optional[VpnAttachment]:
        raise self.to_error()


@dataclass(frozen=True)
class Failed:
    """The wait stopped on an error: probe failure, bad state or cancellation."""

    error: AttachmentError
    probes: int

    @property
    def phase(self) -> WaitPhase:
        return WaitPhase.FAILED

    def unwrap(self) -> Optional[VpnAttachment]:
        raise self.error


Outcome = Union[Resolved, TimedOut, Failed]


def describe_states(states: Iterable[AttachmentState]) -> list[str]:
    """Sorted wire values, for log fields."""
    return sorted(s.value for s in states)
