"""State-polling reconciler: waits for an attachment to settle."""

from __future__ import annotations

import asyncio
from typing import Optional

from vpnattach.errors import (
    AttachmentError,
    AttachmentNotFoundError,
    TransportError,
    UnexpectedStateError,
    WaitCancelledError,
)
from vpnattach.reconciler.probe import Probe
from vpnattach.reconciler.states import (
    Failed,
    Observation,
    Outcome,
    Resolved,
    TimedOut,
    WaitSpec,
    describe_states,
)
from vpnattach.utils.logging import get_logger

logger = get_logger("reconciler.machine")


class StateReconciler:
    """
    Polls a probe until the observed state resolves a WaitSpec.

    The reconciler keeps no state between calls; one instance can serve any
    number of concurrent waits on different attachments.
    """

    async def wait(
        self,
        probe: Probe,
        spec: WaitSpec,
        *,
        resource_id: str,
        operation: str,
        cancel: Optional[asyncio.Event] = None,
    ) -> Outcome:
        """
        Poll until the wait resolves, times out or fails.

        Args:
            probe: Single-shot state read; runs in a worker thread
            spec: Pending/target states, deadline and cadence
            resource_id: Attachment being waited on, for errors and logs
            operation: Lifecycle operation name, for errors and logs
            cancel: Optional token; setting it ends the wait as Failed

        Returns:
            Resolved, TimedOut or Failed
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + spec.timeout
        log = logger.bind(resource_id=resource_id, operation=operation)

        log.debug(
            "wait_started",
            pending=describe_states(spec.pending),
            target=describe_states(spec.target) or "absent",
            timeout=spec.timeout,
        )

        last: Optional[Observation] = None
        probes = 0
        absences = 0
        interval = spec.min_interval

        def timed_out() -> TimedOut:
            outcome = TimedOut(
                resource_id=resource_id,
                operation=operation,
                timeout=spec.timeout,
                record=last.record if last else None,
                state=last.state if last else None,
                probes=probes,
            )
            log.warning(
                "wait_timed_out",
                last_state=last.raw_state if last else None,
                probes=probes,
                timeout=spec.timeout,
            )
            return outcome

        def cancelled() -> Failed:
            log.info("wait_cancelled", probes=probes)
            return Failed(WaitCancelledError(resource_id, operation), probes)

        if spec.delay > 0:
            if await self._pause(min(spec.delay, spec.timeout), cancel):
                return cancelled()

        while True:
            if loop.time() >= deadline:
                return timed_out()
            if cancel is not None and cancel.is_set():
                return cancelled()

            try:
                observation = await asyncio.to_thread(probe)
            except AttachmentError as e:
                probes += 1
                log.warning("probe_failed", error=str(e), error_type=type(e).__name__)
                return Failed(e, probes)
            except Exception as e:
                probes += 1
                log.warning("probe_failed", error=str(e), error_type=type(e).__name__)
                return Failed(TransportError(resource_id, operation, e), probes)
            probes += 1

            # A result that lands after the deadline is not acted on
            if loop.time() >= deadline:
                return timed_out()

            last = observation
            log.debug("probe_observed", state=observation.raw_state, probe=probes)

            if observation.state in spec.target:
                log.info("wait_resolved", state=observation.raw_state, probes=probes)
                return Resolved(observation.record, observation.state, probes)

            if observation.is_absent:
                absences += 1
                if spec.waits_for_absence:
                    if absences >= spec.not_found_tolerance:
                        log.info("wait_resolved", state="absent", probes=probes)
                        return Resolved(None, observation.state, probes)
                elif absences > spec.not_found_checks:
                    log.warning("wait_not_found", probes=probes, checks=spec.not_found_checks)
                    return Failed(
                        AttachmentNotFoundError(
                            resource_id,
                            operation,
                            f"not found after {absences} consecutive checks",
                        ),
                        probes,
                    )
            elif observation.state in spec.pending:
                absences = 0
            else:
                log.warning(
                    "wait_unexpected_state",
                    state=observation.raw_state,
                    expected=describe_states(spec.expected),
                )
                return Failed(
                    UnexpectedStateError(
                        resource_id,
                        operation,
                        observation.raw_state,
                        spec.expected,
                    ),
                    probes,
                )

            pause = min(interval, deadline - loop.time())
            if pause > 0 and await self._pause(pause, cancel):
                return cancelled()
            interval = min(interval * spec.backoff_factor, spec.max_interval)

    @staticmethod
    async def _pause(seconds: float, cancel: Optional[asyncio.Event]) -> bool:
        """
        Sleep, waking early if the cancel token is set.

        Returns:
            True if the token was set
        """
        if cancel is None:
            await asyncio.sleep(seconds)
            return False
        try:
            await asyncio.wait_for(cancel.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True


async def wait_for_state(
    probe: Probe,
    spec: WaitSpec,
    *,
    resource_id: str,
    operation: str,
    cancel: Optional[asyncio.Event] = None,
) -> Outcome:
    """Run a single wait with a throwaway reconciler."""
    return await StateReconciler().wait(
        probe,
        spec,
        resource_id=resource_id,
        operation=operation,
        cancel=cancel,
    )
