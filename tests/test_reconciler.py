"""Tests for the state-polling reconciler."""

import asyncio
import time

import pytest

from vpnattach.errors import (
    AttachmentNotFoundError,
    EmptyResultError,
    TransportError,
    UnexpectedStateError,
    WaitCancelledError,
    WaitTimeoutError,
)
from vpnattach.models import AttachmentState
from vpnattach.reconciler import (
    Failed,
    Observation,
    Resolved,
    StateReconciler,
    TimedOut,
    WaitPhase,
    WaitSpec,
    wait_for_state,
)

from tests.fakes import ATTACHMENT_ID, make_attachment

FAST = {"min_interval": 0.01, "max_interval": 0.02}

CREATING = AttachmentState.CREATING
AVAILABLE = AttachmentState.AVAILABLE
DELETING = AttachmentState.DELETING


class ScriptedProbe:
    """Probe replaying observations; None means absent, exceptions are raised."""

    def __init__(self, *steps):
        self.steps = list(steps)
        self.calls = 0

    def __call__(self) -> Observation:
        self.calls += 1
        step = self.steps.pop(0) if len(self.steps) > 1 else self.steps[0]
        if step is None:
            return Observation.absent()
        if isinstance(step, Exception):
            raise step
        return Observation.of(make_attachment(step))


def create_spec(timeout=2.0, **overrides):
    return WaitSpec(
        pending={CREATING},
        target={AVAILABLE},
        timeout=timeout,
        **{**FAST, **overrides},
    )


def delete_spec(timeout=2.0, **overrides):
    return WaitSpec.for_delete(timeout, **{**FAST, **overrides})


async def run(probe, spec, cancel=None):
    return await StateReconciler().wait(
        probe,
        spec,
        resource_id=ATTACHMENT_ID,
        operation="test",
        cancel=cancel,
    )


class TestResolution:
    """Waits that reach a target state."""

    @pytest.mark.asyncio
    async def test_resolves_after_pending_observations(self):
        """creating, creating, available resolves after exactly three probes."""
        probe = ScriptedProbe(CREATING, CREATING, AVAILABLE)

        outcome = await run(probe, create_spec())

        assert isinstance(outcome, Resolved)
        assert outcome.phase is WaitPhase.RESOLVED
        assert outcome.state is AVAILABLE
        assert outcome.record.state is AVAILABLE
        assert outcome.probes == 3
        assert probe.calls == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("pending_count", [0, 1, 6])
    async def test_resolves_regardless_of_pending_count(self, pending_count):
        probe = ScriptedProbe(*([CREATING] * pending_count), AVAILABLE)

        outcome = await run(probe, create_spec())

        assert isinstance(outcome, Resolved)
        assert outcome.probes == pending_count + 1

    @pytest.mark.asyncio
    async def test_first_target_in_set_wins(self):
        spec = WaitSpec.for_create(2.0, **FAST)
        probe = ScriptedProbe(CREATING, AttachmentState.PENDING_ATTACHMENT_ACCEPTANCE, AVAILABLE)

        outcome = await run(probe, spec)

        assert outcome.state is AttachmentState.PENDING_ATTACHMENT_ACCEPTANCE
        assert outcome.unwrap().state is AttachmentState.PENDING_ATTACHMENT_ACCEPTANCE

    @pytest.mark.asyncio
    async def test_module_level_helper(self):
        outcome = await wait_for_state(
            ScriptedProbe(AVAILABLE),
            create_spec(),
            resource_id=ATTACHMENT_ID,
            operation="test",
        )
        assert isinstance(outcome, Resolved)


class TestDeleteWaits:
    """Waits with an empty target set resolve on absence."""

    @pytest.mark.asyncio
    async def test_resolves_on_absence_not_before(self):
        probe = ScriptedProbe(DELETING, DELETING, None)

        outcome = await run(probe, delete_spec())

        assert isinstance(outcome, Resolved)
        assert outcome.record is None
        assert outcome.state is AttachmentState.ABSENT
        assert outcome.probes == 3

    @pytest.mark.asyncio
    async def test_single_absence_resolves_immediately(self):
        outcome = await run(ScriptedProbe(None), delete_spec())

        assert isinstance(outcome, Resolved)
        assert outcome.probes == 1

    @pytest.mark.asyncio
    async def test_tolerance_requires_consecutive_absences(self):
        probe = ScriptedProbe(DELETING, None, DELETING, None, None)

        outcome = await run(probe, delete_spec(not_found_tolerance=2))

        assert isinstance(outcome, Resolved)
        assert outcome.probes == 5

    @pytest.mark.asyncio
    async def test_reappearing_in_unexpected_state_fails(self):
        outcome = await run(ScriptedProbe(DELETING, AVAILABLE), delete_spec())

        assert isinstance(outcome, Failed)
        assert isinstance(outcome.error, UnexpectedStateError)


class TestTimeouts:
    """Waits that never leave the pending set."""

    @pytest.mark.asyncio
    async def test_times_out_at_deadline_not_before(self):
        probe = ScriptedProbe(CREATING)
        timeout = 0.2

        started = time.monotonic()
        outcome = await run(probe, create_spec(timeout=timeout))
        elapsed = time.monotonic() - started

        assert isinstance(outcome, TimedOut)
        assert outcome.phase is WaitPhase.TIMED_OUT
        assert elapsed >= timeout
        assert elapsed < timeout + 0.5
        assert outcome.state is CREATING
        assert outcome.record.state is CREATING
        assert outcome.probes == probe.calls

    @pytest.mark.asyncio
    async def test_unwrap_raises_timeout_error_with_last_state(self):
        outcome = await run(ScriptedProbe(CREATING), create_spec(timeout=0.05))

        with pytest.raises(WaitTimeoutError) as exc_info:
            outcome.unwrap()

        err = exc_info.value
        assert err.last_state is CREATING
        assert err.last_record.state is CREATING
        assert err.resource_id == ATTACHMENT_ID
        assert err.operation == "test"
        assert "CREATING" in str(err)

    @pytest.mark.asyncio
    async def test_result_after_deadline_is_ignored(self):
        def slow_probe():
            time.sleep(0.15)
            return Observation.of(make_attachment(AVAILABLE))

        outcome = await run(slow_probe, create_spec(timeout=0.05))

        assert isinstance(outcome, TimedOut)
        assert outcome.state is None

    @pytest.mark.asyncio
    async def test_delay_longer_than_timeout_never_probes(self):
        probe = ScriptedProbe(AVAILABLE)

        outcome = await run(probe, create_spec(timeout=0.05, delay=0.1))

        assert isinstance(outcome, TimedOut)
        assert probe.calls == 0


class TestFailures:
    """Waits that stop on an error."""

    @pytest.mark.asyncio
    async def test_unmodeled_state_fails_without_further_polling(self):
        probe = ScriptedProbe("corrupted", AVAILABLE)

        outcome = await run(probe, create_spec())

        assert isinstance(outcome, Failed)
        assert outcome.phase is WaitPhase.FAILED
        assert isinstance(outcome.error, UnexpectedStateError)
        assert outcome.error.state == "corrupted"
        assert outcome.error.expected == ["AVAILABLE", "CREATING"]
        assert probe.calls == 1

    @pytest.mark.asyncio
    async def test_known_state_outside_sets_fails(self):
        outcome = await run(ScriptedProbe(AttachmentState.FAILED), create_spec())

        assert isinstance(outcome.error, UnexpectedStateError)
        assert outcome.error.state == "FAILED"

    @pytest.mark.asyncio
    async def test_probe_error_is_not_retried(self):
        error = TransportError(ATTACHMENT_ID, "get", "throttled")
        probe = ScriptedProbe(CREATING, error, AVAILABLE)

        outcome = await run(probe, create_spec())

        assert isinstance(outcome, Failed)
        assert outcome.error is error
        assert probe.calls == 2

    @pytest.mark.asyncio
    async def test_empty_result_is_fatal(self):
        outcome = await run(ScriptedProbe(EmptyResultError(ATTACHMENT_ID, "get")), create_spec())

        assert isinstance(outcome.error, EmptyResultError)
        with pytest.raises(EmptyResultError):
            outcome.unwrap()

    @pytest.mark.asyncio
    async def test_foreign_exception_becomes_transport_error(self):
        probe = ScriptedProbe(RuntimeError("socket closed"))

        outcome = await run(probe, create_spec())

        assert isinstance(outcome.error, TransportError)
        assert isinstance(outcome.error.cause, RuntimeError)
        assert outcome.error.resource_id == ATTACHMENT_ID


class TestNotFoundDuringCreate:
    """Absence right after a create is tolerated for a few checks."""

    @pytest.mark.asyncio
    async def test_absence_within_checks_keeps_polling(self):
        probe = ScriptedProbe(None, None, CREATING, AVAILABLE)

        outcome = await run(probe, create_spec(not_found_checks=2))

        assert isinstance(outcome, Resolved)
        assert outcome.probes == 4

    @pytest.mark.asyncio
    async def test_absence_beyond_checks_fails(self):
        probe = ScriptedProbe(None)

        outcome = await run(probe, create_spec(not_found_checks=2))

        assert isinstance(outcome, Failed)
        assert isinstance(outcome.error, AttachmentNotFoundError)
        assert probe.calls == 3


class TestCancellation:
    """The cancel token ends a wait early."""

    @pytest.mark.asyncio
    async def test_cancel_during_polling(self):
        cancel = asyncio.Event()
        probe = ScriptedProbe(CREATING)
        spec = create_spec(timeout=5.0, min_interval=0.05, max_interval=0.05)

        asyncio.get_running_loop().call_later(0.1, cancel.set)
        started = time.monotonic()
        outcome = await run(probe, spec, cancel=cancel)

        assert isinstance(outcome, Failed)
        assert isinstance(outcome.error, WaitCancelledError)
        assert time.monotonic() - started < 1.0
        assert probe.calls >= 1

    @pytest.mark.asyncio
    async def test_cancel_before_start_never_probes(self):
        cancel = asyncio.Event()
        cancel.set()
        probe = ScriptedProbe(AVAILABLE)

        outcome = await run(probe, create_spec(), cancel=cancel)

        assert isinstance(outcome.error, WaitCancelledError)
        assert probe.calls == 0

    @pytest.mark.asyncio
    async def test_concurrent_waits_are_independent(self):
        reconciler = StateReconciler()
        fast = ScriptedProbe(CREATING, AVAILABLE)
        broken = ScriptedProbe("corrupted")

        results = await asyncio.gather(
            reconciler.wait(fast, create_spec(), resource_id="a", operation="test"),
            reconciler.wait(broken, create_spec(), resource_id="b", operation="test"),
        )

        assert isinstance(results[0], Resolved)
        assert isinstance(results[1], Failed)
        assert results[1].error.resource_id == "b"


class TestWaitSpec:
    """WaitSpec construction and factories."""

    def test_overlapping_sets_rejected(self):
        with pytest.raises(ValueError, match="overlap"):
            WaitSpec(pending={CREATING}, target={CREATING}, timeout=1)

    def test_local_states_rejected(self):
        with pytest.raises(ValueError, match="local-only"):
            WaitSpec(pending={DELETING}, target={AttachmentState.ABSENT}, timeout=1)

    @pytest.mark.parametrize("field,value", [
        ("timeout", 0),
        ("not_found_tolerance", 0),
        ("min_interval", 0),
        ("backoff_factor", 0.5),
    ])
    def test_invalid_values_rejected(self, field, value):
        kwargs = {"pending": {CREATING}, "target": {AVAILABLE}, "timeout": 1, field: value}
        with pytest.raises(ValueError):
            WaitSpec(**kwargs)

    def test_create_spec(self):
        spec = WaitSpec.for_create(600)
        assert spec.pending == {CREATING, AttachmentState.PENDING_NETWORK_UPDATE}
        assert spec.target == {AVAILABLE, AttachmentState.PENDING_ATTACHMENT_ACCEPTANCE}
        assert not spec.waits_for_absence

    def test_delete_spec(self):
        spec = WaitSpec.for_delete(600)
        assert spec.pending == {DELETING}
        assert spec.target == frozenset()
        assert spec.not_found_tolerance == 1
        assert spec.waits_for_absence

    def test_available_spec(self):
        spec = WaitSpec.for_available(600)
        assert AttachmentState.PENDING_ATTACHMENT_ACCEPTANCE in spec.pending
        assert spec.target == {AVAILABLE}


class TestOutcomePhases:
    """Every outcome a wait can return is terminal."""

    def test_outcomes_are_terminal(self):
        outcomes = [
            Resolved(make_attachment(AVAILABLE), AVAILABLE, probes=1),
            TimedOut(ATTACHMENT_ID, "test", 1.0, record=None, state=None, probes=0),
            Failed(TransportError(ATTACHMENT_ID, "test", "boom"), probes=1),
        ]

        assert [o.phase for o in outcomes] == [
            WaitPhase.RESOLVED,
            WaitPhase.TIMED_OUT,
            WaitPhase.FAILED,
        ]
        assert all(o.phase.is_terminal() for o in outcomes)

    def test_polling_is_not_terminal(self):
        assert not WaitPhase.POLLING.is_terminal()
