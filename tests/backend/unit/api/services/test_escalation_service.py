"""Tests for the human-handoff escalation workflow."""

from __future__ import annotations

import asyncio

from collections.abc import Sequence

import pytest

from api.services.escalation_service import (
    EscalationManager,
    EscalationRequest,
    EscalationRun,
    EscalationWorkflow,
)

REQUEST = EscalationRequest(ticket_id="TICKET-123", user_email="customer@example.com", reason="Refund dispute")


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail = fail

    async def __call__(self, recipient: str, subject: str, body: str) -> None:
        if self.fail:
            raise ConnectionError("mail relay unavailable")
        self.sent.append((recipient, subject, body))


def second_agent(roster: Sequence[str]) -> str:
    return roster[1]


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def workflow(notifier: RecordingNotifier) -> EscalationWorkflow:
    return EscalationWorkflow(notifier=notifier, queue_delay=0, choose=second_agent)


class TestEscalationWorkflow:
    @pytest.mark.asyncio
    async def test_steps_run_in_order(self, workflow: EscalationWorkflow, notifier: RecordingNotifier) -> None:
        run = EscalationRun(run_id="run_1", request=REQUEST)

        await workflow.run(run)

        assert run.steps == ["validate", "acknowledge", "queue", "assign", "notify_assignment"]
        assert run.status == "assigned"
        assert run.agent == "Sayam"
        assert [subject for _, subject, _ in notifier.sent] == ["Ticket Received", "Agent Assigned"]
        assert all(recipient == "customer@example.com" for recipient, _, _ in notifier.sent)
        assert "TICKET-123" in notifier.sent[0][2]
        assert "assigned to Sayam" in notifier.sent[1][2]

    @pytest.mark.asyncio
    async def test_blank_ticket_fails_validation(
        self, workflow: EscalationWorkflow, notifier: RecordingNotifier
    ) -> None:
        run = EscalationRun(run_id="run_1", request=EscalationRequest(ticket_id="  ", user_email="a@b.c", reason="x"))

        with pytest.raises(ValueError, match="Invalid ticket ID"):
            await workflow.run(run)

        assert run.steps == []
        assert notifier.sent == []

    def test_roster_must_not_be_empty(self) -> None:
        with pytest.raises(ValueError):
            EscalationWorkflow(roster=())


class TestEscalationManager:
    @pytest.mark.asyncio
    async def test_start_returns_before_run_completes(self, workflow: EscalationWorkflow) -> None:
        manager = EscalationManager(workflow)

        run = manager.start(REQUEST)

        assert run.run_id.startswith("run_")
        assert run.status == "running"
        assert manager.get(run.run_id) is run
        assert manager.pending == 1

        await manager.join()

        assert run.status == "assigned"
        assert run.agent == "Sayam"
        assert manager.pending == 0

    @pytest.mark.asyncio
    async def test_run_ids_are_unique(self, workflow: EscalationWorkflow) -> None:
        manager = EscalationManager(workflow)

        ids = {manager.start(REQUEST).run_id for _ in range(5)}
        await manager.join()

        assert len(ids) == 5

    @pytest.mark.asyncio
    async def test_step_failure_marks_run_failed(self) -> None:
        manager = EscalationManager(EscalationWorkflow(notifier=RecordingNotifier(fail=True), queue_delay=0))

        run = manager.start(REQUEST)
        await manager.join()

        assert run.status == "failed"
        assert run.error == "mail relay unavailable"
        assert run.steps == ["validate"]
        assert run.agent is None

    @pytest.mark.asyncio
    async def test_aclose_cancels_queued_runs(self, notifier: RecordingNotifier) -> None:
        manager = EscalationManager(EscalationWorkflow(notifier=notifier, queue_delay=60))
        run = manager.start(REQUEST)
        await asyncio.sleep(0)

        await manager.aclose()

        assert run.status == "failed"
        assert run.error == "cancelled"
        assert run.steps == ["validate", "acknowledge"]
        assert manager.pending == 0

    @pytest.mark.asyncio
    async def test_oldest_runs_are_forgotten(self, workflow: EscalationWorkflow) -> None:
        manager = EscalationManager(workflow, history_limit=2)

        first, second, third = (manager.start(REQUEST) for _ in range(3))
        await manager.join()

        assert manager.get(first.run_id) is None
        assert manager.get(second.run_id) is second
        assert manager.get(third.run_id) is third

    def test_unknown_run(self) -> None:
        assert EscalationManager().get("run_missing") is None
