"""
Human-handoff escalation workflow.

When an agent hands a conversation to a human, the client files an escalation
for the ticket. A run validates the ticket, acknowledges it to the customer,
waits in the support queue, assigns a human agent and tells the customer who
picked it up. Runs execute as background tasks; the HTTP request only starts
them and returns the run id.
"""

from __future__ import annotations

import asyncio
import random
import secrets

from collections import OrderedDict
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Literal

from core.constants import ESCALATION_AGENT_ROSTER, ESCALATION_QUEUE_DELAY, ESCALATION_RUN_HISTORY_LIMIT
from utils.logger import logger
from utils.metrics import escalation_workflows_total

EscalationStatus = Literal["running", "assigned", "failed"]

#: Sends a notification: (recipient, subject, body)
Notifier = Callable[[str, str, str], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class EscalationRequest:
    ticket_id: str
    user_email: str
    reason: str


@dataclass(slots=True)
class EscalationRun:
    """State of one workflow run, updated as steps complete."""

    run_id: str
    request: EscalationRequest
    status: EscalationStatus = "running"
    steps: list[str] = field(default_factory=list)
    agent: str | None = None
    error: str | None = None


async def log_notifier(recipient: str, subject: str, body: str) -> None:
    """Default notifier: records the notification in the application log."""
    logger.info(f"Notification sent: {subject}", notification_subject=subject, chars_body=len(body))


class EscalationWorkflow:
    """The escalation steps, run strictly in order.

    Args:
        notifier: Delivers customer notifications
        roster: Human agents to assign from
        queue_delay: Seconds spent waiting in the support queue
        choose: Picks an agent from the roster
    """

    def __init__(
        self,
        *,
        notifier: Notifier = log_notifier,
        roster: Sequence[str] = ESCALATION_AGENT_ROSTER,
        queue_delay: float = ESCALATION_QUEUE_DELAY,
        choose: Callable[[Sequence[str]], str] = random.choice,
    ):
        if not roster:
            raise ValueError("roster must name at least one agent")
        self._notifier = notifier
        self._roster = tuple(roster)
        self._queue_delay = queue_delay
        self._choose = choose

    async def run(self, run: EscalationRun) -> None:
        request = run.request

        if not request.ticket_id.strip():
            raise ValueError("Invalid ticket ID")
        run.steps.append("validate")

        await self._notifier(
            request.user_email,
            "Ticket Received",
            f"We have received your escalation request for ticket {request.ticket_id}.",
        )
        run.steps.append("acknowledge")

        await asyncio.sleep(self._queue_delay)
        run.steps.append("queue")

        run.agent = self._choose(self._roster)
        logger.info(f"Assigned ticket {request.ticket_id} to {run.agent}", escalation_reason=request.reason)
        run.steps.append("assign")

        await self._notifier(
            request.user_email,
            "Agent Assigned",
            f"Your ticket {request.ticket_id} has been assigned to {run.agent}. They will contact you shortly.",
        )
        run.steps.append("notify_assignment")
        run.status = "assigned"


class EscalationManager:
    """Starts workflow runs in the background and keeps their state for lookups."""

    def __init__(
        self,
        workflow: EscalationWorkflow | None = None,
        *,
        history_limit: int = ESCALATION_RUN_HISTORY_LIMIT,
    ):
        self._workflow = workflow or EscalationWorkflow()
        self._history_limit = history_limit
        self._runs: OrderedDict[str, EscalationRun] = OrderedDict()
        self._background_tasks: set[asyncio.Task[None]] = set()

    def start(self, request: EscalationRequest) -> EscalationRun:
        """Schedule a run and return it immediately. Requires a running event loop."""
        run = EscalationRun(run_id=f"run_{secrets.token_hex(8)}", request=request)
        self._remember(run)

        task = asyncio.create_task(self._execute(run))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

        escalation_workflows_total.labels(outcome="started").inc()
        logger.info(f"Escalation started for ticket {request.ticket_id}", run_id=run.run_id)
        return run

    def get(self, run_id: str) -> EscalationRun | None:
        return self._runs.get(run_id)

    @property
    def pending(self) -> int:
        return len(self._background_tasks)

    async def join(self) -> None:
        """Wait for every in-flight run to finish."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel in-flight runs (application shutdown)."""
        for task in self._background_tasks:
            task.cancel()
        await self.join()

    def _remember(self, run: EscalationRun) -> None:
        self._runs[run.run_id] = run
        while len(self._runs) > self._history_limit:
            self._runs.popitem(last=False)

    async def _execute(self, run: EscalationRun) -> None:
        try:
            await self._workflow.run(run)
        except asyncio.CancelledError:
            run.status = "failed"
            run.error = "cancelled"
            escalation_workflows_total.labels(outcome="failed").inc()
            raise
        except Exception as e:
            run.status = "failed"
            run.error = str(e)
            escalation_workflows_total.labels(outcome="failed").inc()
            logger.error(f"Escalation {run.run_id} failed after {run.steps}: {e}", exc_info=True)
            return

        escalation_workflows_total.labels(outcome="assigned").inc()
        logger.info(f"Escalation {run.run_id} completed", run_id=run.run_id, agent=run.agent)
