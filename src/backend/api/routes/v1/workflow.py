"""
Escalation workflow endpoints (v1).

Starts the human-handoff workflow for a ticket and reports run progress.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from api.dependencies import Escalations
from api.middleware.auth import get_current_user
from api.middleware.exception_handlers import ResourceNotFoundError, ValidationException
from api.services.escalation_service import EscalationRequest
from core.constants import ERROR_ESCALATION_FIELDS_REQUIRED, ERROR_ESCALATION_RUN_NOT_FOUND
from models.error_models import ErrorDetail
from models.schemas.auth import UserInfo
from models.schemas.workflow import EscalateRequest, EscalateResponse, EscalationRunResponse

router = APIRouter()

CurrentUser = Annotated[UserInfo, Depends(get_current_user)]


@router.post(
    "/escalate",
    response_model=EscalateResponse,
    summary="Escalate ticket",
    description="Start the human-handoff workflow for a ticket. Runs in the background.",
    responses={400: {"description": "Missing required fields"}},
)
async def escalate_ticket(body: EscalateRequest, user: CurrentUser, escalations: Escalations) -> EscalateResponse:
    values = {"ticketId": body.ticket_id, "userEmail": body.user_email, "reason": body.reason}
    missing = [name for name, value in values.items() if not (value and value.strip())]
    if missing:
        raise ValidationException(
            ERROR_ESCALATION_FIELDS_REQUIRED,
            errors=[ErrorDetail(field=name, message="Field required", code="missing") for name in missing],
        )

    run = escalations.start(
        EscalationRequest(
            ticket_id=body.ticket_id.strip(),  # type: ignore[union-attr]
            user_email=body.user_email.strip(),  # type: ignore[union-attr]
            reason=body.reason.strip(),  # type: ignore[union-attr]
        )
    )
    return EscalateResponse(run_id=run.run_id)


@router.get(
    "/runs/{run_id}",
    response_model=EscalationRunResponse,
    summary="Escalation run status",
    responses={404: {"description": "Escalation run not found"}},
)
async def get_escalation_run(
    run_id: Annotated[str, Path(..., description="Run id returned by /escalate")],
    user: CurrentUser,
    escalations: Escalations,
) -> EscalationRunResponse:
    run = escalations.get(run_id)
    if run is None:
        raise ResourceNotFoundError(ERROR_ESCALATION_RUN_NOT_FOUND, details={"run_id": run_id})
    return EscalationRunResponse(
        run_id=run.run_id,
        ticket_id=run.request.ticket_id,
        status=run.status,
        steps=list(run.steps),
        agent=run.agent,
        error=run.error,
    )
