"""POST /v1/reassignments - record a student moving to another instructor"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request

from tutor_payroll.api.v1.schemas import ReassignmentRequest, ReassignmentResponse
from tutor_payroll.api.dependencies import get_compensation_service, get_request_id
from tutor_payroll.domain.calendar import parse_day_pattern
from tutor_payroll.domain.exceptions import StudentNotFoundError
from tutor_payroll.domain.models import ReassignmentEvent
from tutor_payroll.services.compensation import CompensationService

router = APIRouter()


@router.post("/reassignments", response_model=ReassignmentResponse, status_code=201)
async def create_reassignment(
    request_body: ReassignmentRequest,
    request: Request,
    service: CompensationService = Depends(get_compensation_service),
):
    """
    Append a reassignment event.

    Cached compensation of both the old and the new instructor is dropped.
    """
    request_id = get_request_id(request)

    event = ReassignmentEvent(
        student_id=request_body.student_id,
        old_instructor_id=request_body.old_instructor_id,
        new_instructor_id=request_body.new_instructor_id,
        changed_at=request_body.changed_at,
        reason=request_body.reason,
        time_slot=request_body.time_slot,
        day_pattern=parse_day_pattern(request_body.day_pattern) if request_body.day_pattern else None,
        package=request_body.package,
        monthly_rate_cents=request_body.monthly_rate_cents,
        daily_rate_cents=request_body.daily_rate_cents,
        created_by=request_body.created_by,
    )

    try:
        await service.record_reassignment(event)
    except StudentNotFoundError as e:
        logging.warning(f"Reassignment rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=404, detail=str(e))

    return ReassignmentResponse(
        student_id=event.student_id,
        old_instructor_id=event.old_instructor_id,
        new_instructor_id=event.new_instructor_id,
        changed_at=event.changed_at,
    )
