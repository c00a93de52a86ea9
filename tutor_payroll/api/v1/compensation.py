"""GET /v1/compensation - instructor compensation for a period"""

import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from tutor_payroll.api.v1.schemas import BatchCompensationResponse, CompensationResponse
from tutor_payroll.api.dependencies import get_compensation_service, get_request_id
from tutor_payroll.domain.exceptions import DataInconsistencyError, InstructorNotFoundError
from tutor_payroll.domain.models import Period
from tutor_payroll.services.compensation import CompensationService

router = APIRouter()


def parse_period(start: date, end: date) -> Period:
    try:
        return Period(start=start, end=end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/compensation/{instructor_id}", response_model=CompensationResponse)
async def get_compensation(
    instructor_id: str,
    request: Request,
    start: date = Query(..., description="First day of the period"),
    end: date = Query(..., description="Last day of the period"),
    service: CompensationService = Depends(get_compensation_service),
):
    """
    Compute (or serve from cache) one instructor's compensation.

    Returns:
        Totals in cents, payment status and the full breakdown
    """
    request_id = get_request_id(request)
    period = parse_period(start, end)

    try:
        result = await service.compute_compensation(instructor_id, period)
        return CompensationResponse.model_validate(result)

    except InstructorNotFoundError as e:
        logging.warning(f"Instructor not found: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=404, detail=str(e))

    except DataInconsistencyError as e:
        logging.error(
            f"Inconsistent ownership data: {e}",
            extra={"request_id": request_id, "instructor_id": instructor_id},
        )
        raise HTTPException(status_code=409, detail=str(e))

    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/compensation", response_model=BatchCompensationResponse)
async def get_all_compensation(
    start: date = Query(..., description="First day of the period"),
    end: date = Query(..., description="Last day of the period"),
    service: CompensationService = Depends(get_compensation_service),
):
    """Compensation of every instructor; failures are listed, not raised"""
    period = parse_period(start, end)
    batch = await service.compute_all_compensation(period)
    return BatchCompensationResponse.model_validate(batch)
