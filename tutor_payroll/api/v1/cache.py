"""DELETE /v1/cache - explicit compensation cache invalidation"""

from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query

from tutor_payroll.api.v1.schemas import EvictionResponse
from tutor_payroll.api.dependencies import get_compensation_service
from tutor_payroll.services.compensation import CompensationService

router = APIRouter()


@router.delete("/cache", response_model=EvictionResponse)
def clear_cache(service: CompensationService = Depends(get_compensation_service)):
    return EvictionResponse(evicted=service.invalidate_all())


@router.delete("/cache/instructors/{instructor_id}", response_model=EvictionResponse)
def clear_instructor(instructor_id: str, service: CompensationService = Depends(get_compensation_service)):
    return EvictionResponse(evicted=service.invalidate(instructor_id))


@router.delete("/cache/range", response_model=EvictionResponse)
def clear_range(
    start: date = Query(...),
    end: date = Query(...),
    service: CompensationService = Depends(get_compensation_service),
):
    """Drop every cached period overlapping [start, end]"""
    if start > end:
        raise HTTPException(status_code=400, detail=f"Range start {start} is after end {end}")
    return EvictionResponse(evicted=service.invalidate_range(start, end))
