"""Dependency injection for FastAPI endpoints"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from tutor_payroll.config import settings
from tutor_payroll.domain.assignments import FallbackPolicy
from tutor_payroll.domain.calendar import CalendarPolicy
from tutor_payroll.infrastructure.cache import InMemoryCompensationCache, TieredCompensationCache, process_cache
from tutor_payroll.infrastructure.clients.payments import PaymentStatusClient
from tutor_payroll.infrastructure.database.session import SessionLocal, repository_scope_factory
from tutor_payroll.services.compensation import CompensationService

# Store work for every request shares one bounded pool, sized like the batch fan-out
calculation_executor = ThreadPoolExecutor(
    max_workers=max(1, settings.batch_concurrency),
    thread_name_prefix="compensation",
)


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_session_factory() -> Callable[[], Session]:
    """Provide the session factory; every computation opens its own session"""
    return SessionLocal


def get_payment_client() -> PaymentStatusClient:
    """Provide payment status client instance"""
    return PaymentStatusClient()


def get_clock() -> Callable[[], date]:
    return date.today


def get_compensation_service(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    payment_client: PaymentStatusClient = Depends(get_payment_client),
    clock: Callable[[], date] = Depends(get_clock),
) -> CompensationService:
    """Provide a compensation service whose instance cache sits in front of the process cache"""
    return CompensationService(
        store_scope=repository_scope_factory(session_factory),
        cache=TieredCompensationCache(InMemoryCompensationCache(), process_cache),
        policy=CalendarPolicy(
            include_rest_day=settings.include_rest_day,
            unknown_pattern_as_missing=settings.unknown_pattern_as_missing,
        ),
        eligible_statuses=settings.eligible_statuses,
        fallback_policy=FallbackPolicy(settings.fallback_policy),
        payment_client=payment_client,
        clock=clock,
        batch_timeout=settings.batch_timeout_seconds,
        batch_concurrency=settings.batch_concurrency,
        executor=calculation_executor,
    )
