"""
Compensation orchestrator.

Runs the resolvers and engines for one instructor and period, caches the result,
and attaches the per-request payment status.
"""

import asyncio
import logging
import time
from collections import defaultdict
from concurrent.futures import Executor
from dataclasses import replace
from functools import partial
from datetime import date
from typing import Any, Callable, ContextManager, Dict, Iterable, List, Optional, Set

from tutor_payroll.domain.absence import calculate_absence_deductions
from tutor_payroll.domain.assignments import AssignmentResolver, FallbackPolicy
from tutor_payroll.domain.bonuses import aggregate_bonuses
from tutor_payroll.domain.calendar import CalendarPolicy
from tutor_payroll.domain.earnings import calculate_base_earnings
from tutor_payroll.domain.exceptions import (
    DataInconsistencyError,
    InstructorNotFoundError,
    PaymentStatusError,
    StudentNotFoundError,
)
from tutor_payroll.domain.lateness import calculate_lateness_deductions
from tutor_payroll.domain.models import (
    BatchCompensationResult,
    CompensationBreakdown,
    CompensationResult,
    CompensationSummary,
    DeductionKind,
    PaymentStatus,
    Period,
    ReassignmentEvent,
)
from tutor_payroll.domain.rates import RateResolver
from tutor_payroll.domain.store import CompensationStore
from tutor_payroll.infrastructure.cache import CacheKey, CompensationCache
from tutor_payroll.infrastructure.clients.payments import PaymentStatusClient
from tutor_payroll.infrastructure.observability.logging import log_compensation
from tutor_payroll.infrastructure.observability.metrics import (
    batch_failures_counter,
    compensation_counter,
    payment_status_failures_counter,
    record_compensation,
)

StoreScope = Callable[[], ContextManager[CompensationStore]]


class CompensationService:
    """Computes, caches and invalidates instructor compensation"""

    def __init__(
        self,
        store_scope: StoreScope,
        cache: CompensationCache,
        policy: CalendarPolicy,
        eligible_statuses: Iterable[str],
        fallback_policy: FallbackPolicy = FallbackPolicy.FULL_PERIOD,
        payment_client: Optional[PaymentStatusClient] = None,
        clock: Callable[[], date] = date.today,
        batch_timeout: float = 30.0,
        batch_concurrency: int = 8,
        executor: Optional[Executor] = None,
    ):
        self.store_scope = store_scope
        self.cache = cache
        self.policy = policy
        self.eligible_statuses = list(eligible_statuses)
        self.fallback_policy = fallback_policy
        self.payment_client = payment_client
        self.clock = clock
        self.batch_timeout = batch_timeout
        self.batch_concurrency = max(1, batch_concurrency)
        # None means the event loop's default executor
        self.executor = executor

    async def compute_compensation(self, instructor_id: str, period: Period) -> CompensationResult:
        """
        Compensation of one instructor for one period.

        Flow:
        1. Return the cached result when present
        2. Otherwise calculate in a worker thread with its own store scope and cache it,
           unless the instructor was invalidated while the calculation ran
        3. Attach the payment status (resolved on every call, never cached)

        Raises:
            InstructorNotFoundError: Unknown instructor id
            DataInconsistencyError: Contradictory ownership data
        """
        start_time = time.time()
        today = self.clock()
        key = CacheKey.for_period(instructor_id, period, today)

        result = self.cache.get(key)
        cache_hit = result is not None
        if cache_hit:
            compensation_counter.labels(outcome="cached").inc()
        else:
            generation = self.cache.generation(instructor_id)
            try:
                result = await self._run_sync(self._calculate_in_scope, instructor_id, period, today)
            except Exception:
                compensation_counter.labels(outcome="failed").inc()
                raise
            if not self.cache.set(key, result, generation):
                logging.info(
                    "Discarded compensation result invalidated during calculation",
                    extra={"step": "cache_write", "instructor_id": instructor_id},
                )

        status = await self._payment_status(instructor_id, period)

        duration_ms = (time.time() - start_time) * 1000
        log_compensation(
            instructor_id,
            period.start.isoformat(),
            period.end.isoformat(),
            result.net_salary_cents,
            cache_hit,
            duration_ms,
        )
        return replace(result, payment_status=status)

    async def compute_all_compensation(self, period: Period) -> BatchCompensationResult:
        """
        Compensation of every instructor for one period.

        Each instructor runs under the concurrency bound and its own deadline.
        A failed or timed out instructor is logged, counted and left out.
        A timed out calculation cannot be interrupted: it keeps its worker and
        store session until it returns, and its result is not cached. Pass a
        bounded executor to cap how many such workers can pile up.
        """
        instructors = await self._run_sync(self._list_instructor_ids)
        semaphore = asyncio.Semaphore(self.batch_concurrency)

        async def run(instructor_id: str) -> CompensationResult:
            async with semaphore:
                return await asyncio.wait_for(
                    self.compute_compensation(instructor_id, period),
                    timeout=self.batch_timeout,
                )

        outcomes = await asyncio.gather(*(run(i) for i in instructors), return_exceptions=True)

        results: List[CompensationResult] = []
        failed: List[str] = []
        for instructor_id, outcome in zip(instructors, outcomes):
            if isinstance(outcome, BaseException):
                reason = _failure_reason(outcome)
                batch_failures_counter.labels(reason=reason).inc()
                logging.error(
                    f"Batch compensation failed for {instructor_id}: {outcome!r}",
                    extra={
                        "step": "batch_compensation",
                        "instructor_id": instructor_id,
                        "reason": reason,
                        "period_start": period.start.isoformat(),
                        "period_end": period.end.isoformat(),
                    },
                )
                failed.append(instructor_id)
            else:
                results.append(outcome)

        return BatchCompensationResult(results=results, failed_instructor_ids=failed)

    async def record_reassignment(self, event: ReassignmentEvent) -> None:
        """
        Append a reassignment event, then drop cached results of both instructors.

        Raises:
            StudentNotFoundError: Event names an unknown student
        """
        await self._run_sync(self._append_reassignment, event)

        evicted = self.cache.invalidate_instructor(event.new_instructor_id)
        if event.old_instructor_id and event.old_instructor_id != event.new_instructor_id:
            evicted += self.cache.invalidate_instructor(event.old_instructor_id)

        logging.info(
            "Reassignment recorded",
            extra={
                "step": "reassignment",
                "student_id": event.student_id,
                "old_instructor_id": event.old_instructor_id,
                "new_instructor_id": event.new_instructor_id,
                "changed_at": event.changed_at.isoformat(),
                "evicted": evicted,
            },
        )

    def invalidate(self, instructor_id: str) -> int:
        return self.cache.invalidate_instructor(instructor_id)

    def invalidate_all(self) -> int:
        return self.cache.invalidate_all()

    def invalidate_range(self, start: date, end: date) -> int:
        return self.cache.invalidate_range(start, end)

    # Synchronous work, run in worker threads

    async def _run_sync(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, partial(func, *args))

    def _list_instructor_ids(self) -> List[str]:
        with self.store_scope() as store:
            return [i.instructor_id for i in store.list_instructors()]

    def _append_reassignment(self, event: ReassignmentEvent) -> None:
        with self.store_scope() as store:
            if not store.get_students([event.student_id]):
                raise StudentNotFoundError(event.student_id)
            store.append_reassignment(event)

    def _calculate_in_scope(self, instructor_id: str, period: Period, today: date) -> CompensationResult:
        with self.store_scope() as store:
            return self.calculate(store, instructor_id, period, today)

    def calculate(
        self,
        store: CompensationStore,
        instructor_id: str,
        period: Period,
        today: Optional[date] = None,
    ) -> CompensationResult:
        """
        Uncached calculation against an open store.

        Absences are counted through min(period end, today); `today` defaults to the clock.

        net = base - lateness - absence + bonuses, all integer cents.
        """
        start_time = time.time()

        instructor = store.get_instructor(instructor_id)
        if instructor is None:
            raise InstructorNotFoundError(instructor_id)

        # 1. Students and ownership intervals
        resolver = AssignmentResolver(store, self.eligible_statuses, self.fallback_policy)
        assignment_set = resolver.resolve(instructor_id, period)

        # 2. Base earnings
        rates = RateResolver.for_period(store.package_rates(), period, self.policy)
        earnings = calculate_base_earnings(assignment_set, rates, self.policy)

        # 3. Deduction inputs
        rules = store.deduction_rules(instructor_id)
        waivers = store.waivers(instructor_id, period)
        lateness_waived = {w.waived_on for w in waivers if w.kind == DeductionKind.LATENESS}
        absence_waived = {w.waived_on for w in waivers if w.kind == DeductionKind.ABSENCE}
        permitted = {p.granted_on for p in store.permission_grants(instructor_id, period)}
        attended = _attended_days(store, assignment_set.student_ids, period)

        # 4. Deductions
        lateness = calculate_lateness_deductions(assignment_set, rules, lateness_waived)
        absence = calculate_absence_deductions(
            assignment_set,
            rules,
            self.policy,
            today or self.clock(),
            attended,
            absence_waived,
            permitted,
        )

        # 5. Bonuses
        bonuses = aggregate_bonuses(
            period,
            store.quality_bonuses(instructor_id, period),
            store.bonus_records(instructor_id, period),
        )

        total_deductions = lateness.total_cents + absence.total_cents
        net = earnings.total_cents - total_deductions + bonuses.total_cents

        record_compensation(lateness.total_cents, absence.total_cents, time.time() - start_time)

        return CompensationResult(
            instructor_id=instructor.instructor_id,
            instructor_name=instructor.name,
            period=period,
            base_salary_cents=earnings.total_cents,
            lateness_deduction_cents=lateness.total_cents,
            absence_deduction_cents=absence.total_cents,
            bonus_cents=bonuses.total_cents,
            net_salary_cents=net,
            student_count=len(assignment_set.assignments),
            teaching_days=earnings.teaching_days,
            breakdown=CompensationBreakdown(
                daily_earnings=earnings.daily_earnings,
                student_periods=earnings.student_periods,
                lateness=lateness.entries,
                absences=absence.entries,
                bonuses=bonuses.lines,
                summary=CompensationSummary(
                    working_days=rates.working_days,
                    teaching_days=earnings.teaching_days,
                    average_daily_earning_cents=earnings.average_daily_cents,
                    total_deductions_cents=total_deductions,
                    net_salary_cents=net,
                ),
            ),
        )

    async def _payment_status(self, instructor_id: str, period: Period) -> PaymentStatus:
        if self.payment_client is None:
            return PaymentStatus.UNKNOWN
        try:
            return await self.payment_client.get_status(instructor_id, period.month_key)
        except PaymentStatusError as e:
            payment_status_failures_counter.inc()
            logging.warning(
                f"Payment status unavailable: {e}",
                extra={"step": "payment_status", "instructor_id": instructor_id, "period": period.month_key},
            )
            return PaymentStatus.UNKNOWN


def _attended_days(store: CompensationStore, student_ids: List[int], period: Period) -> Dict[int, Set[date]]:
    """Days each student received a class-start signal from any instructor"""
    attended: Dict[int, Set[date]] = defaultdict(set)
    for signal in store.class_start_signals_for_students(student_ids, period):
        attended[signal.student_id].add(signal.sent_at.date())
    return attended


def _failure_reason(error: BaseException) -> str:
    if isinstance(error, InstructorNotFoundError):
        return "not_found"
    if isinstance(error, asyncio.TimeoutError):
        return "timeout"
    if isinstance(error, DataInconsistencyError):
        return "inconsistent"
    return "error"
