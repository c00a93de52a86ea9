"""
Compensation result cache.

One interface, two tiers: an instance cache owned by a service instance and a
process-wide cache shared by every instance. There is no expiry; entries leave
only through explicit invalidation.

Every invalidation advances a generation counter. A writer reads the generation
before it starts computing and hands it back to `set`, which discards the result
when an invalidation happened in between.
"""

import threading
from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional, Protocol

from tutor_payroll.domain.models import CompensationResult, Period
from tutor_payroll.infrastructure.observability.metrics import record_cache_event


@dataclass(frozen=True)
class CacheKey:
    """
    Instructor, period and the last day absences were counted through.

    `as_of` is min(period end, today) at computation time, so a period still in
    progress gets a fresh entry each day.
    """

    instructor_id: str
    start: date
    end: date
    as_of: date

    @classmethod
    def for_period(cls, instructor_id: str, period: Period, today: Optional[date] = None) -> "CacheKey":
        as_of = period.end if today is None else min(period.end, today)
        return cls(instructor_id, period.start, period.end, as_of)


class CompensationCache(Protocol):
    """Invalidation contract every cache implementation honours"""

    def get(self, key: CacheKey) -> Optional[CompensationResult]:
        ...

    def set(self, key: CacheKey, result: CompensationResult, generation: Optional[int] = None) -> bool:
        ...

    def generation(self, instructor_id: str) -> int:
        ...

    def invalidate_instructor(self, instructor_id: str) -> int:
        ...

    def invalidate_all(self) -> int:
        ...

    def invalidate_range(self, start: date, end: date) -> int:
        ...


class InMemoryCompensationCache:
    """Dictionary-backed cache; the lock only protects the dictionary structure"""

    def __init__(self):
        self._entries: Dict[CacheKey, CompensationResult] = {}
        self._generations: Dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: CacheKey) -> Optional[CompensationResult]:
        return self._entries.get(key)

    def set(self, key: CacheKey, result: CompensationResult, generation: Optional[int] = None) -> bool:
        """Store `result` unless the instructor was invalidated since `generation` was read"""
        with self._lock:
            if generation is not None and self._generation(key.instructor_id) != generation:
                return False
            self._entries[key] = result
        return True

    def generation(self, instructor_id: str) -> int:
        with self._lock:
            return self._generation(instructor_id)

    def invalidate_instructor(self, instructor_id: str) -> int:
        with self._lock:
            self._generations[instructor_id] = self._generations.get(instructor_id, 0) + 1
        return self._evict(lambda key: key.instructor_id == instructor_id)

    def invalidate_all(self) -> int:
        with self._lock:
            self._epoch += 1
            evicted = len(self._entries)
            self._entries.clear()
        return evicted

    def invalidate_range(self, start: date, end: date) -> int:
        """Evict every entry whose period overlaps [start, end]"""
        with self._lock:
            self._epoch += 1
        return self._evict(lambda key: key.start <= end and start <= key.end)

    def _generation(self, instructor_id: str) -> int:
        # Both counters only grow, so any invalidation changes the sum
        return self._epoch + self._generations.get(instructor_id, 0)

    def _evict(self, predicate) -> int:
        with self._lock:
            doomed = [key for key in self._entries if predicate(key)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)


class TieredCompensationCache:
    """Instance tier in front of the process-wide tier; every invalidation reaches both"""

    def __init__(self, local: CompensationCache, shared: CompensationCache):
        self.local = local
        self.shared = shared

    def get(self, key: CacheKey) -> Optional[CompensationResult]:
        result = self.local.get(key)
        if result is not None:
            record_cache_event("hit")
            return result

        result = self.shared.get(key)
        if result is not None:
            self.local.set(key, result)
            record_cache_event("hit")
            return result

        record_cache_event("miss")
        return None

    def set(self, key: CacheKey, result: CompensationResult, generation: Optional[int] = None) -> bool:
        """The shared tier sees invalidations from every instance, so it decides"""
        if not self.shared.set(key, result, generation):
            record_cache_event("stale")
            return False
        self.local.set(key, result)
        return True

    def generation(self, instructor_id: str) -> int:
        return self.shared.generation(instructor_id)

    def invalidate_instructor(self, instructor_id: str) -> int:
        return self._evicted(self.local.invalidate_instructor(instructor_id), self.shared.invalidate_instructor(instructor_id))

    def invalidate_all(self) -> int:
        return self._evicted(self.local.invalidate_all(), self.shared.invalidate_all())

    def invalidate_range(self, start: date, end: date) -> int:
        return self._evicted(self.local.invalidate_range(start, end), self.shared.invalidate_range(start, end))

    @staticmethod
    def _evicted(local_count: int, shared_count: int) -> int:
        """Distinct entries removed; the shared tier holds every key the local tier does"""
        evicted = max(local_count, shared_count)
        record_cache_event("evicted", evicted)
        return evicted


# Process-wide tier shared by every service instance
process_cache = InMemoryCompensationCache()
