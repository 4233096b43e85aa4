"""Per-provider daily call quotas.

Two separate policies:

- ``UsageGovernor`` enforces a daily ceiling per provider. Counters live in
  memory, hydrate lazily from Firestore once per day and are written back
  with atomic ``firestore.Increment`` in the background. Firestore outages
  never block traffic; the in-memory counter keeps serving.
- ``UsageRecorder`` only counts calls for diagnostics. No persistence, no
  blocking.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Callable, Optional

from google.cloud import firestore

from ..config import settings
from ..models import QuotaStatus
from ..utils.logging_utils import log_exception_json

logger = logging.getLogger(__name__)


def _utc_today() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%d")


@dataclass
class UsageCounter:
    """Calls made to one provider on one UTC day."""

    provider: str
    date: str
    limit: int
    count: int = 0

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class UsageGovernor:
    """
    Enforce per-provider daily call limits.

    Features:
    - Lazy hydration of today's counter from Firestore
    - Reject (never clamp) usage that would exceed the limit
    - Atomic read-modify-write per (provider, day) via asyncio.Lock
    - Best-effort background persistence
    """

    def __init__(
        self,
        firestore_client: Optional[firestore.Client] = None,
        daily_limits: Optional[dict[str, int]] = None,
        default_limit: Optional[int] = None,
        collection: Optional[str] = None,
        today: Callable[[], str] = _utc_today,
    ):
        """
        Initialize usage governor.

        Args:
            firestore_client: Firestore client for persistence (None = memory only)
            daily_limits: Per-provider daily call limits
            default_limit: Limit for providers missing from daily_limits
            collection: Firestore collection holding counter documents
            today: Returns the current day key (injectable for tests)
        """
        self.firestore = firestore_client
        self.daily_limits = dict(daily_limits if daily_limits is not None else settings.provider_daily_limits)
        self.default_limit = default_limit if default_limit is not None else settings.default_daily_limit
        self.collection = collection or settings.firestore_usage_collection
        self._today = today

        self._counters: dict[tuple[str, str], UsageCounter] = {}
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._pending_writes: set[asyncio.Task] = set()

        logger.info(
            f"Usage governor initialized: default_limit={self.default_limit}, "
            f"overrides={self.daily_limits}, persistence={'firestore' if firestore_client else 'memory'}"
        )

    def limit_for(self, provider: str) -> int:
        return self.daily_limits.get(provider, self.default_limit)

    def _lock_for(self, key: tuple[str, str]) -> asyncio.Lock:
        return self._locks.setdefault(key, asyncio.Lock())

    def _doc_id(self, provider: str, date: str) -> str:
        return f"{provider}_{date}"

    async def _hydrate(self, provider: str, date: str) -> UsageCounter:
        """Return today's counter, loading it from Firestore on first access."""
        key = (provider, date)
        counter = self._counters.get(key)
        if counter is not None:
            return counter

        count = 0
        if self.firestore is not None:
            try:
                doc_ref = self.firestore.collection(self.collection).document(self._doc_id(provider, date))
                doc = await asyncio.to_thread(doc_ref.get)
                if doc.exists:
                    count = int((doc.to_dict() or {}).get("calls", 0))
            except Exception as e:
                log_exception_json(
                    logger,
                    "Failed to hydrate usage counter, serving from memory",
                    e,
                    severity="WARNING",
                    provider=provider,
                    date=date,
                )

        counter = UsageCounter(provider=provider, date=date, limit=self.limit_for(provider), count=count)
        self._counters[key] = counter
        # Drop counters from previous days
        for stale in [k for k in self._counters if k[0] == provider and k[1] != date]:
            self._counters.pop(stale, None)
            self._locks.pop(stale, None)
        return counter

    async def check_quota(self, provider: str) -> QuotaStatus:
        """
        Report today's usage for a provider.

        Returns:
            QuotaStatus with available=True while calls remain
        """
        date = self._today()
        async with self._lock_for((provider, date)):
            counter = await self._hydrate(provider, date)
            return QuotaStatus(
                provider=provider,
                date=date,
                available=counter.count < counter.limit,
                current=counter.count,
                limit=counter.limit,
            )

    async def track_usage(self, provider: str, units: int = 1) -> bool:
        """
        Reserve ``units`` calls against today's quota.

        Args:
            provider: Provider name
            units: Calls to reserve

        Returns:
            True if accepted and counted, False if it would exceed the limit
            (counter left unchanged)
        """
        if units < 0:
            raise ValueError(f"units must be non-negative, got {units}")

        date = self._today()
        async with self._lock_for((provider, date)):
            counter = await self._hydrate(provider, date)

            if counter.count + units > counter.limit:
                logger.warning(
                    f"Quota exceeded: provider={provider}, current={counter.count}, "
                    f"requested={units}, limit={counter.limit}"
                )
                return False

            counter.count += units

        if units:
            self._schedule_persist(provider, date, units)
        return True

    def _schedule_persist(self, provider: str, date: str, units: int) -> None:
        if self.firestore is None:
            return
        task = asyncio.create_task(self._persist(provider, date, units))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _persist(self, provider: str, date: str, units: int) -> None:
        try:
            doc_ref = self.firestore.collection(self.collection).document(self._doc_id(provider, date))
            await asyncio.to_thread(
                doc_ref.set,
                {
                    "provider": provider,
                    "date": date,
                    "calls": firestore.Increment(units),
                    "daily_limit": self.limit_for(provider),
                    "updated_at": datetime.now(UTC),
                },
                merge=True,
            )
        except Exception as e:
            log_exception_json(
                logger,
                "Failed to persist usage counter",
                e,
                severity="WARNING",
                provider=provider,
                date=date,
                units=units,
            )

    async def flush(self) -> None:
        """Wait for background writes to finish."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)


class UsageRecorder:
    """Record-only call counter for diagnostics. Never blocks, never persists."""

    def __init__(
        self,
        daily_limits: Optional[dict[str, int]] = None,
        default_limit: Optional[int] = None,
        warning_ratio: Optional[float] = None,
        today: Callable[[], str] = _utc_today,
    ):
        self.daily_limits = dict(daily_limits if daily_limits is not None else settings.provider_daily_limits)
        self.default_limit = default_limit if default_limit is not None else settings.default_daily_limit
        self.warning_ratio = warning_ratio if warning_ratio is not None else settings.usage_warning_ratio
        self._today = today
        self._counts: dict[tuple[str, str], int] = {}

    def record_call(self, provider: str) -> int:
        """Count one call and return today's total for the provider."""
        key = (provider, self._today())
        self._counts[key] = self._counts.get(key, 0) + 1
        count = self._counts[key]

        limit = self.daily_limits.get(provider, self.default_limit)
        if limit and count >= limit * self.warning_ratio:
            logger.warning(f"Provider {provider} near daily limit: {count}/{limit} calls today")

        return count

    def get_count(self, provider: str) -> int:
        return self._counts.get((provider, self._today()), 0)

    def get_usage_summary(self) -> dict[str, int]:
        """Today's call counts by provider."""
        today = self._today()
        return {provider: count for (provider, date), count in self._counts.items() if date == today}
