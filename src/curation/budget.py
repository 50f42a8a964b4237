# src/curation/budget.py - v1
"""USD cost ceilings for summarization calls.

Two ceilings apply: one per call (checked against the pre-call estimate)
and one per calendar month in UTC (checked against recorded spend plus
the estimate). Once the month is exhausted every check fails until the
next month starts. Spend is tracked in process memory.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from promptlift.core.errors import BudgetExceededError

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CostBudget:
    """Per-call and monthly spend limits.

    Args:
        per_call_ceiling_usd: Maximum estimated cost of a single call.
        monthly_ceiling_usd: Maximum total spend per calendar month (UTC).
        clock: Returns the current aware UTC datetime (injectable for tests).
    """

    def __init__(
        self,
        per_call_ceiling_usd: float,
        monthly_ceiling_usd: float,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if per_call_ceiling_usd < 0 or monthly_ceiling_usd < 0:
            raise ValueError("Cost ceilings must be >= 0")
        self._per_call = per_call_ceiling_usd
        self._monthly = monthly_ceiling_usd
        self._clock = clock or _utc_now
        self._period = self._period_of(self._clock())
        self._spent = 0.0

    @staticmethod
    def _period_of(now: datetime) -> tuple[int, int]:
        now = now.astimezone(timezone.utc)
        return now.year, now.month

    def _roll_period(self) -> None:
        period = self._period_of(self._clock())
        if period != self._period:
            logger.info(
                "Cost period %04d-%02d closed at $%.4f; starting %04d-%02d",
                *self._period, self._spent, *period,
            )
            self._period = period
            self._spent = 0.0

    @property
    def spent_usd(self) -> float:
        """Spend recorded in the current period."""
        self._roll_period()
        return self._spent

    @property
    def remaining_usd(self) -> float:
        return max(0.0, self._monthly - self.spent_usd)

    @property
    def exhausted(self) -> bool:
        return self.spent_usd >= self._monthly

    def check(self, estimated_cost_usd: float) -> None:
        """Refuse a call the ceilings do not allow.

        Raises:
            BudgetExceededError: Per-call estimate too high or period exhausted.
        """
        self._roll_period()
        if estimated_cost_usd > self._per_call:
            raise BudgetExceededError(
                "per_call", spent_usd=estimated_cost_usd, ceiling_usd=self._per_call
            )
        if self._spent >= self._monthly or self._spent + estimated_cost_usd > self._monthly:
            raise BudgetExceededError(
                "monthly", spent_usd=self._spent, ceiling_usd=self._monthly
            )

    def record(self, cost_usd: float) -> None:
        """Add actual spend to the current period."""
        if cost_usd <= 0:
            return
        self._roll_period()
        self._spent += cost_usd
        if self._spent >= self._monthly:
            logger.warning(
                "Monthly summarization budget exhausted ($%.4f of $%.4f); "
                "curation disabled until next period",
                self._spent, self._monthly,
            )
