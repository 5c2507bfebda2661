"""
XP Calculator: pure domain logic.
Turns a task's base experience and deadline into an early-completion bonus
or an overdue penalty, and passes raw deltas through for bookkeeping.

Curve:
  * no deadline (or no base XP)   -> no bonus, no penalty
  * completed before the deadline -> +5% of base per whole day early, capped at 10 days
  * completed after the deadline  -> -10% of base per started day late, capped at 5 days
"""
import math
from datetime import datetime
from typing import Optional, Union

from questlog.domain.models.task import XPBreakdown, parse_timestamp, utcnow
from questlog.domain.models.user import level_for, xp_for_level

SECONDS_PER_DAY = 24 * 60 * 60


class XPCalculator:

    EARLY_BONUS_RATE = 0.05
    MAX_EARLY_DAYS = 10
    OVERDUE_PENALTY_RATE = 0.10
    MAX_OVERDUE_DAYS = 5

    def __init__(self, clock=utcnow):
        self._clock = clock

    def calculate(
        self,
        base_experience: Optional[int],
        deadline: Union[str, datetime, None] = None,
        now: Optional[datetime] = None,
    ) -> XPBreakdown:
        base = int(base_experience or 0)
        deadline_at = parse_timestamp(deadline)
        if deadline_at is None or base <= 0:
            return XPBreakdown()

        remaining = (deadline_at - (now or self._clock())).total_seconds()
        if remaining >= 0:
            days_early = min(int(remaining // SECONDS_PER_DAY), self.MAX_EARLY_DAYS)
            return XPBreakdown(early_bonus=round(base * self.EARLY_BONUS_RATE * days_early))

        days_late = min(math.ceil(-remaining / SECONDS_PER_DAY), self.MAX_OVERDUE_DAYS)
        return XPBreakdown(overdue_penalty=-round(base * self.OVERDUE_PENALTY_RATE * days_late))

    def adjust(self, delta: int) -> int:
        """Signed XP adjustment the caller applies to the aggregate total."""
        return int(delta)

    @staticmethod
    def level_for(xp: int) -> int:
        return level_for(xp)

    @staticmethod
    def xp_for_level(level: int) -> int:
        return xp_for_level(level)
