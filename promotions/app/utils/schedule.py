from __future__ import annotations
from datetime import date
from typing import Optional

from dateutil.relativedelta import relativedelta

from promotions.app.core.errors import InvalidSchedule
from promotions.app.utils.policy import default_duration_months, max_duration_months


def expected_end(start: date, months: int) -> date:
    """start + months, clamping the day to the end of the target month (Jan 31 + 1 -> Feb 28/29)."""
    return start + relativedelta(months=+months)


def resolve_duration(tier: str, months: Optional[int]) -> int:
    if months is None:
        return default_duration_months(tier)
    months = int(months)
    ceiling = max_duration_months()
    if months < 1 or months > ceiling:
        raise InvalidSchedule(
            f"duration_months must be between 1 and {ceiling}", duration_months=months
        )
    return months
