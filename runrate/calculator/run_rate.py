# ==============================================================================
# runrate/calculator/run_rate.py
# ------------------------------------------------------------------------------
# Daily run-rate arithmetic: what is left of the target and how much has to
# come in per remaining day to close it by month end.
# ==============================================================================

import calendar
import math
from dataclasses import dataclass, asdict
from datetime import date


@dataclass(frozen=True)
class RunRateResult:
    monthly_target_amount: float = 0.0
    monthly_target_account: float = 0.0
    mtd_achievement_amount: float = 0.0
    mtd_achievement_account: float = 0.0
    remaining_target_amount: float = 0.0
    remaining_target_account: float = 0.0
    days_in_month: int = 0
    days_remaining_in_month: int = 0
    daily_run_rate_amount: float = 0.0
    daily_run_rate_account: float = 0.0

    def to_dict(self):
        return asdict(self)


def _finite(value):
    """Non-finite and negative inputs count as zero."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value) or math.isinf(value) or value < 0:
        return 0.0
    return value


def _parse_month(month):
    year, month_number = (int(part) for part in month.split('-'))
    return year, month_number


def days_in_month(month):
    """Number of days in a 'YYYY-MM' month."""
    year, month_number = _parse_month(month)
    return calendar.monthrange(year, month_number)[1]


def days_remaining_in_month(month, today=None):
    """
    Days left in 'YYYY-MM' counting today itself.
    Past months have none left; future months have all of them.
    """
    today = today or date.today()
    year, month_number = _parse_month(month)
    total = days_in_month(month)
    if (today.year, today.month) < (year, month_number):
        return total
    if (today.year, today.month) > (year, month_number):
        return 0
    return total - today.day + 1


def calculate_run_rate(target, achieved, days_in_month, days_remaining):
    """
    Combines a TargetTotals and AchievementTotals into a RunRateResult.

    Remaining target is floored at zero and the daily rate is zero when no
    days remain, so the result never carries negative or non-finite values.
    """
    target_amount = _finite(target.amount)
    target_account = _finite(target.account)
    achieved_amount = _finite(achieved.mtd_amount)
    achieved_account = _finite(achieved.mtd_account)
    days_remaining = int(_finite(days_remaining))

    remaining_amount = max(0.0, target_amount - achieved_amount)
    remaining_account = max(0.0, target_account - achieved_account)

    if days_remaining > 0:
        daily_amount = remaining_amount / days_remaining
        daily_account = remaining_account / days_remaining
    else:
        daily_amount = daily_account = 0.0

    return RunRateResult(
        monthly_target_amount=target_amount,
        monthly_target_account=target_account,
        mtd_achievement_amount=achieved_amount,
        mtd_achievement_account=achieved_account,
        remaining_target_amount=remaining_amount,
        remaining_target_account=remaining_account,
        days_in_month=int(_finite(days_in_month)),
        days_remaining_in_month=days_remaining,
        daily_run_rate_amount=daily_amount,
        daily_run_rate_account=daily_account,
    )
