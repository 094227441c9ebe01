# tests/test_run_rate.py

from datetime import date

import pytest

from runrate.calculator.domain import TargetTotals, AchievementTotals
from runrate.calculator.run_rate import calculate_run_rate, days_in_month, days_remaining_in_month


def _run(target, achieved, days_remaining, total_days=31):
    return calculate_run_rate(
        TargetTotals(amount=target, account=0),
        AchievementTotals(mtd_amount=achieved, mtd_account=0),
        total_days, days_remaining,
    )


def test_over_achievement_floors_remaining_at_zero():
    result = _run(1000000, 1080000, 11)
    assert result.remaining_target_amount == 0
    assert result.daily_run_rate_amount == 0


def test_daily_run_rate_spreads_remaining_over_remaining_days():
    result = _run(500000, 250000, 10)
    assert result.remaining_target_amount == 250000
    assert result.daily_run_rate_amount == 25000


def test_no_days_remaining_never_divides_by_zero():
    result = _run(500000, 100000, 0)
    assert result.remaining_target_amount == 400000
    assert result.daily_run_rate_amount == 0


def test_dimensions_are_independent():
    result = calculate_run_rate(TargetTotals(amount=100, account=30),
                                AchievementTotals(mtd_amount=150, mtd_account=10), 31, 4)
    assert result.remaining_target_amount == 0
    assert result.remaining_target_account == 20
    assert result.daily_run_rate_account == 5


@pytest.mark.parametrize("bad", [float('nan'), float('inf'), -5, None, 'abc'])
def test_non_finite_inputs_degrade_to_zero(bad):
    result = calculate_run_rate(TargetTotals(amount=bad, account=bad),
                                AchievementTotals(mtd_amount=bad, mtd_account=bad), 31, bad)
    for value in result.to_dict().values():
        assert value == 0 or value == 31


def test_result_carries_every_field():
    result = _run(310, 0, 31)
    assert result.to_dict() == {
        'monthly_target_amount': 310, 'monthly_target_account': 0,
        'mtd_achievement_amount': 0, 'mtd_achievement_account': 0,
        'remaining_target_amount': 310, 'remaining_target_account': 0,
        'days_in_month': 31, 'days_remaining_in_month': 31,
        'daily_run_rate_amount': 10, 'daily_run_rate_account': 0,
    }


@pytest.mark.parametrize("month, days", [('2024-02', 29), ('2023-02', 28), ('2024-07', 31), ('2024-09', 30)])
def test_days_in_month(month, days):
    assert days_in_month(month) == days


@pytest.mark.parametrize("today, remaining", [
    (date(2024, 7, 1), 31),
    (date(2024, 7, 21), 11),
    (date(2024, 7, 31), 1),
    (date(2024, 8, 1), 0),
    (date(2024, 6, 30), 31),
])
def test_days_remaining_counts_today(today, remaining):
    assert days_remaining_in_month('2024-07', today) == remaining
