# tests/test_engine.py

from datetime import date

import pytest

from runrate.calculator import domain
from runrate.calculator.engine import (calculate_run_rate_for_staff, calculate_overall_run_rate,
                                       product_breakdown, CalculationConfig)
from runrate.calculator.hierarchy import resolve_scope
from runrate.calculator.targets import POLICY_MAX, POLICY_SUM

T = domain.Target
BT = domain.BranchTarget
TODAY = date(2024, 7, 21)


def test_staff_run_rate_end_to_end(make_snapshot, sample_records):
    snapshot = make_snapshot(targets=[
        T('3937', 'DDS AMT', 500000, 'monthly', '2024-07'),
        T('3937', 'DDS AC', 10, 'monthly', '2024-07'),
        T('3937', 'GRAND TOTAL AMT', 2180000, 'monthly', '2024-07'),
    ])
    result, scope = calculate_run_rate_for_staff(snapshot, snapshot.find_staff('3937'), '2024-07',
                                                 sample_records, today=TODAY)
    assert scope.employee_codes == {'3937'}
    assert result.monthly_target_amount == 2180000
    assert result.mtd_achievement_amount == 1080000
    assert result.remaining_target_amount == 1100000
    assert result.days_remaining_in_month == 11
    assert result.daily_run_rate_amount == 100000
    assert result.monthly_target_account == 10
    assert result.remaining_target_account == 1


def test_staff_without_targets_gets_zero_run_rate(make_snapshot, sample_records):
    snapshot = make_snapshot()
    result, _ = calculate_run_rate_for_staff(snapshot, snapshot.find_staff('BM2'), '2024-07',
                                             sample_records, today=TODAY)
    assert result.monthly_target_amount == 0
    assert result.remaining_target_amount == 0
    assert result.daily_run_rate_amount == 0
    assert result.mtd_achievement_amount == 55000


def test_past_month_has_no_run_rate(make_snapshot, sample_records):
    snapshot = make_snapshot(targets=[T('3937', 'DDS AMT', 5000000, 'monthly', '2024-07')])
    result, _ = calculate_run_rate_for_staff(snapshot, snapshot.find_staff('3937'), '2024-07',
                                             sample_records, today=date(2024, 8, 3))
    assert result.days_remaining_in_month == 0
    assert result.daily_run_rate_amount == 0
    assert result.remaining_target_amount == 3920000


def test_policy_is_passed_through(make_snapshot, sample_records):
    snapshot = make_snapshot(
        targets=[T('3937', 'DDS AMT', 500000, 'monthly', '2024-07')],
        branch_targets=[BT('NER', 'DDS AMT', 300000, '2024-07')],
    )
    dh1 = snapshot.find_staff('DH1')
    max_result, _ = calculate_run_rate_for_staff(snapshot, dh1, '2024-07', sample_records, TODAY, POLICY_MAX)
    sum_result, _ = calculate_run_rate_for_staff(snapshot, dh1, '2024-07', sample_records, TODAY, POLICY_SUM)
    assert max_result.monthly_target_amount == 500000
    assert sum_result.monthly_target_amount == 800000


def test_overall_run_rate_uses_branch_targets(make_snapshot, sample_records):
    snapshot = make_snapshot(
        targets=[T('3937', 'DDS AMT', 999, 'monthly', '2024-07')],
        branch_targets=[
            BT('NER', 'GRAND TOTAL AMT', 2000000, '2024-07'),
            BT('PUNE CAMP', 'SAVS-AMT', 325000, '2024-07'),
        ],
    )
    result = calculate_overall_run_rate(snapshot, '2024-07', sample_records, today=TODAY)
    assert result.monthly_target_amount == 2325000
    assert result.mtd_achievement_amount == 1225000
    assert result.daily_run_rate_amount == 100000


def test_admin_staff_matches_overall_view(make_snapshot, sample_records):
    snapshot = make_snapshot(branch_targets=[BT('NER', 'GRAND TOTAL AMT', 2000000, '2024-07')])
    admin_result, scope = calculate_run_rate_for_staff(snapshot, snapshot.find_staff('A1'), '2024-07',
                                                       sample_records, today=TODAY)
    assert scope.is_global
    assert admin_result == calculate_overall_run_rate(snapshot, '2024-07', sample_records, today=TODAY)


def test_product_breakdown_groups_by_category(make_snapshot, sample_records):
    snapshot = make_snapshot(
        targets=[
            T('3937', 'DDS AMT', 1000000, 'monthly', '2024-07'),
            T('3937', 'DDS AC', 10, 'monthly', '2024-07'),
            T('3937', 'GRAND TOTAL AMT', 5000000, 'monthly', '2024-07'),
        ],
        branch_targets=[BT('NER', 'FD AMT', 820000, '2024-07')],
    )
    bm1 = snapshot.find_staff('BM1')
    scope = resolve_scope(bm1, snapshot.get_all_staff(), snapshot.get_branches())
    rows = {row['product']: row for row in product_breakdown(snapshot, scope, '2024-07', sample_records, TODAY)}

    assert 'GRAND TOTAL' not in rows
    assert rows['DDS']['amount_target'] == 1000000
    assert rows['DDS']['amount_achieved'] == 670000
    assert rows['DDS']['amount_percentage'] == pytest.approx(67.0)
    assert rows['DDS']['ac_target'] == 10
    assert rows['DDS']['ac_percentage'] == pytest.approx(50.0)
    assert rows['FD']['amount_target'] == 820000
    assert rows['FD']['amount_percentage'] == pytest.approx(50.0)
    assert rows['RD']['amount_percentage'] == 0
    assert rows['NEW-SS/AGNT']['ac_target'] == 0


@pytest.fixture
def kra_and_branch_snapshot(make_snapshot):
    return make_snapshot(
        targets=[T('3937', 'DDS AMT', 500000, 'monthly', '2024-07')],
        branch_targets=[BT('NER', 'DDS AMT', 800000, '2024-07')],
    )


def _breakdown_for(snapshot, code, records):
    staff = snapshot.find_staff(code)
    scope = resolve_scope(staff, snapshot.get_all_staff(), snapshot.get_branches())
    return {row['product']: row for row in product_breakdown(snapshot, scope, '2024-07', records, TODAY)}


def test_product_breakdown_for_admin_uses_branch_targets_only(kra_and_branch_snapshot, sample_records):
    rows = _breakdown_for(kra_and_branch_snapshot, 'A1', sample_records)
    assert rows['DDS']['amount_target'] == 800000
    assert rows['DDS']['amount_achieved'] == 670000


def test_product_breakdown_for_individual_uses_own_kras_only(kra_and_branch_snapshot, sample_records):
    rows = _breakdown_for(kra_and_branch_snapshot, '3937', sample_records)
    assert rows['DDS']['amount_target'] == 500000
    assert rows['DDS']['amount_achieved'] == 670000


def test_product_breakdown_for_manager_adds_kras_and_branch_targets(kra_and_branch_snapshot, sample_records):
    rows = _breakdown_for(kra_and_branch_snapshot, 'BM1', sample_records)
    assert rows['DDS']['amount_target'] == 1300000


# --- Settings-backed configuration ---

def test_calculation_config_reads_policy(seeded_app):
    from runrate import db
    from runrate.models import AppSetting

    assert CalculationConfig().TARGET_RECONCILIATION_POLICY == POLICY_MAX

    AppSetting.query.filter_by(key='TARGET_RECONCILIATION_POLICY').one().value = 'sum'
    db.session.commit()
    assert CalculationConfig().TARGET_RECONCILIATION_POLICY == POLICY_MAX  # cached
    CalculationConfig._instance = None
    assert CalculationConfig().TARGET_RECONCILIATION_POLICY == POLICY_SUM


def test_calculation_config_falls_back_on_unknown_policy(seeded_app):
    from runrate import db
    from runrate.models import AppSetting

    AppSetting.query.filter_by(key='TARGET_RECONCILIATION_POLICY').one().value = 'average'
    db.session.commit()
    assert CalculationConfig().TARGET_RECONCILIATION_POLICY == POLICY_MAX
