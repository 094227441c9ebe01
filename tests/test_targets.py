# tests/test_targets.py

from runrate.calculator import domain
from runrate.calculator.hierarchy import resolve_scope
from runrate.calculator.targets import resolve_monthly_target, POLICY_SUM

T = domain.Target
BT = domain.BranchTarget


def _scope_for(snapshot, code):
    staff = snapshot.find_staff(code)
    return resolve_scope(staff, snapshot.get_all_staff(), snapshot.get_branches())


def test_no_targets_resolves_to_zero(make_snapshot):
    snapshot = make_snapshot()
    for code in ('3937', 'BM1', 'DH1', 'ZM1', 'A1'):
        totals = resolve_monthly_target(_scope_for(snapshot, code), 'monthly', '2024-07', snapshot)
        assert totals == domain.TargetTotals(0.0, 0.0)


def test_line_items_are_summed_by_kind(make_snapshot):
    snapshot = make_snapshot(targets=[
        T('3937', 'DDS AMT', 500000, 'monthly', '2024-07'),
        T('3937', 'DDS AC', 10, 'monthly', '2024-07'),
    ])
    totals = resolve_monthly_target(_scope_for(snapshot, '3937'), 'monthly', '2024-07', snapshot)
    assert totals.amount == 500000
    assert totals.account == 10


def test_new_ss_agent_counts_as_account(make_snapshot):
    snapshot = make_snapshot(targets=[
        T('3937', 'FD AC', 4, 'monthly', '2024-07'),
        T('3937', 'NEW-SS/AGNT', 2, 'monthly', '2024-07'),
    ])
    totals = resolve_monthly_target(_scope_for(snapshot, '3937'), 'monthly', '2024-07', snapshot)
    assert totals.account == 6
    assert totals.amount == 0


def test_grand_total_override_is_returned_verbatim(make_snapshot):
    snapshot = make_snapshot(targets=[
        T('3937', 'DDS AMT', 500000, 'monthly', '2024-07'),
        T('3937', 'FD AMT', 300000, 'monthly', '2024-07'),
        T('3937', 'GRAND TOTAL AMT', 650000, 'monthly', '2024-07'),
        T('3937', 'DDS AC', 10, 'monthly', '2024-07'),
    ])
    totals = resolve_monthly_target(_scope_for(snapshot, '3937'), 'monthly', '2024-07', snapshot)
    assert totals.amount == 650000
    assert totals.account == 10


def test_other_periods_and_period_types_are_ignored(make_snapshot):
    snapshot = make_snapshot(targets=[
        T('3937', 'DDS AMT', 500000, 'monthly', '2024-06'),
        T('3937', 'DDS AMT', 900000, 'mtd', '2024-07'),
        T('3937', 'DDS AMT', 7000000, 'ytd', '2024'),
    ])
    scope = _scope_for(snapshot, '3937')
    assert resolve_monthly_target(scope, 'monthly', '2024-07', snapshot).amount == 0
    assert resolve_monthly_target(scope, 'mtd', '2024-07', snapshot).amount == 900000
    assert resolve_monthly_target(scope, 'ytd', '2024', snapshot).amount == 7000000


def test_branch_manager_sums_staff_kras_only(make_snapshot):
    snapshot = make_snapshot(
        targets=[
            T('BM1', 'GRAND TOTAL AMT', 1000000, 'monthly', '2024-07'),
            T('3937', 'DDS AMT', 500000, 'monthly', '2024-07'),
        ],
        branch_targets=[BT('NER', 'GRAND TOTAL AMT', 9000000, '2024-07')],
    )
    totals = resolve_monthly_target(_scope_for(snapshot, 'BM1'), 'monthly', '2024-07', snapshot)
    assert totals.amount == 1500000


def test_multi_unit_manager_takes_larger_of_staff_and_branch_totals(make_snapshot):
    snapshot = make_snapshot(
        targets=[
            T('3937', 'DDS AMT', 500000, 'monthly', '2024-07'),
            T('3937', 'DDS AC', 40, 'monthly', '2024-07'),
            T('4001', 'RD AMT', 200000, 'monthly', '2024-07'),
        ],
        branch_targets=[
            BT('NER', 'GRAND TOTAL AMT', 2000000, '2024-07'),
            BT('NER', 'DDS AC', 15, '2024-07'),
            BT('WARDHA ROAD', 'FD AMT', 250000, '2024-07'),
            BT('PUNE CAMP', 'GRAND TOTAL AMT', 9999999, '2024-07'),
        ],
    )
    totals = resolve_monthly_target(_scope_for(snapshot, 'ZM1'), 'monthly', '2024-07', snapshot)
    # staff: 700000 / 40; branches in ZONE-A: 2250000 / 15
    assert totals.amount == 2250000
    assert totals.account == 40


def test_sum_policy_adds_staff_and_branch_totals(make_snapshot):
    snapshot = make_snapshot(
        targets=[T('3937', 'DDS AMT', 500000, 'monthly', '2024-07')],
        branch_targets=[BT('NER', 'DDS AMT', 800000, '2024-07')],
    )
    scope = _scope_for(snapshot, 'DH1')
    totals = resolve_monthly_target(scope, 'monthly', '2024-07', snapshot, policy=POLICY_SUM)
    assert totals.amount == 1300000


def test_admin_target_is_all_branch_targets_only(make_snapshot):
    snapshot = make_snapshot(
        targets=[T('3937', 'DDS AMT', 500000, 'monthly', '2024-07')],
        branch_targets=[
            BT('NER', 'DDS AMT', 800000, '2024-07'),
            BT('NER', 'DDS AC', 20, '2024-07'),
            BT('PUNE CAMP', 'GRAND TOTAL AMT', 400000, '2024-07'),
            BT('PUNE CAMP', 'SAVS-AMT', 123, '2024-07'),
            BT('WARDHA ROAD', 'FD AMT', 100000, '2024-08'),
        ],
    )
    totals = resolve_monthly_target(_scope_for(snapshot, 'A1'), 'monthly', '2024-07', snapshot)
    assert totals.amount == 1200000
    assert totals.account == 20


def test_branch_targets_do_not_apply_to_ytd(make_snapshot):
    snapshot = make_snapshot(
        targets=[T('DH1', 'GRAND TOTAL AMT', 5000000, 'ytd', '2024')],
        branch_targets=[BT('NER', 'GRAND TOTAL AMT', 9000000, '2024-07')],
    )
    assert resolve_monthly_target(_scope_for(snapshot, 'DH1'), 'ytd', '2024', snapshot).amount == 5000000
    assert resolve_monthly_target(_scope_for(snapshot, 'A1'), 'ytd', '2024', snapshot).amount == 0


def test_metric_outside_overall_goals_is_not_rolled_up(make_snapshot, metrics):
    adjusted = [
        domain.ProductMetric(m.name, m.category, m.kind, m.unit_of_measure,
                             contributes_to_overall_goals=(m.name != 'INSU AMT'))
        for m in metrics
    ]
    from runrate.store import Snapshot
    snapshot = Snapshot(
        staff=make_snapshot().get_all_staff(), branches=make_snapshot().get_branches(),
        metrics=adjusted,
        targets=[
            T('3937', 'INSU AMT', 100000, 'monthly', '2024-07'),
            T('3937', 'DDS AMT', 50000, 'monthly', '2024-07'),
        ],
        branch_targets=[],
    )
    totals = resolve_monthly_target(_scope_for(snapshot, '3937'), 'monthly', '2024-07', snapshot)
    assert totals.amount == 50000
