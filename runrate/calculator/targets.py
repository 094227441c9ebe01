# ==============================================================================
# runrate/calculator/targets.py
# ------------------------------------------------------------------------------
# Resolves the target for a scope from individual KRAs and branch targets,
# honouring explicit GRAND TOTAL entries over line-item sums.
# ==============================================================================

import logging

from .catalog import MetricCatalog
from .domain import GRAND_TOTAL_AMT, GRAND_TOTAL_AC, TargetTotals

POLICY_MAX = 'max'
POLICY_SUM = 'sum'
RECONCILIATION_POLICIES = (POLICY_MAX, POLICY_SUM)


def sum_target_records(records, catalog):
    """
    Amount and account totals for the target records of one staff member or
    one branch. A GRAND TOTAL record wins over the sum of line items.
    """
    amount_names = catalog.amount_metrics()
    account_names = catalog.account_metrics()

    amount_override = next((r.target for r in records if r.metric == GRAND_TOTAL_AMT), None)
    account_override = next((r.target for r in records if r.metric == GRAND_TOTAL_AC), None)

    if amount_override is not None:
        amount = amount_override
    else:
        amount = sum(r.target for r in records if r.metric in amount_names)

    if account_override is not None:
        account = account_override
    else:
        account = sum(r.target for r in records if r.metric in account_names)

    return amount, account


def _branch_totals(branch_targets, catalog):
    """Applies the per-branch override rule and sums across branches."""
    by_branch = {}
    for record in branch_targets:
        by_branch.setdefault(record.branch_name, []).append(record)
    amount = account = 0.0
    for records in by_branch.values():
        branch_amount, branch_account = sum_target_records(records, catalog)
        amount += branch_amount
        account += branch_account
    return amount, account


def resolve_monthly_target(scope, period_type, period, store, policy=POLICY_MAX):
    """
    Resolves the target of a scope for one period.

    Args:
        scope (Scope): The scope produced by resolve_scope.
        period_type (str): 'monthly', 'mtd' or 'ytd'.
        period (str): 'YYYY-MM' for monthly/mtd, 'YYYY' for ytd.
        store: Anything exposing get_kras_for_staff, get_branch_targets and
            get_product_metrics (normally a store.Snapshot).
        policy (str): How multi-unit managers combine KRA and branch totals.

    Returns:
        TargetTotals: zero in both dimensions when nothing is configured.
    """
    catalog = MetricCatalog(store.get_product_metrics())
    # Branch targets are keyed by month, so they only apply to month periods.
    month = period if period_type in ('monthly', 'mtd') else None

    if scope.is_global:
        if month is None:
            return TargetTotals()
        amount, account = _branch_totals(store.get_branch_targets(month=month), catalog)
        logging.info(f"Overall target for {month}: amount={amount:,.0f}, accounts={account:,.0f}")
        return TargetTotals(amount=amount, account=account)

    staff_amount = staff_account = 0.0
    for code in sorted(scope.employee_codes):
        kras = store.get_kras_for_staff(code, period_type, period)
        if not kras:
            continue
        amount, account = sum_target_records(kras, catalog)
        staff_amount += amount
        staff_account += account

    if not scope.is_multi_unit or month is None:
        return TargetTotals(amount=staff_amount, account=staff_account)

    branch_targets = []
    for branch_name in sorted(scope.branch_names):
        branch_targets.extend(store.get_branch_targets(branch_name=branch_name, month=month))
    if not branch_targets:
        return TargetTotals(amount=staff_amount, account=staff_account)

    branch_amount, branch_account = _branch_totals(branch_targets, catalog)
    logging.info(
        f"Reconciling targets ({policy}): staff={staff_amount:,.0f}/{staff_account:,.0f}, "
        f"branches={branch_amount:,.0f}/{branch_account:,.0f}"
    )
    if policy == POLICY_SUM:
        return TargetTotals(amount=staff_amount + branch_amount, account=staff_account + branch_account)
    return TargetTotals(amount=max(staff_amount, branch_amount), account=max(staff_account, branch_account))
