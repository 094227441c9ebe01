# ==============================================================================
# runrate/calculator/engine.py
# ------------------------------------------------------------------------------
# Orchestrates a run-rate calculation: scope -> target -> achievements ->
# run rate, all against one point-in-time snapshot of the store.
# ==============================================================================

import logging
from datetime import date

from runrate.models import AppSetting
from .achievements import StaffIndex, aggregate_achievements, sum_metric_columns
from .catalog import MetricCatalog, AMOUNT
from .domain import GRAND_TOTAL_AMT, GRAND_TOTAL_AC, Scope
from .hierarchy import resolve_scope
from .run_rate import calculate_run_rate, days_in_month, days_remaining_in_month
from .targets import resolve_monthly_target, POLICY_MAX, RECONCILIATION_POLICIES

# --- Configuration Loader Class ---

class CalculationConfig:
    """
    A singleton class to load and hold the engine's business rules from the
    AppSetting table. Reset `_instance` after editing a setting.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            logging.info("Creating and loading CalculationConfig instance...")
            cls._instance = super(CalculationConfig, cls).__new__(cls)
            try:
                cls._instance.load_settings()
                logging.info("CalculationConfig loaded successfully.")
            except Exception as e:
                cls._instance = None
                logging.error(f"Could not load settings from database. Error: {e}", exc_info=True)
                raise
        return cls._instance

    def load_settings(self):
        settings = {s.key: s.get_value() for s in AppSetting.query.all()}

        policy = settings.get('TARGET_RECONCILIATION_POLICY', POLICY_MAX)
        if policy not in RECONCILIATION_POLICIES:
            logging.warning(f"Unknown TARGET_RECONCILIATION_POLICY '{policy}', falling back to '{POLICY_MAX}'.")
            policy = POLICY_MAX
        self.TARGET_RECONCILIATION_POLICY = policy


# --- Orchestration ---

def run_rate_for_scope(snapshot, scope, month, records, today=None, policy=POLICY_MAX):
    """Target, MTD achievement and daily run rate of a resolved scope for a month."""
    today = today or date.today()
    target = resolve_monthly_target(scope, 'monthly', month, snapshot, policy=policy)
    achieved = aggregate_achievements(
        scope, records, month, today, staff_index=StaffIndex(snapshot.get_all_staff())
    )
    result = calculate_run_rate(target, achieved, days_in_month(month), days_remaining_in_month(month, today))
    logging.info(
        f"Run rate for {month} ({scope.level}, {len(scope.employee_codes)} staff, "
        f"{len(scope.branch_names)} branches): target={result.monthly_target_amount:,.0f}, "
        f"mtd={result.mtd_achievement_amount:,.0f}, daily={result.daily_run_rate_amount:,.0f}"
    )
    return result


def calculate_run_rate_for_staff(snapshot, staff, month, records, today=None, policy=POLICY_MAX):
    """
    Run rate for everything a staff member is responsible for.

    Returns:
        tuple: (RunRateResult, Scope)
    """
    scope = resolve_scope(staff, snapshot.get_all_staff(), snapshot.get_branches())
    return run_rate_for_scope(snapshot, scope, month, records, today=today, policy=policy), scope


def calculate_overall_run_rate(snapshot, month, records, today=None):
    """Organisation-wide run rate: all branch targets against all achievements."""
    scope = Scope(
        employee_codes=frozenset(s.employee_code for s in snapshot.get_all_staff()),
        branch_names=frozenset(b.branch_name for b in snapshot.get_branches()),
        level='admin',
        is_global=True,
    )
    return run_rate_for_scope(snapshot, scope, month, records, today=today)


def _percentage(achieved, target):
    return (achieved / target * 100) if target > 0 else 0.0


def product_breakdown(snapshot, scope, month, records, as_of=None):
    """
    Target vs. MTD achievement per product category for a scope.

    Which targets count depends on the scope:
        admin       branch targets of every branch, KRAs ignored
        managers    KRAs of in-scope staff plus targets of in-scope branches
        individual  the staff member's own KRAs
    Grand-total metrics are left out since they would count every category twice.
    """
    as_of = as_of or date.today()
    catalog = MetricCatalog(snapshot.get_product_metrics())
    line_items = [m for m in catalog if m.name not in (GRAND_TOTAL_AMT, GRAND_TOTAL_AC)]

    metric_targets = {m.name: 0.0 for m in line_items}
    if not scope.is_global:
        for code in scope.employee_codes:
            for kra in snapshot.get_kras_for_staff(code, 'monthly', month):
                if kra.metric in metric_targets:
                    metric_targets[kra.metric] += kra.target
    if scope.is_global or scope.level != 'individual':
        for record in snapshot.get_branch_targets(month=month):
            if not scope.is_global and record.branch_name not in scope.branch_names:
                continue
            if record.metric in metric_targets:
                metric_targets[record.metric] += record.target

    achieved = sum_metric_columns(
        scope, records, month, as_of, [m.name for m in line_items],
        StaffIndex(snapshot.get_all_staff()),
    )

    rows = {}
    for metric in line_items:
        row = rows.setdefault(metric.category, {
            'product': metric.category,
            'amount_target': 0.0, 'amount_achieved': 0.0,
            'ac_target': 0.0, 'ac_achieved': 0.0,
        })
        if metric.kind == AMOUNT:
            row['amount_target'] += metric_targets[metric.name]
            row['amount_achieved'] += achieved[metric.name]
        else:
            row['ac_target'] += metric_targets[metric.name]
            row['ac_achieved'] += achieved[metric.name]

    for row in rows.values():
        row['amount_percentage'] = _percentage(row['amount_achieved'], row['amount_target'])
        row['ac_percentage'] = _percentage(row['ac_achieved'], row['ac_target'])
    return list(rows.values())
